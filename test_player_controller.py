"""
Pruebas del controlador del reproductor con un SDK y un servicio de
sincronización falsos.
"""
import asyncio

from app.tracking.player import VideoPlayerController


class FakePlayer:
    def __init__(self, duration=100.0):
        self.current_time = 0.0
        self.duration = duration
        self.playing = False
        self.seeks = []

    def get_current_time(self):
        return self.current_time

    def get_duration(self):
        return self.duration

    def is_playing(self):
        return self.playing

    def seek_to(self, seconds):
        self.seeks.append(seconds)
        self.current_time = seconds


class FakeSDK:
    def __init__(self, player):
        self.player = player
        self.loaded = False
        self.callbacks = {}
        self.created_with = None

    async def load(self):
        self.loaded = True

    def create_player(self, video_id, **options):
        self.created_with = (video_id, options)
        return self.player

    def on(self, event, callback):
        self.callbacks[event] = callback


class FakeSync:
    """Imita el merge del servidor: progreso por máximo y tiempo sumado."""

    def __init__(self, record=None, fail_pushes=False):
        self.record = record
        self.fail_pushes = fail_pushes
        self.pushed = []
        self.resets = []

    async def fetch_progress(self, course_id, video_id):
        return self.record

    async def push_progress(self, course_id, video_id, update):
        self.pushed.append(update)
        if self.fail_pushes:
            return None
        record = self.record or {"progress": 0, "total_watch_time": 0.0, "reached_percentages": []}
        reached = list(record.get("reached_percentages") or [])
        if update.reached_percentage is not None and all(
            cp["percentage"] != update.reached_percentage for cp in reached
        ):
            reached.append({"percentage": update.reached_percentage})
        self.record = {
            **record,
            "progress": max(record["progress"], update.progress),
            "total_watch_time": record["total_watch_time"] + update.watch_time,
            "reached_percentages": reached,
        }
        return self.record

    async def reset_progress(self, video_id, course_id=None):
        self.resets.append((video_id, course_id))
        return {"progress": 0, "total_watch_time": 0.0, "current_time": 0.0}


STORED = {
    "current_time": 42.0,
    "duration": 100.0,
    "progress": 42,
    "total_watch_time": 50.0,
    "reached_percentages": [{"percentage": p} for p in (10, 20, 30, 40)],
}


def _controller(record=None, fail_pushes=False, **kwargs):
    player = FakePlayer()
    sdk = FakeSDK(player)
    sync = FakeSync(record=record, fail_pushes=fail_pushes)
    controller = VideoPlayerController(sdk, sync, "course-1", "video-1", **kwargs)
    return controller, player, sdk, sync


def test_start_restores_and_resumes():
    controller, player, sdk, sync = _controller(record=dict(STORED))

    asyncio.run(controller.start(controls=1))

    assert sdk.loaded is True
    assert sdk.created_with == ("video-1", {"controls": 1})
    assert "ended" in sdk.callbacks
    assert player.seeks == [42.0]
    assert controller.session.stored_progress == 42
    assert controller.session.tracker.next_index == 4


def test_start_without_record_does_not_seek():
    controller, player, _, _ = _controller(record=None)
    asyncio.run(controller.start())
    assert player.seeks == []
    assert controller.resume_position == 0.0


def test_poll_pushes_and_applies_server_record():
    controller, player, _, sync = _controller(record=dict(STORED))

    async def scenario():
        await controller.start()
        player.playing = True
        player.current_time = 43.0
        assert controller.poll_once(now=0.0) is None
        player.current_time = 44.0
        update = controller.poll_once(now=1.0)
        await controller.drain()
        return update

    update = asyncio.run(scenario())
    assert update.watch_time == 1.0
    assert update.progress == 44
    assert sync.pushed == [update]
    assert controller.session.stored_progress == 44
    assert controller.session.total_watch_time == 51.0


def test_paused_player_sends_nothing():
    controller, player, _, sync = _controller(record=dict(STORED))

    async def scenario():
        await controller.start()
        player.current_time = 60.0
        controller.poll_once(now=0.0)
        controller.poll_once(now=1.0)
        await controller.drain()

    asyncio.run(scenario())
    assert sync.pushed == []


def test_failed_pushes_are_resent_once_sync_recovers():
    controller, player, _, sync = _controller(record=dict(STORED), fail_pushes=True)

    async def scenario():
        await controller.start()
        player.playing = True
        player.current_time = 43.0
        controller.poll_once(now=0.0)
        for second in range(1, 6):
            player.current_time = 43.0 + second
            controller.poll_once(now=float(second))
            await controller.drain()

        assert sync.record["total_watch_time"] == 50.0
        assert controller.session.unsent_watch_time == 5.0

        sync.fail_pushes = False
        player.current_time = 49.0
        update = controller.poll_once(now=6.0)
        await controller.drain()
        return update

    update = asyncio.run(scenario())
    assert update.watch_time == 6.0
    assert sync.record["total_watch_time"] == 56.0
    assert controller.session.total_watch_time == 56.0
    assert controller.session.unsent_watch_time == 0.0


def test_failed_checkpoint_is_resent():
    controller, player, _, sync = _controller(record=dict(STORED), fail_pushes=True)

    async def scenario():
        await controller.start()
        player.playing = True
        player.current_time = 49.0
        controller.poll_once(now=0.0)
        player.current_time = 50.0
        controller.poll_once(now=1.0)
        await controller.drain()

        sync.fail_pushes = False
        for second in range(2, 5):
            player.current_time = 49.0 + second
            controller.poll_once(now=float(second))
            await controller.drain()

    asyncio.run(scenario())
    sent = [u.reached_percentage for u in sync.pushed]
    assert sent == [None, 50, 50, None, None]
    assert [cp["percentage"] for cp in sync.record["reached_percentages"]] == [10, 20, 30, 40, 50]
    assert controller.session.pending_checkpoints == []


def test_ended_event_sends_final_tick():
    controller, player, sdk, sync = _controller(record=dict(STORED))

    async def scenario():
        await controller.start()
        player.playing = False
        player.current_time = 100.0
        sdk.callbacks["ended"]()
        await controller.drain()

    asyncio.run(scenario())
    assert len(sync.pushed) == 1
    assert sync.pushed[0].progress == 100


def test_reset_clears_session():
    controller, _, _, sync = _controller(record=dict(STORED))

    async def scenario():
        await controller.start()
        return await controller.reset()

    record = asyncio.run(scenario())
    assert record["progress"] == 0
    assert sync.resets == [("video-1", "course-1")]
    assert controller.session.stored_progress == 0
    assert controller.session.tracker.next_index == 0
    assert controller.resume_position == 0.0


def test_polling_task_stops_cleanly():
    controller, player, _, _ = _controller(record=dict(STORED), poll_interval=0.01)

    async def scenario():
        await controller.start()
        player.playing = True
        task = controller.start_polling()
        assert controller.start_polling() is task
        await asyncio.sleep(0.05)
        await controller.stop()
        await controller.drain()
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()
    assert controller._poll_task is None


class GatedSync(FakeSync):
    """Retiene las respuestas de los envíos hasta que se abre la compuerta."""

    def __init__(self, record=None):
        super().__init__(record=record)
        self.gate = None

    async def push_progress(self, course_id, video_id, update):
        await self.gate.wait()
        return await super().push_progress(course_id, video_id, update)


def test_reply_arriving_after_reset_is_ignored():
    player = FakePlayer()
    sync = GatedSync(record=dict(STORED))
    controller = VideoPlayerController(FakeSDK(player), sync, "course-1", "video-1")

    async def scenario():
        sync.gate = asyncio.Event()
        await controller.start()
        player.playing = True
        player.current_time = 43.0
        controller.poll_once(now=0.0)
        player.current_time = 44.0
        assert controller.poll_once(now=1.0) is not None

        await controller.reset()
        sync.gate.set()
        await controller.drain()

    asyncio.run(scenario())
    assert sync.record["progress"] == 44
    assert controller.session.stored_progress == 0
    assert controller.session.total_watch_time == 0.0
