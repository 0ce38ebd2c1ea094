"""
Pruebas del merge monótono del servidor sobre SQLite en memoria.
"""
from sqlalchemy import event

from app.crud.crud_video_progress import video_progress as crud_video_progress
from app.models.video_progress import VideoCheckpoint, VideoProgress
from app.schemas.video_progress import ProgressUpdateRequest
from app.services import progress_analytics_service


def _update(db, user, progress, current_time=None, watch_time=1.0, duration=100.0,
            reached=None, course_id="course-1", video_id="video-1"):
    data = ProgressUpdateRequest(
        current_time=progress if current_time is None else current_time,
        duration=duration,
        progress=progress,
        watch_time=watch_time,
        reached_percentage=reached,
    )
    return crud_video_progress.update(db, course_id=course_id, video_id=video_id, user_id=user.id, data=data)


def _percentages(record):
    return [cp.percentage for cp in record.reached_percentages]


def test_get_missing_record_returns_unsaved_default(db, make_user):
    user = make_user()
    record = crud_video_progress.get(db, course_id="course-1", video_id="video-1", user_id=user.id)

    assert record.id is None
    assert record.progress == 0
    assert record.total_watch_time == 0.0
    assert record.reached_percentages == []
    assert db.query(VideoProgress).count() == 0


def test_update_creates_then_merges(db, make_user):
    user = make_user()
    first = _update(db, user, progress=30, watch_time=5.0)
    assert first.id is not None
    assert first.progress == 30

    second = _update(db, user, progress=20, watch_time=2.0)
    assert second.id == first.id
    assert second.progress == 30
    assert second.current_time == 30
    assert second.total_watch_time == 7.0
    assert db.query(VideoProgress).count() == 1


def test_unknown_duration_keeps_stored_duration(db, make_user):
    user = make_user()
    _update(db, user, progress=10, duration=600.0)
    record = _update(db, user, progress=11, duration=0.0)
    assert record.duration == 600.0


def test_checkpoints_are_a_set(db, make_user):
    user = make_user()
    _update(db, user, progress=12, reached=10)
    record = _update(db, user, progress=13, reached=10)
    assert _percentages(record) == [10]
    assert db.query(VideoCheckpoint).count() == 1


def test_checkpoint_ahead_of_progress_is_rejected(db, make_user):
    user = make_user()
    record = _update(db, user, progress=12, reached=50)
    assert _percentages(record) == []


def test_checkpoint_outside_ladder_is_rejected(db, make_user):
    user = make_user()
    record = _update(db, user, progress=20, reached=15)
    assert _percentages(record) == []


def test_checkpoint_tolerance(db, make_user):
    user = make_user()
    record = _update(db, user, progress=18, reached=20)
    assert _percentages(record) == [20]

    record = _update(db, user, progress=27, reached=30)
    assert _percentages(record) == [20]


def test_checkpoints_keep_arrival_order(db, make_user):
    user = make_user()
    _update(db, user, progress=40, reached=40)
    # Un 10% que llega tarde se lista después del 40%
    record = _update(db, user, progress=40, reached=10)
    assert _percentages(record) == [40, 10]


def test_completion_needs_progress_and_watch_time(db, make_user):
    user = make_user()
    record = _update(db, user, progress=95, watch_time=30.0)
    assert record.is_completed is False

    record = _update(db, user, progress=95, watch_time=40.0)
    assert record.is_completed is True

    # La bandera no se pierde con envíos posteriores
    record = _update(db, user, progress=10, watch_time=0.0)
    assert record.is_completed is True
    assert record.progress == 95


def test_watch_time_without_progress_does_not_complete(db, make_user):
    user = make_user()
    record = _update(db, user, progress=50, watch_time=600.0)
    assert record.is_completed is False


def test_records_are_isolated_per_user_and_course(db, make_user):
    alice = make_user(email="alice@example.com")
    bob = make_user(email="bob@example.com")
    _update(db, alice, progress=40)
    _update(db, alice, progress=70, course_id="course-2")

    assert crud_video_progress.get(db, "course-1", "video-1", bob.id).progress == 0
    assert crud_video_progress.get(db, "course-1", "video-1", alice.id).progress == 40
    assert crud_video_progress.get(db, "course-2", "video-1", alice.id).progress == 70


def test_reset_clears_progress_and_checkpoints(db, make_user):
    user = make_user()
    created = _update(db, user, progress=95, watch_time=90.0, reached=10)
    assert created.is_completed is True

    record = crud_video_progress.reset(db, video_id="video-1", user_id=user.id, course_id="course-1")
    assert record.id == created.id
    assert record.progress == 0
    assert record.current_time == 0.0
    assert record.total_watch_time == 0.0
    assert record.is_completed is False
    assert record.reached_percentages == []
    assert db.query(VideoCheckpoint).count() == 0

    # Después del reset se puede volver a acreditar el mismo checkpoint
    record = _update(db, user, progress=12, reached=10)
    assert _percentages(record) == [10]


def test_reset_without_course_resets_every_course(db, make_user):
    user = make_user()
    _update(db, user, progress=40)
    _update(db, user, progress=60, course_id="course-2")

    crud_video_progress.reset(db, video_id="video-1", user_id=user.id)
    assert [r.progress for r in db.query(VideoProgress).all()] == [0, 0]


def test_reset_missing_record_returns_default(db, make_user):
    user = make_user()
    record = crud_video_progress.reset(db, video_id="video-1", user_id=user.id, course_id="course-1")
    assert record.id is None
    assert record.progress == 0
    assert db.query(VideoProgress).count() == 0


def test_list_for_course(db, make_user):
    user = make_user()
    _update(db, user, progress=10, video_id="video-1")
    _update(db, user, progress=20, video_id="video-2")
    _update(db, user, progress=30, video_id="video-3", course_id="course-2")

    records = crud_video_progress.list_for_course(db, course_id="course-1", user_id=user.id)
    assert sorted(r.video_id for r in records) == ["video-1", "video-2"]


def test_list_for_video_loads_user(db, make_user):
    alice = make_user(email="alice@example.com", full_name="Alice")
    bob = make_user(email="bob@example.com")
    _update(db, alice, progress=10)
    _update(db, bob, progress=20)
    _update(db, bob, progress=20, course_id="course-2")

    records = crud_video_progress.list_for_video(db, video_id="video-1", course_id="course-1")
    assert sorted(r.user.email for r in records) == ["alice@example.com", "bob@example.com"]
    assert len(crud_video_progress.list_for_video(db, video_id="video-1")) == 3


def test_all_users_summary_queries_do_not_grow_with_page_size(db, make_user):
    for i in range(4):
        user = make_user(email=f"user{i}@example.com")
        for video in range(6):
            _update(db, user, progress=10 + video, video_id=f"video-{video}")

    statements = []

    def count_statement(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    engine = db.get_bind()
    event.listen(engine, "before_cursor_execute", count_statement)
    try:
        single = progress_analytics_service.all_users_summary(db, page=1, limit=1)
        single_count = len(statements)
        statements.clear()
        full = progress_analytics_service.all_users_summary(db, page=1, limit=4)
        full_count = len(statements)
    finally:
        event.remove(engine, "before_cursor_execute", count_statement)

    assert len(single["data"]) == 1
    assert len(full["data"]) == 4
    assert full_count == single_count
    assert all(len(row["recent_activity"]) == 5 for row in full["data"])
