# app/tracking/player.py
"""
Controlador de reproductor: une el SDK de video, la sesión de progreso y el
servicio de sincronización.

El SDK del reproductor (YouTube IFrame, HTML5, etc.) se inyecta explícitamente
a través de ``PlayerSDK``; el controlador no depende de objetos globales.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Set

from app.tracking.reconciliation import ProgressUpdate, WatchSession

logger = logging.getLogger('app.tracking.player')

POLL_INTERVAL_SECONDS = 1.0


class PlayerHandle(Protocol):
    def get_current_time(self) -> float: ...

    def get_duration(self) -> float: ...

    def is_playing(self) -> bool: ...

    def seek_to(self, seconds: float) -> None: ...


class PlayerSDK(Protocol):
    async def load(self) -> None: ...

    def create_player(self, video_id: str, **options: Any) -> PlayerHandle: ...

    def on(self, event: str, callback: Callable[..., None]) -> None: ...


class ProgressSync(Protocol):
    async def fetch_progress(self, course_id: str, video_id: str) -> Optional[Dict[str, Any]]: ...

    async def push_progress(self, course_id: str, video_id: str, update: ProgressUpdate) -> Optional[Dict[str, Any]]: ...

    async def reset_progress(self, video_id: str, course_id: Optional[str] = None) -> Optional[Dict[str, Any]]: ...


class VideoPlayerController:
    """
    Un controlador por reproductor montado. Mantiene una única tarea de
    sondeo; al detenerse no cancela los envíos en curso, su respuesta se
    integra de forma monótona.
    """

    def __init__(
        self,
        sdk: PlayerSDK,
        sync: ProgressSync,
        course_id: str,
        video_id: str,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        session: Optional[WatchSession] = None,
    ):
        self.sdk = sdk
        self.sync = sync
        self.course_id = course_id
        self.video_id = video_id
        self.poll_interval = poll_interval
        self.session = session or WatchSession(course_id, video_id)
        self.player: Optional[PlayerHandle] = None
        self.resume_position = 0.0
        self._poll_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    async def start(self, **player_options: Any) -> None:
        """Carga el SDK, crea el reproductor y restaura el progreso guardado."""
        await self.sdk.load()
        self.player = self.sdk.create_player(self.video_id, **player_options)
        self.sdk.on("ended", self._on_ended)

        record = await self.sync.fetch_progress(self.course_id, self.video_id)
        duration = self.player.get_duration()
        self.session.restore(record, duration=duration if duration and duration > 0 else None)

        self.resume_position = float((record or {}).get("current_time") or 0.0)
        if self.resume_position > 0:
            logger.info(f"Reanudando video {self.video_id} desde {self.resume_position:.0f}s")
            self.player.seek_to(self.resume_position)

    def poll_once(self, now: Optional[float] = None, force_playing: bool = False) -> Optional[ProgressUpdate]:
        """Lee el estado del reproductor, ejecuta un tick y agenda el envío si corresponde."""
        if self.player is None:
            return None
        update = self.session.tick(
            self.player.get_current_time(),
            self.player.get_duration(),
            force_playing or self.player.is_playing(),
            now=now,
        )
        if update is not None:
            task = asyncio.get_running_loop().create_task(self._push(update, self.session.epoch))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return update

    async def _push(self, update: ProgressUpdate, epoch: int) -> None:
        record = await self.sync.push_progress(self.course_id, self.video_id, update)
        if epoch != self.session.epoch:
            # Respuesta de antes de un reset o de un cambio de video
            return
        if record is None:
            # Sin reintento propio: el siguiente tick reenvía lo no confirmado
            self.session.push_failed(update)
            return
        self.session.push_confirmed(update, record)

    async def run(self) -> None:
        while True:
            self.poll_once()
            await asyncio.sleep(self.poll_interval)

    def start_polling(self) -> asyncio.Task:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self.run())
        return self._poll_task

    async def stop(self) -> None:
        """Detiene el sondeo (al desmontar o cambiar de video)."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

    async def drain(self) -> None:
        """Espera a que terminen los envíos pendientes."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def reset(self) -> Optional[Dict[str, Any]]:
        record = await self.sync.reset_progress(self.video_id, course_id=self.course_id)
        if record is not None:
            self.session.reset()
            self.resume_position = 0.0
        return record

    def _on_ended(self, *args: Any) -> None:
        # Último tick al terminar: el reproductor ya reporta pausa pero la muestra cuenta
        if self.player is not None:
            logger.info(f"Video {self.video_id} finalizado")
            try:
                self.poll_once(force_playing=True)
            except RuntimeError:
                logger.warning("Evento 'ended' recibido fuera del event loop; se omite el último tick")
