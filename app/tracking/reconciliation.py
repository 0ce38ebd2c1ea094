# app/tracking/reconciliation.py
"""
Reconciliación del progreso del reproductor con el registro del servidor.

``WatchSession`` es la caché local de un registro de progreso: se carga al
montar el reproductor ("pull") y en cada tick decide si vale la pena enviar
una actualización ("push"). El servidor es la fuente de verdad y su merge es
monótono, por lo que la sesión nunca sobrescribe su estado: solo lo empuja hacia
adelante.
"""
import logging
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Set

from app.tracking.checkpoints import CheckpointTracker, as_number

logger = logging.getLogger('app.tracking.reconciliation')

# Un intervalo mayor entre ticks no acredita nada (no se recorta a 1.5s)
MAX_TICK_DELTA_SECONDS = 1.5
MIN_PROGRESS_CHANGE = 1


@dataclass
class ProgressUpdate:
    """Payload del PUT /video-progress/{course_id}/{video_id}."""
    current_time: float
    duration: float
    progress: int
    watch_time: float
    reached_percentage: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        if payload["reached_percentage"] is None:
            del payload["reached_percentage"]
        return payload


def compute_progress(current_time, duration) -> int:
    """Porcentaje entero 0-100; 0 si la duración es desconocida."""
    current_time = as_number(current_time)
    duration = as_number(duration)
    if current_time is None or duration is None or duration <= 0:
        return 0
    return max(0, min(100, round(current_time / duration * 100)))


class WatchSession:
    """
    Caché local del progreso de un video con las reglas de empuje.

    El tiempo de visualización se divide en lo ya confirmado por el servidor y
    lo pendiente de confirmar. Cada envío lleva solo la parte pendiente que no
    está ya en vuelo; si el envío falla, esa parte vuelve a quedar disponible
    para el siguiente tick. Los checkpoints detectados siguen el mismo camino.
    """

    def __init__(self, course_id: str, video_id: str, clock=time.monotonic):
        self.course_id = course_id
        self.video_id = video_id
        self.clock = clock
        self.tracker = CheckpointTracker()
        self.stored_progress = 0
        self.confirmed_watch_time = 0.0
        self.epoch = 0
        self.last_tick_at: Optional[float] = None
        self._clear_backlog()

    @property
    def total_watch_time(self) -> float:
        return self.confirmed_watch_time + self.unsent_watch_time

    def _clear_backlog(self) -> None:
        self.unsent_watch_time = 0.0
        self.in_flight_watch_time = 0.0
        self.pending_checkpoints: List[int] = []
        self.in_flight_checkpoints: Set[int] = set()

    def restore(self, record: Optional[Dict[str, Any]], duration=None) -> None:
        """Inicializa la sesión con el registro obtenido del servidor."""
        record = record or {}
        if duration is not None:
            self.tracker.set_duration(duration)
        elif as_number(record.get("duration")):
            self.tracker.set_duration(record.get("duration"))

        reached = [item["percentage"] for item in record.get("reached_percentages") or []]
        self.tracker.restore(reached, stored_time=record.get("current_time") or 0.0)
        self.stored_progress = int(record.get("progress") or 0)
        self.confirmed_watch_time = float(record.get("total_watch_time") or 0.0)
        self._clear_backlog()
        self.epoch += 1
        self.last_tick_at = None
        logger.info(
            f"Sesión restaurada: video={self.video_id}, progress={self.stored_progress}%, "
            f"watch_time={self.total_watch_time:.1f}s, next_checkpoint={self.tracker.next_index}"
        )

    def apply_server_record(self, record: Optional[Dict[str, Any]]) -> None:
        """
        Integra la respuesta del servidor. Las respuestas pueden llegar fuera
        de orden, por eso solo se toma el máximo.
        """
        if not record:
            return
        self.stored_progress = max(self.stored_progress, int(record.get("progress") or 0))
        self.confirmed_watch_time = max(
            self.confirmed_watch_time, float(record.get("total_watch_time") or 0.0)
        )

    def push_confirmed(self, update: ProgressUpdate, record: Optional[Dict[str, Any]]) -> None:
        """El servidor aceptó ``update``: lo enviado pasa a estar confirmado."""
        self.in_flight_watch_time = max(0.0, self.in_flight_watch_time - update.watch_time)
        self.unsent_watch_time = max(0.0, self.unsent_watch_time - update.watch_time)
        self.confirmed_watch_time += update.watch_time
        percentage = update.reached_percentage
        if percentage is not None:
            self.in_flight_checkpoints.discard(percentage)
            if percentage in self.pending_checkpoints:
                self.pending_checkpoints.remove(percentage)
        self.apply_server_record(record)

    def push_failed(self, update: ProgressUpdate) -> None:
        """``update`` no llegó: su tiempo y su checkpoint se reenvían en el siguiente tick."""
        self.in_flight_watch_time = max(0.0, self.in_flight_watch_time - update.watch_time)
        if update.reached_percentage is not None:
            self.in_flight_checkpoints.discard(update.reached_percentage)
        logger.warning(
            f"Envío fallido: video={self.video_id}, pendiente={self.unsent_watch_time:.1f}s, "
            f"checkpoints={self.pending_checkpoints}"
        )

    def reset(self) -> None:
        self.tracker.reset()
        self.stored_progress = 0
        self.confirmed_watch_time = 0.0
        self._clear_backlog()
        # Las respuestas de envíos anteriores al reset se descartan
        self.epoch += 1
        self.last_tick_at = None

    def _watch_time_delta(self, now: float) -> float:
        delta = 0.0
        if self.last_tick_at is not None:
            elapsed = now - self.last_tick_at
            # Pestaña en segundo plano, pausas largas del GC o una pausa del usuario
            if 0 < elapsed <= MAX_TICK_DELTA_SECONDS:
                delta = elapsed
        self.last_tick_at = now
        return delta

    def _next_checkpoint_to_send(self) -> Optional[int]:
        for percentage in self.pending_checkpoints:
            if percentage not in self.in_flight_checkpoints:
                return percentage
        return None

    def tick(self, current_time, duration, is_playing: bool, now: Optional[float] = None) -> Optional[ProgressUpdate]:
        """
        Procesa una muestra del reproductor (una por segundo mientras reproduce).
        Devuelve la actualización a enviar o None si no hay cambio relevante.
        La actualización devuelta queda en vuelo hasta ``push_confirmed`` o
        ``push_failed``.
        """
        current_time = as_number(current_time)
        duration = as_number(duration)
        if not is_playing or current_time is None or duration is None or duration <= 0:
            return None
        current_time = max(current_time, 0.0)
        self.tracker.set_duration(duration)
        now = self.clock() if now is None else now

        progress = compute_progress(current_time, duration)
        stored = self.stored_progress
        if progress < stored and current_time > 0:
            logger.debug(f"Protección de progreso: se evita retroceder de {stored}% a {progress}%")
            progress = stored
        if current_time == 0 and stored > 0:
            # Un currentTime en 0 justo después de un seek es un fallo transitorio
            progress = stored

        delta = self._watch_time_delta(now)
        previous_total = self.total_watch_time
        reached = self.tracker.check_next(current_time, previous_total)
        if reached is not None:
            self.pending_checkpoints.append(reached)

        # El tiempo acumulado nunca queda por debajo de la posición actual
        new_total = max(previous_total + delta, current_time)
        self.unsent_watch_time += new_total - previous_total

        watch_time = max(0.0, self.unsent_watch_time - self.in_flight_watch_time)
        checkpoint = self._next_checkpoint_to_send()

        progress_changed = abs(progress - stored) > MIN_PROGRESS_CHANGE
        is_regressive = progress < stored
        should_push = (
            progress_changed or watch_time > 0 or checkpoint is not None
        ) and not is_regressive

        if not should_push:
            if is_regressive:
                logger.debug(f"Actualización regresiva descartada: {stored}% -> {progress}%")
            return None

        self.in_flight_watch_time += watch_time
        if checkpoint is not None:
            self.in_flight_checkpoints.add(checkpoint)
        return ProgressUpdate(
            current_time=current_time,
            duration=duration,
            progress=progress,
            watch_time=watch_time,
            reached_percentage=checkpoint,
        )
