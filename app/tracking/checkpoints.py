# app/tracking/checkpoints.py
"""
Motor de checkpoints del reproductor.

Divide la duración del video en una escalera fija de porcentajes y avanza un
único puntero al "siguiente checkpoint esperado". Un checkpoint solo se
acredita si la posición actual ya lo cruzó y el usuario acumuló un mínimo de
tiempo real de visualización (evita acreditar checkpoints con solo adelantar).

Nunca lanza excepciones: entradas inválidas equivalen a "sin progreso".
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

logger = logging.getLogger('app.tracking.checkpoints')

CHECKPOINT_PERCENTAGES = (10, 20, 30, 40, 50, 60, 70, 80, 90, 100)
MIN_WATCH_SECONDS_FOR_CHECKPOINT = 10.0


@dataclass(frozen=True)
class Checkpoint:
    percentage: int
    time: float


def as_number(value) -> Optional[float]:
    """Convierte a float finito o devuelve None (bool y NaN no cuentan)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def generate_checkpoints(duration) -> List[Checkpoint]:
    """
    Calcula el segundo en el que cae cada porcentaje de la escalera.
    Con duración desconocida (<= 0) devuelve una lista vacía.
    """
    duration = as_number(duration)
    if duration is None or duration <= 0:
        return []
    return [Checkpoint(percentage=pct, time=duration * pct / 100) for pct in CHECKPOINT_PERCENTAGES]


def check_next_checkpoint(
    current_time,
    accumulated_watch_time,
    next_index: int,
    checkpoints: List[Checkpoint],
) -> Tuple[Optional[int], int]:
    """
    Evalúa solo el checkpoint en ``next_index``.

    Devuelve ``(porcentaje, next_index + 1)`` si se cruzó con suficiente tiempo
    de visualización, o ``(None, next_index)`` en cualquier otro caso. Si un
    salto cruza varios umbrales a la vez solo se acredita uno por llamada; las
    llamadas siguientes acreditan el resto.
    """
    current_time = as_number(current_time)
    accumulated_watch_time = as_number(accumulated_watch_time)
    if current_time is None or accumulated_watch_time is None:
        return None, next_index
    if next_index < 0 or next_index >= len(checkpoints):
        return None, next_index

    checkpoint = checkpoints[next_index]
    if current_time >= checkpoint.time and checkpoint.time > 0:
        if accumulated_watch_time >= MIN_WATCH_SECONDS_FOR_CHECKPOINT:
            return checkpoint.percentage, next_index + 1
        logger.debug(
            f"Checkpoint {checkpoint.percentage}% pendiente: tiempo de visualización insuficiente "
            f"({accumulated_watch_time:.1f}s)"
        )
    return None, next_index


class CheckpointTracker:
    """Mantiene la escalera de checkpoints y el puntero para un video."""

    def __init__(self, duration=0.0):
        self.duration = 0.0
        self.checkpoints: List[Checkpoint] = []
        self.next_index = 0
        self.set_duration(duration)

    def set_duration(self, duration) -> None:
        # La duración puede llegar tarde (metadatos del reproductor); el puntero se conserva
        duration = as_number(duration)
        if duration is None or duration <= 0 or duration == self.duration:
            return
        self.duration = duration
        self.checkpoints = generate_checkpoints(duration)

    @property
    def next_checkpoint(self) -> Optional[Checkpoint]:
        if self.next_index < len(self.checkpoints):
            return self.checkpoints[self.next_index]
        return None

    @property
    def reached_count(self) -> int:
        return min(self.next_index, len(CHECKPOINT_PERCENTAGES))

    def check_next(self, current_time, accumulated_watch_time) -> Optional[int]:
        percentage, self.next_index = check_next_checkpoint(
            current_time, accumulated_watch_time, self.next_index, self.checkpoints
        )
        return percentage

    def restore(self, reached_percentages: Iterable[int], stored_time=0.0, duration=None) -> None:
        """
        Reposiciona el puntero en el primer porcentaje de la escalera que aún
        no fue alcanzado según el registro del servidor.

        Un registro con posición ~0% pero con checkpoints es inconsistente y
        el puntero vuelve a empezar.
        """
        if duration is not None:
            self.set_duration(duration)
        reached = {int(p) for p in reached_percentages}

        stored_time = as_number(stored_time) or 0.0
        if self.duration > 0 and reached and round(stored_time / self.duration * 100) == 0:
            logger.warning(
                "Registro inconsistente: 0% de progreso con checkpoints alcanzados. Reiniciando checkpoints."
            )
            self.next_index = 0
            return

        self.next_index = len(CHECKPOINT_PERCENTAGES)
        for index, pct in enumerate(CHECKPOINT_PERCENTAGES):
            if pct not in reached:
                self.next_index = index
                break

    def reset(self) -> None:
        self.next_index = 0
