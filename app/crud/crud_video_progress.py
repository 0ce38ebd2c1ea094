from datetime import datetime, timezone
from typing import List, Optional
import logging

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core import metrics
from app.models.video_progress import VideoCheckpoint, VideoProgress
from app.schemas.video_progress import ProgressUpdateRequest
from app.tracking.checkpoints import CHECKPOINT_PERCENTAGES

logger = logging.getLogger('app.video_progress')

COMPLETION_PROGRESS = 90
COMPLETION_MIN_WATCH_SECONDS = 60.0
# Tolerancia entre el checkpoint reportado y el progreso guardado
CHECKPOINT_TOLERANCE = 2


def is_completion_reached(progress: int, total_watch_time: float) -> bool:
    return progress >= COMPLETION_PROGRESS and total_watch_time >= COMPLETION_MIN_WATCH_SECONDS


def empty_record(user_id: int, course_id: str, video_id: str) -> VideoProgress:
    """
    Registro en cero, sin persistir. La ausencia de progreso es un estado
    inicial válido, no un error.
    """
    return VideoProgress(
        user_id=user_id,
        course_id=course_id,
        video_id=video_id,
        current_time=0.0,
        duration=0.0,
        progress=0,
        total_watch_time=0.0,
        is_completed=False,
        reached_percentages=[],
    )


def merge_update(record: VideoProgress, data: ProgressUpdateRequest, now: datetime) -> None:
    """
    Combina una actualización con el registro guardado sin retroceder nunca:
    progreso y posición por máximo, tiempo de visualización por suma y
    checkpoints como conjunto.
    """
    stored_progress = record.progress or 0
    if data.progress < stored_progress:
        metrics.regressions_prevented_total.inc()
        logger.info(
            f"Protección de progreso: user={record.user_id}, video={record.video_id}, "
            f"se mantiene {stored_progress}% (recibido {data.progress}%)"
        )

    record.progress = max(stored_progress, data.progress)
    record.current_time = max(record.current_time or 0.0, data.current_time)
    if data.duration > 0:
        record.duration = max(data.duration, record.duration or 0.0)
    record.total_watch_time = (record.total_watch_time or 0.0) + data.watch_time
    record.last_watched = now

    percentage = data.reached_percentage
    if percentage is not None:
        existing = {cp.percentage for cp in record.reached_percentages}
        if percentage not in CHECKPOINT_PERCENTAGES:
            metrics.checkpoints_rejected_total.labels(reason='invalid').inc()
            logger.warning(f"Checkpoint inválido ignorado: {percentage}% (video={record.video_id})")
        elif percentage in existing:
            pass
        elif record.progress >= percentage - CHECKPOINT_TOLERANCE:
            record.reached_percentages.append(
                VideoCheckpoint(percentage=percentage, time=record.current_time, reached_at=now)
            )
            metrics.checkpoints_recorded_total.inc()
            logger.info(f"Checkpoint alcanzado: user={record.user_id}, video={record.video_id}, {percentage}%")
        else:
            metrics.checkpoints_rejected_total.labels(reason='ahead_of_progress').inc()
            logger.warning(
                f"Checkpoint {percentage}% supera el progreso actual {record.progress}% "
                f"(user={record.user_id}, video={record.video_id})"
            )

    if not record.is_completed and is_completion_reached(record.progress, record.total_watch_time):
        record.is_completed = True
        logger.info(
            f"Video completado: user={record.user_id}, video={record.video_id}, "
            f"progress={record.progress}%, watch_time={record.total_watch_time:.1f}s"
        )


class CRUDVideoProgress:
    def _query(self, db: Session, user_id: int, video_id: str, course_id: Optional[str] = None):
        query = db.query(VideoProgress).filter(
            VideoProgress.user_id == user_id,
            VideoProgress.video_id == video_id,
        )
        if course_id is not None:
            query = query.filter(VideoProgress.course_id == course_id)
        return query

    def get_record(self, db: Session, course_id: str, video_id: str, user_id: int) -> Optional[VideoProgress]:
        return self._query(db, user_id, video_id, course_id).first()

    def get(self, db: Session, course_id: str, video_id: str, user_id: int) -> VideoProgress:
        """
        Obtiene el progreso guardado o un registro en cero si aún no existe.
        """
        record = self.get_record(db, course_id, video_id, user_id)
        if record is None:
            return empty_record(user_id, course_id, video_id)
        return record

    def update(
        self,
        db: Session,
        course_id: str,
        video_id: str,
        user_id: int,
        data: ProgressUpdateRequest,
        now: Optional[datetime] = None,
    ) -> VideoProgress:
        """
        Aplica la actualización con semántica upsert y merge monótono.
        Las actualizaciones duplicadas suman tiempo de visualización; evitar
        duplicados es responsabilidad del cliente.
        """
        now = now or datetime.now(timezone.utc)
        record = self._query(db, user_id, video_id, course_id).with_for_update().first()
        created = record is None
        if created:
            record = empty_record(user_id, course_id, video_id)
            db.add(record)

        merge_update(record, data, now)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if not created:
                raise
            # Otra petición del mismo usuario creó el registro primero
            logger.info(f"Registro creado en paralelo, reintentando merge: user={user_id}, video={video_id}")
            record = self._query(db, user_id, video_id, course_id).with_for_update().one()
            merge_update(record, data, now)
            db.commit()
            created = False

        db.refresh(record)
        metrics.progress_updates_total.labels(outcome='created' if created else 'updated').inc()
        return record

    def list_for_course(self, db: Session, course_id: str, user_id: int) -> List[VideoProgress]:
        return (
            db.query(VideoProgress)
            .options(selectinload(VideoProgress.reached_percentages))
            .filter(VideoProgress.user_id == user_id, VideoProgress.course_id == course_id)
            .order_by(desc(VideoProgress.updated_at), desc(VideoProgress.id))
            .all()
        )

    def list_for_video(self, db: Session, video_id: str, course_id: Optional[str] = None) -> List[VideoProgress]:
        """
        Progreso de todos los usuarios para un video, con el usuario cargado
        para la proyección del panel de administración.
        """
        query = (
            db.query(VideoProgress)
            .options(
                joinedload(VideoProgress.user),
                selectinload(VideoProgress.reached_percentages),
            )
            .filter(VideoProgress.video_id == video_id)
        )
        if course_id is not None:
            query = query.filter(VideoProgress.course_id == course_id)
        return query.order_by(desc(VideoProgress.last_watched), desc(VideoProgress.id)).all()

    def reset(
        self,
        db: Session,
        video_id: str,
        user_id: int,
        course_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> VideoProgress:
        """
        Borra el progreso acumulado (checkpoints, tiempo y porcentaje) del
        usuario para el video. Sin course_id se resetean todos sus cursos.
        """
        records = (
            self._query(db, user_id, video_id, course_id)
            .order_by(desc(VideoProgress.last_watched), desc(VideoProgress.id))
            .all()
        )
        if not records:
            return empty_record(user_id, course_id or "", video_id)

        now = now or datetime.now(timezone.utc)
        for record in records:
            record.reached_percentages.clear()
            record.current_time = 0.0
            record.progress = 0
            record.total_watch_time = 0.0
            record.is_completed = False
            record.last_watched = now
        db.commit()

        for record in records:
            db.refresh(record)
        metrics.progress_resets_total.inc(len(records))
        logger.info(f"Progreso reseteado: user={user_id}, video={video_id}, registros={len(records)}")
        return records[0]


video_progress = CRUDVideoProgress()
