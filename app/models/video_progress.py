# app/models/video_progress.py
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class VideoProgress(Base):
    """
    Progreso de visualización de un video para un usuario dentro de un curso.
    El progreso y el tiempo acumulado solo avanzan; el único camino para
    volver a cero es un reset explícito.
    """
    __tablename__ = "video_progress"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(String(64), nullable=False, index=True)
    video_id = Column(String(64), nullable=False, index=True)
    current_time = Column(Float, default=0.0, nullable=False)
    duration = Column(Float, default=0.0, nullable=False)
    progress = Column(Integer, default=0, nullable=False)  # 0-100
    total_watch_time = Column(Float, default=0.0, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    last_watched = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="video_progress")
    reached_percentages = relationship(
        "VideoCheckpoint",
        back_populates="video_progress",
        cascade="all, delete-orphan",
        order_by="VideoCheckpoint.id",
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', 'video_id', name='uq_user_course_video'),
    )

    def __repr__(self):
        return (
            f"<VideoProgress(user_id={self.user_id}, video_id='{self.video_id}', "
            f"progress={self.progress}%, watch_time={self.total_watch_time}s)>"
        )


class VideoCheckpoint(Base):
    """Porcentaje del video alcanzado (10, 20, ... 100)."""
    __tablename__ = "video_checkpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)
    progress_id = Column(Integer, ForeignKey("video_progress.id", ondelete="CASCADE"), nullable=False, index=True)
    percentage = Column(Integer, nullable=False)
    time = Column(Float, default=0.0, nullable=False)
    reached_at = Column(DateTime(timezone=True), server_default=func.now())

    video_progress = relationship("VideoProgress", back_populates="reached_percentages")

    __table_args__ = (
        UniqueConstraint('progress_id', 'percentage', name='uq_progress_percentage'),
    )
