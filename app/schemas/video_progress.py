# app/schemas/video_progress.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Sobre uniforme de todas las respuestas del módulo."""
    success: bool = True
    message: str = ""
    data: Optional[T] = None


class ProgressUpdateRequest(BaseModel):
    """Schema para el envío de progreso desde el reproductor."""
    current_time: float = Field(..., ge=0, description="Posición actual de reproducción en segundos")
    duration: float = Field(0.0, ge=0, description="Duración total del video en segundos (0 si se desconoce)")
    progress: int = Field(0, ge=0, le=100, description="Porcentaje visto calculado por el cliente")
    watch_time: float = Field(0.0, ge=0, description="Segundos reproducidos desde el último envío")
    reached_percentage: Optional[int] = Field(None, ge=0, le=100, description="Checkpoint recién alcanzado")

    class Config:
        json_schema_extra = {
            "example": {
                "current_time": 62.4,
                "duration": 600.0,
                "progress": 10,
                "watch_time": 1.0,
                "reached_percentage": 10
            }
        }


class CheckpointSchema(BaseModel):
    percentage: int
    time: float = 0.0
    reached_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserProjection(BaseModel):
    """Datos del usuario dueño del registro (solo vista de administración)."""
    id: int
    username: Optional[str] = None
    full_name: Optional[str] = None
    email: str

    class Config:
        from_attributes = True


class WatchProgressRecord(BaseModel):
    """Registro de progreso de un video para un usuario."""
    id: Optional[int] = None
    user_id: int
    course_id: str
    video_id: str
    current_time: float = 0.0
    duration: float = 0.0
    progress: int = 0
    total_watch_time: float = 0.0
    reached_percentages: List[CheckpointSchema] = []
    is_completed: bool = False
    last_watched: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WatchProgressWithUser(WatchProgressRecord):
    user: Optional[UserProjection] = None


class PaginationSchema(BaseModel):
    current_page: int
    total_pages: int
    total_results: int
    results_per_page: int


class AllUsersSummarySchema(BaseModel):
    total_unique_users: int = 0
    total_videos_watched: int = 0
    total_completed_videos: int = 0
    total_watch_time_hours: float = 0.0
    average_progress: int = 0
    overall_completion_rate: int = 0


class AllUsersProgressResponse(ApiResponse[List[Any]]):
    pagination: Optional[PaginationSchema] = None
    summary: Optional[AllUsersSummarySchema] = None
