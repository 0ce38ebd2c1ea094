# app/api/v1/endpoints/video_progress.py
"""
Endpoints del módulo de progreso de video.
El reproductor sincroniza aquí su progreso; el servidor guarda el registro
canónico y lo combina siempre hacia adelante.
"""
from typing import Annotated, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import metrics
from app.core.deps import ensure_owner_or_admin, get_current_user, require_admin
from app.core.logging_config import log_progress_event
from app.crud.crud_video_progress import video_progress as crud_video_progress
from app.db.session import get_db
from app.models.user import User, UserRole
from app.schemas.video_progress import (
    AllUsersProgressResponse,
    ApiResponse,
    ProgressUpdateRequest,
    WatchProgressRecord,
    WatchProgressWithUser,
)
from app.services import progress_analytics_service

router = APIRouter()
logger = logging.getLogger('app.api.video_progress')

CourseId = Annotated[str, Path(min_length=1, max_length=64, description="Identificador del curso")]
VideoId = Annotated[str, Path(min_length=1, max_length=64, description="Identificador del video")]


@router.get(
    "/course/{course_id}",
    response_model=ApiResponse[List[WatchProgressRecord]],
    summary="Progreso del usuario en un curso",
)
def get_course_progress(
    course_id: CourseId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Devuelve el progreso del usuario actual en todos los videos del curso,
    del más reciente al más antiguo.
    """
    records = crud_video_progress.list_for_course(db, course_id=course_id, user_id=current_user.id)
    return ApiResponse(
        message="Course progress retrieved",
        data=[WatchProgressRecord.model_validate(r) for r in records],
    )


@router.get(
    "/admin/video/{video_id}",
    response_model=ApiResponse[List[WatchProgressWithUser]],
    summary="Progreso de todos los usuarios para un video",
)
def get_video_progress_for_all_users(
    video_id: VideoId,
    course_id: Optional[str] = Query(None, max_length=64),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Vista de administración: cada registro incluye nombre y email del usuario.
    """
    records = crud_video_progress.list_for_video(db, video_id=video_id, course_id=course_id)
    log_progress_event(logger, "list_for_video", user_id=admin.id, video_id=video_id, results=len(records))
    return ApiResponse(
        message="Video progress for all users retrieved",
        data=[WatchProgressWithUser.model_validate(r) for r in records],
    )


@router.get(
    "/admin/all-users",
    response_model=AllUsersProgressResponse,
    summary="Resumen de progreso de todos los usuarios",
)
def get_all_users_progress_summary(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    course_id: Optional[str] = Query(None, max_length=64),
    search: Optional[str] = Query(None, max_length=100),
    sort_by: str = Query("last_watched"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Agregados por usuario (sin administradores) con paginación y resumen global.
    """
    result = progress_analytics_service.all_users_summary(
        db,
        page=page,
        limit=limit,
        course_id=course_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return AllUsersProgressResponse(
        message="All users progress summary retrieved successfully",
        data=result["data"],
        pagination=result["pagination"],
        summary=result["summary"],
    )


@router.get("/user/{user_id}/tracking", response_model=ApiResponse[dict], summary="Seguimiento de un usuario")
def get_user_video_tracking(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_owner_or_admin(current_user, user_id)
    data = progress_analytics_service.user_tracking(db, user_id)
    return ApiResponse(message="User video tracking data retrieved successfully", data=data)


@router.get("/user/{user_id}/stats", response_model=ApiResponse[dict], summary="Estadísticas de un usuario")
def get_user_tracking_stats(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_owner_or_admin(current_user, user_id)
    data = progress_analytics_service.user_stats(db, user_id)
    return ApiResponse(message="User tracking statistics calculated successfully", data=data)


@router.get(
    "/{course_id}/{video_id}",
    response_model=ApiResponse[WatchProgressRecord],
    summary="Consultar progreso actual",
)
def get_video_progress(
    course_id: CourseId,
    video_id: VideoId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Devuelve el progreso guardado o un registro en cero si el usuario
    todavía no empezó el video.
    """
    record = crud_video_progress.get(db, course_id=course_id, video_id=video_id, user_id=current_user.id)
    return ApiResponse(message="Video progress retrieved", data=WatchProgressRecord.model_validate(record))


@router.put(
    "/{course_id}/{video_id}",
    response_model=ApiResponse[Optional[WatchProgressRecord]],
    summary="Registrar progreso",
)
def update_video_progress(
    request: ProgressUpdateRequest,
    course_id: CourseId,
    video_id: VideoId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Registra el progreso enviado por el reproductor.

    - **current_time**: posición actual en segundos
    - **duration**: duración total del video
    - **progress**: porcentaje visto (nunca retrocede en el servidor)
    - **watch_time**: segundos reproducidos desde el último envío (se suman)
    - **reached_percentage**: checkpoint alcanzado en este envío, opcional
    """
    # Solo se registra el progreso de estudiantes
    if current_user.role != UserRole.USER.value:
        metrics.progress_updates_total.labels(outcome='skipped_role').inc()
        return ApiResponse(message="Progress tracking disabled for non-user roles", data=None)

    try:
        record = crud_video_progress.update(
            db,
            course_id=course_id,
            video_id=video_id,
            user_id=current_user.id,
            data=request,
        )
    except SQLAlchemyError as e:
        db.rollback()
        log_progress_event(
            logger, "update", user_id=current_user.id, course_id=course_id, video_id=video_id,
            success=False, error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al registrar progreso"
        )

    log_progress_event(
        logger, "update",
        user_id=current_user.id, course_id=course_id, video_id=video_id,
        progress=record.progress, total_watch_time=record.total_watch_time,
    )
    return ApiResponse(
        message="Video progress updated with smart tracking",
        data=WatchProgressRecord.model_validate(record),
    )


@router.delete(
    "/{video_id}",
    response_model=ApiResponse[WatchProgressRecord],
    summary="Resetear progreso",
)
def reset_video_progress(
    video_id: VideoId,
    course_id: Optional[str] = Query(None, max_length=64),
    user_id: Optional[int] = Query(None, description="Solo administradores: usuario a resetear"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Borra el progreso acumulado del video para volver a verlo desde cero.
    """
    target_user_id = current_user.id if user_id is None else user_id
    if target_user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized access")

    try:
        record = crud_video_progress.reset(db, video_id=video_id, user_id=target_user_id, course_id=course_id)
    except SQLAlchemyError as e:
        db.rollback()
        log_progress_event(
            logger, "reset", user_id=target_user_id, course_id=course_id, video_id=video_id,
            success=False, error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al resetear progreso"
        )

    log_progress_event(logger, "reset", user_id=target_user_id, course_id=course_id, video_id=video_id)
    return ApiResponse(message="Video progress reset successfully", data=WatchProgressRecord.model_validate(record))
