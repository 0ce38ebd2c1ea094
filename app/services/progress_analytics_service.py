"""
Progress Analytics Service

Vistas agregadas de solo lectura sobre los registros de progreso de video:
seguimiento por usuario, estadísticas y resumen para el panel de administración.
"""

import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy import asc, case, desc, func, or_
from sqlalchemy.orm import Session, selectinload

from app.models.user import ADMIN_ROLES, User
from app.models.video_progress import VideoCheckpoint, VideoProgress

logger = logging.getLogger('app.services.progress_analytics')

RECENT_ACTIVITY_LIMIT = 10
RECENT_PER_USER = 5
STREAK_WINDOW = 30

SORT_FIELDS = {
    'last_watched': 'last_watched',
    'total_watch_time': 'total_watch_time',
    'average_progress': 'average_progress',
    'completed_videos': 'completed_videos',
    'total_videos_watched': 'total_videos_watched',
}


def _hours(seconds: float) -> float:
    return round((seconds or 0.0) / 3600, 2)


def _rate(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _level(value: float, high: float, medium: float, labels=('High', 'Medium', 'Low')) -> str:
    if value >= high:
        return labels[0]
    if value >= medium:
        return labels[1]
    return labels[2]


def user_tracking(db: Session, user_id: int) -> Dict[str, Any]:
    """
    Seguimiento completo de un usuario: estadísticas generales, desglose por
    curso y los últimos videos vistos.
    """
    records = (
        db.query(VideoProgress)
        .options(selectinload(VideoProgress.reached_percentages))
        .filter(VideoProgress.user_id == user_id)
        .order_by(desc(VideoProgress.last_watched), desc(VideoProgress.id))
        .all()
    )

    total = len(records)
    overall = {
        'total_videos_watched': total,
        'total_watch_time': sum(r.total_watch_time or 0.0 for r in records),
        'completed_videos': sum(1 for r in records if r.is_completed),
        'average_progress': round(sum(r.progress or 0 for r in records) / total) if total else 0,
        'total_checkpoints': sum(len(r.reached_percentages) for r in records),
        'last_watched': records[0].last_watched if records else None,
    }

    courses: Dict[str, Dict[str, Any]] = {}
    for record in records:
        course = courses.setdefault(record.course_id, {
            'course_id': record.course_id,
            'videos': [],
            'course_stats': {
                'total_videos': 0,
                'completed_videos': 0,
                'total_watch_time': 0.0,
                'average_progress': 0,
            },
        })
        course['videos'].append({
            'video_id': record.video_id,
            'progress': record.progress,
            'current_time': record.current_time,
            'duration': record.duration,
            'total_watch_time': record.total_watch_time,
            'is_completed': record.is_completed,
            'checkpoints_reached': len(record.reached_percentages),
            'last_watched': record.last_watched,
        })
        stats = course['course_stats']
        stats['total_videos'] += 1
        stats['total_watch_time'] += record.total_watch_time or 0.0
        if record.is_completed:
            stats['completed_videos'] += 1

    for course in courses.values():
        videos = course['videos']
        course['course_stats']['average_progress'] = round(
            sum(v['progress'] or 0 for v in videos) / len(videos)
        )

    recent_activity = [
        {
            'video_id': r.video_id,
            'course_id': r.course_id,
            'progress': r.progress,
            'is_completed': r.is_completed,
            'total_watch_time': r.total_watch_time,
            'last_watched': r.last_watched,
            'created_at': r.created_at,
        }
        for r in records[:RECENT_ACTIVITY_LIMIT]
    ]

    return {
        'user_id': user_id,
        'overall_stats': overall,
        'course_breakdown': list(courses.values()),
        'recent_activity': recent_activity,
    }


def user_stats(db: Session, user_id: int) -> Dict[str, Any]:
    """
    Estadísticas avanzadas de un usuario con métricas cualitativas de aprendizaje.
    """
    row = (
        db.query(
            func.count(VideoProgress.id),
            func.sum(case((VideoProgress.is_completed.is_(True), 1), else_=0)),
            func.sum(VideoProgress.total_watch_time),
            func.avg(VideoProgress.progress),
            func.max(VideoProgress.progress),
            func.max(VideoProgress.last_watched),
            func.min(VideoProgress.created_at),
        )
        .filter(VideoProgress.user_id == user_id)
        .one()
    )
    total_videos, completed, watch_time, avg_progress, max_progress, last_activity, first_activity = row
    total_videos = total_videos or 0
    completed = int(completed or 0)
    avg_progress = float(avg_progress or 0.0)

    checkpoints = (
        db.query(func.count(VideoCheckpoint.id))
        .join(VideoProgress, VideoCheckpoint.progress_id == VideoProgress.id)
        .filter(VideoProgress.user_id == user_id)
        .scalar()
    ) or 0

    # Días distintos con actividad entre los últimos registros vistos
    recent = (
        db.query(VideoProgress.last_watched)
        .filter(VideoProgress.user_id == user_id, VideoProgress.last_watched.isnot(None))
        .order_by(desc(VideoProgress.last_watched))
        .limit(STREAK_WINDOW)
        .all()
    )
    active_days = len({watched.date() for (watched,) in recent})

    completion_rate = _rate(completed, total_videos)
    return {
        'user_id': user_id,
        'summary': {
            'total_videos_watched': total_videos,
            'completed_videos': completed,
            'completion_rate': completion_rate,
            'total_watch_time_hours': _hours(watch_time),
            'average_progress': round(avg_progress),
            'max_progress': max_progress or 0,
            'total_checkpoints_reached': checkpoints,
            'active_days_last_30': active_days,
            'first_activity': first_activity,
            'last_activity': last_activity,
        },
        'learning_metrics': {
            'consistency': _level(active_days, 7, 3),
            'engagement': _level(completion_rate, 70, 40),
            'progress_quality': _level(avg_progress, 75, 50, ('Excellent', 'Good', 'Needs Improvement')),
        },
    }


def all_users_summary(
    db: Session,
    page: int = 1,
    limit: int = 20,
    course_id: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = 'last_watched',
    sort_order: str = 'desc',
) -> Dict[str, Any]:
    """
    Resumen por usuario para el panel de administración. Excluye a los
    administradores y pagina los resultados.
    """
    filters = [User.role.notin_(ADMIN_ROLES)]
    if course_id:
        filters.append(VideoProgress.course_id == course_id)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(
            User.full_name.ilike(pattern),
            User.username.ilike(pattern),
            User.email.ilike(pattern),
        ))

    completed_expr = func.sum(case((VideoProgress.is_completed.is_(True), 1), else_=0))
    columns = {
        'total_videos_watched': func.count(VideoProgress.id).label('total_videos_watched'),
        'completed_videos': completed_expr.label('completed_videos'),
        'total_watch_time': func.coalesce(func.sum(VideoProgress.total_watch_time), 0.0).label('total_watch_time'),
        'average_progress': func.avg(VideoProgress.progress).label('average_progress'),
        'last_watched': func.max(VideoProgress.last_watched).label('last_watched'),
        'active_courses': func.count(func.distinct(VideoProgress.course_id)).label('active_courses'),
    }
    grouped = (
        db.query(User, *columns.values())
        .join(VideoProgress, VideoProgress.user_id == User.id)
        .filter(*filters)
        .group_by(User.id)
    )

    total = grouped.count()
    order_column = columns[SORT_FIELDS.get(sort_by, 'last_watched')]
    order = asc(order_column) if sort_order == 'asc' else desc(order_column)
    page = max(page, 1)
    rows = grouped.order_by(order, User.id).offset((page - 1) * limit).limit(limit).all()

    # Actividad reciente de todos los usuarios de la página en una sola consulta
    recent_by_user: Dict[int, list] = {}
    user_ids = [row[0].id for row in rows]
    if user_ids:
        recent_query = db.query(VideoProgress).filter(VideoProgress.user_id.in_(user_ids))
        if course_id:
            recent_query = recent_query.filter(VideoProgress.course_id == course_id)
        for record in recent_query.order_by(desc(VideoProgress.last_watched), desc(VideoProgress.id)):
            recent = recent_by_user.setdefault(record.user_id, [])
            if len(recent) < RECENT_PER_USER:
                recent.append(record)

    data = []
    for user, videos, completed, watch_time, avg_progress, last_watched, active_courses in rows:
        completed = int(completed or 0)
        recent = recent_by_user.get(user.id, [])
        data.append({
            'user_id': user.id,
            'user': {
                'id': user.id,
                'full_name': user.full_name,
                'username': user.username,
                'email': user.email,
            },
            'stats': {
                'total_videos_watched': videos,
                'completed_videos': completed,
                'completion_rate': _rate(completed, videos),
                'total_watch_time': watch_time,
                'total_watch_time_hours': _hours(watch_time),
                'average_progress': round(float(avg_progress or 0.0)),
                'last_watched': last_watched,
                'active_courses': active_courses,
            },
            'recent_activity': [
                {
                    'video_id': r.video_id,
                    'course_id': r.course_id,
                    'progress': r.progress,
                    'is_completed': r.is_completed,
                    'last_watched': r.last_watched,
                }
                for r in recent
            ],
        })

    summary_row = (
        db.query(
            func.count(func.distinct(VideoProgress.user_id)),
            func.count(VideoProgress.id),
            completed_expr,
            func.sum(VideoProgress.total_watch_time),
            func.avg(VideoProgress.progress),
        )
        .select_from(VideoProgress)
        .join(User, VideoProgress.user_id == User.id)
        .filter(*filters)
        .one()
    )
    unique_users, videos_watched, completed_videos, watch_time, avg_progress = summary_row
    videos_watched = videos_watched or 0
    completed_videos = int(completed_videos or 0)

    logger.info(f"Resumen de progreso generado: usuarios={total}, página={page}")
    return {
        'data': data,
        'pagination': {
            'current_page': page,
            'total_pages': math.ceil(total / limit) if limit else 0,
            'total_results': total,
            'results_per_page': limit,
        },
        'summary': {
            'total_unique_users': unique_users or 0,
            'total_videos_watched': videos_watched,
            'total_completed_videos': completed_videos,
            'total_watch_time_hours': _hours(watch_time),
            'average_progress': round(float(avg_progress or 0.0)),
            'overall_completion_rate': _rate(completed_videos, videos_watched),
        },
    }
