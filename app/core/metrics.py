# app/core/metrics.py
from prometheus_client import Counter, Histogram

# Métricas de Prometheus para el API
api_requests_total = Counter(
    'watch_progress_api_requests_total',
    'Total API requests',
    ['method', 'endpoint', 'status']
)

api_request_duration_seconds = Histogram(
    'watch_progress_api_request_duration_seconds',
    'API request duration in seconds',
    ['method', 'endpoint']
)

# Métricas del módulo de progreso
progress_updates_total = Counter(
    'video_progress_updates_total',
    'Video progress updates by outcome',
    ['outcome']  # created | updated | skipped_role
)

checkpoints_recorded_total = Counter(
    'video_progress_checkpoints_recorded_total',
    'Checkpoints appended to progress records'
)

checkpoints_rejected_total = Counter(
    'video_progress_checkpoints_rejected_total',
    'Checkpoints rejected by the server',
    ['reason']  # invalid | ahead_of_progress
)

regressions_prevented_total = Counter(
    'video_progress_regressions_prevented_total',
    'Incoming updates whose progress was lower than the stored value'
)

progress_resets_total = Counter(
    'video_progress_resets_total',
    'Progress records reset to zero'
)
