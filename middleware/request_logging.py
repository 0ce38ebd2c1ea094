# MIDDLEWARE DE LOGGING DE PETICIONES
# Registra cada peticion con su latencia y agrega X-Request-ID a la respuesta

import time
import json
import uuid
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core import metrics
from app.core.logging_config import get_api_logger, log_api_request


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app):
        super().__init__(app)
        self.logger = get_api_logger()

    def generate_request_id(self) -> str:
        return f'req_{uuid.uuid4().hex[:12]}'

    async def dispatch(self, request: Request, call_next):
        request_id = self.generate_request_id()
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception(
                f'Unhandled error: {request.method} {request.url.path}',
                extra={'request_id': request_id}
            )
            response = Response(
                content=json.dumps({'success': False, 'message': 'Internal server error', 'data': None, 'request_id': request_id}),
                status_code=500,
                media_type='application/json'
            )

        elapsed = time.perf_counter() - started
        route = request.scope.get('route')
        endpoint = getattr(route, 'path', request.url.path)

        metrics.api_requests_total.labels(request.method, endpoint, str(response.status_code)).inc()
        metrics.api_request_duration_seconds.labels(request.method, endpoint).observe(elapsed)
        log_api_request(
            self.logger, request.method, endpoint,
            status_code=response.status_code,
            response_time_ms=int(elapsed * 1000),
            request_id=request_id,
        )

        response.headers['X-Request-ID'] = request_id
        return response
