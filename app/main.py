# app/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.api.v1.endpoints import health, metrics, video_progress
from app.core.config import settings
from app.core.logging_config import setup_logging
from middleware.request_logging import RequestLoggingMiddleware
import logging

# Configurar logging al inicio de la aplicacion
setup_logging()
logger = logging.getLogger('app')

app = FastAPI(
    title='Watch Progress API',
    description='''
    ## Backend de progreso de video

    **Servicios Disponibles:**
    - **Health Check**: Monitoreo de estado de servicios
    - **Video Progress**: Progreso de visualización por usuario, curso y video
    - **Admin Dashboards**: Progreso agregado por video y por usuario
    - **Metrics**: Metricas para Prometheus

    **Reglas de progreso:**
    - El progreso y el tiempo de visualización nunca retroceden
    - Checkpoints cada 10% del video, sin duplicados
    - Un video se completa con 90% de progreso y al menos 60s vistos
    ''',
    version='1.0.0',
    openapi_url='/openapi.json',
    docs_url='/docs',
    redoc_url='/redoc'
)

logger.info('Watch Progress API starting up')

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

# Middleware de logging para capturar todas las requests
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Todas las respuestas de error usan el mismo sobre {success, message, data}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={'success': False, 'message': str(exc.detail), 'data': None},
        headers=getattr(exc, 'headers', None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    fields = ', '.join('.'.join(str(p) for p in err.get('loc', ())) for err in errors)
    logger.warning(f"Petición inválida en {request.url.path}: {fields}")
    return JSONResponse(
        status_code=422,
        content={
            'success': False,
            'message': f'Invalid request: {fields}',
            'data': None,
            'errors': [{'loc': list(err.get('loc', ())), 'msg': err.get('msg')} for err in errors],
        },
    )


# Incluir rutas
app.include_router(health.router, prefix='/api/v1', tags=['Health Check'])
app.include_router(video_progress.router, prefix='/api/v1/video-progress', tags=['Video Progress'])
app.include_router(metrics.router, tags=['Metrics'])


@app.get('/')
async def root():
    return {
        'message': 'Watch Progress API',
        'status': 'operativo',
        'version': '1.0.0',
        'docs': '/docs',
        'available_services': ['health', 'video-progress', 'metrics'],
    }


if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=8000)
