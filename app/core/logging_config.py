import logging
import logging.config
import json
from datetime import datetime
from typing import Dict, Any
from pathlib import Path

from app.core.config import settings


class StructuredFormatter(logging.Formatter):
    """
    Formatter que genera logs en formato JSON estructurado
    para facilitar la integración con sistemas de monitoreo
    """

    EXTRA_FIELDS = (
        'service', 'endpoint', 'method', 'status_code', 'response_time_ms',
        'request_id', 'user_id', 'course_id', 'video_id', 'operation', 'error_code',
    )

    def format(self, record: logging.LogRecord) -> str:
        """
        Formatea el registro de log como JSON estructurado
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread": record.thread,
        }

        # Agregar información adicional si está disponible
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Agregar información de excepción si existe
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def _file_handler(filename: str, level: str = "INFO", backup_count: int = 10) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "structured",
        "filename": filename,
        "maxBytes": 10485760,  # 10MB
        "backupCount": backup_count,
        "level": level,
        "encoding": "utf-8",
    }


def setup_logging(log_dir: str = None) -> None:
    """
    Configura el sistema de logging con rotación y formato estructurado
    para integración con sistemas de monitoreo
    """
    # Crear directorio de logs si no existe
    log_dir = Path(log_dir or settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
            },
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": "INFO",
                "stream": "ext://sys.stdout"
            },
            "file_all": _file_handler(str(log_dir / "app.log")),
            "file_errors": _file_handler(str(log_dir / "errors.log"), level="ERROR"),
            "file_progress": _file_handler(str(log_dir / "progress.log"), backup_count=5),
            "file_api": _file_handler(str(log_dir / "api.log")),
        },
        "loggers": {
            "app": {
                "level": "INFO",
                "handlers": ["console", "file_all", "file_errors"],
                "propagate": False
            },
            "app.video_progress": {
                "level": "INFO",
                "handlers": ["console", "file_progress", "file_errors"],
                "propagate": False
            },
            "app.tracking": {
                "level": "INFO",
                "handlers": ["console", "file_progress", "file_errors"],
                "propagate": False
            },
            "app.api": {
                "level": "INFO",
                "handlers": ["console", "file_api", "file_errors"],
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console", "file_api"],
                "propagate": False
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["file_api"],
                "propagate": False
            },
            "fastapi": {
                "level": "INFO",
                "handlers": ["console", "file_api"],
                "propagate": False
            }
        },
        "root": {
            "level": "WARNING",
            "handlers": ["console", "file_all"]
        }
    }

    # Aplicar configuración
    logging.config.dictConfig(logging_config)

    # Logger principal de la aplicación
    logger = logging.getLogger("app")
    logger.info("Logging system initialized successfully")
    logger.info(f"Log files will be stored in: {log_dir.absolute()}")


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter personalizado para agregar contexto adicional a los logs
    """

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """
        Procesa el mensaje y kwargs antes del logging
        """
        # Agregar contexto del adapter
        if self.extra:
            kwargs.setdefault('extra', {}).update(self.extra)

        return msg, kwargs


def get_api_logger() -> LoggerAdapter:
    """
    Obtiene un logger específico para operaciones de API
    """
    base_logger = logging.getLogger("app.api")
    return LoggerAdapter(base_logger, {"service": "api"})


def log_api_request(logger: logging.Logger, method: str, endpoint: str,
                   status_code: int = None, response_time_ms: int = None,
                   user_id: str = None, **kwargs):
    """
    Registra información de una petición API con contexto estructurado

    Args:
        logger: Logger a usar
        method: Método HTTP
        endpoint: Endpoint accedido
        status_code: Código de respuesta HTTP
        response_time_ms: Tiempo de respuesta en millisegundos
        user_id: ID del usuario (si está autenticado)
        **kwargs: Información adicional
    """
    extra = {
        "method": method,
        "endpoint": endpoint,
        "service": "api"
    }

    if status_code:
        extra["status_code"] = status_code
    if response_time_ms is not None:
        extra["response_time_ms"] = response_time_ms
    if user_id:
        extra["user_id"] = user_id

    extra.update(kwargs)

    if status_code and status_code >= 500:
        logger.error(f"API request failed: {method} {endpoint}", extra=extra)
    elif status_code and status_code >= 400:
        logger.warning(f"API request rejected: {method} {endpoint}", extra=extra)
    else:
        logger.info(f"API request: {method} {endpoint}", extra=extra)


def log_progress_event(logger: logging.Logger, operation: str,
                       user_id: int = None, course_id: str = None,
                       video_id: str = None, success: bool = True, **kwargs):
    """
    Registra una operación sobre el progreso de video

    Args:
        logger: Logger a usar
        operation: Tipo de operación (get, update, reset, list)
        user_id: ID del usuario dueño del registro
        course_id: ID del curso
        video_id: ID del video
        success: Si la operación fue exitosa
        **kwargs: Información adicional
    """
    extra = {
        "operation": operation,
        "service": "video_progress",
    }

    if user_id is not None:
        extra["user_id"] = user_id
    if course_id:
        extra["course_id"] = course_id
    if video_id:
        extra["video_id"] = video_id

    extra.update(kwargs)

    if success:
        logger.info(f"Video progress operation successful: {operation}", extra=extra)
    else:
        logger.error(f"Video progress operation failed: {operation}", extra=extra)
