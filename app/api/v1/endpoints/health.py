# app/api/v1/endpoints/health.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.db.session import get_db
from datetime import datetime, timezone
import logging

router = APIRouter()
logger = logging.getLogger('app.api.health')


@router.get("/health", summary="Verifica el estado completo del servicio")
def check_health(db: Session = Depends(get_db)):
    """
    Endpoint de Health Check.
    Verifica que la API está activa y la conexión a base de datos.
    """
    health_status = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": {"status": "unknown"},
        }
    }

    # Verificar conexión a base de datos
    try:
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "ok"}
    except SQLAlchemyError as e:
        logger.error(f"Health check: base de datos no disponible: {str(e)}")
        health_status["status"] = "degraded"
        health_status["services"]["database"] = {"status": "error", "message": str(e)}

    return health_status
