"""
Health check del servicio.
"""
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from cafe_import.core.config import settings
from cafe_import.db.session import get_db
from cafe_import.utils.logger import logger

router = APIRouter(tags=["Health Check"])


@router.get("/health", summary="Estado del servicio")
def health(db: Session = Depends(get_db)) -> Dict:
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check: base de datos no disponible: {e}")
        database = "error"

    return {
        "status": "healthy" if database == "ok" else "error",
        "environment": settings.environment,
        "database": database,
    }
