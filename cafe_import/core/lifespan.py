from contextlib import asynccontextmanager

from fastapi import FastAPI

from cafe_import.core.config import settings
from cafe_import.db.base import Base
from cafe_import.db.session import engine
from cafe_import.services.cafe.gateway import SqlAlchemyGateway
from cafe_import.services.import_flow.registry import FlowRegistry
from cafe_import.utils.logger import logger

# Registra los modelos en Base.metadata
import cafe_import.models  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Maneja startup/shutdown de la app.

    El registro de flujos vive en app.state: un flujo de importación por
    sesión de usuario mientras el proceso esté arriba.
    """
    logger.info(" Iniciando CAFE Import Backend...")

    if settings.environment == "development":
        Base.metadata.create_all(bind=engine)

    if not hasattr(app.state, "flow_registry"):
        app.state.flow_registry = FlowRegistry(gateway_factory=SqlAlchemyGateway)

    try:
        yield
    finally:
        logger.info(f" Apagando CAFE Import Backend ({len(app.state.flow_registry)} flujos activos)")
