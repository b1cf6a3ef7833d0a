from fastapi import FastAPI

from cafe_import.api.v1 import api_router
from cafe_import.core.lifespan import lifespan
from cafe_import.utils.cors import setup_cors


def create_app() -> FastAPI:
    """
    Factory function que crea y configura la aplicación FastAPI.
    """
    app = FastAPI(
        title="CAFE Import Backend",
        version="1.0.0",
        description="Consulta de facturas electrónicas (CAFE) en la DGI e importación a sesiones de compras",
        lifespan=lifespan,
    )

    setup_cors(app)

    app.include_router(api_router)

    return app


app = create_app()
