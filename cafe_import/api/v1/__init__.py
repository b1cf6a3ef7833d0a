from fastapi import APIRouter

from cafe_import.api.v1.routers import cafe, health, import_flow, imports

# Router principal con prefijo global
api_router = APIRouter(prefix="/api/v1", redirect_slashes=False)


@api_router.get("/", tags=["Root"])
def read_root():
    return {"message": "Bienvenido a la API v1 de CAFE Import"}


api_router.include_router(health.router)
api_router.include_router(cafe.router, prefix="/cafe")
api_router.include_router(import_flow.router, prefix="/cafe/flow")
api_router.include_router(imports.router, prefix="/cafe/imports")
