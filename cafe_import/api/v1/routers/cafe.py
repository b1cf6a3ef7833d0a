"""
Consulta directa de facturas CAFE en el registro DGI.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from cafe_import.api.deps import get_registry_service
from cafe_import.core.exceptions import ErrorCode
from cafe_import.schemas.cafe import FetchRequest, FetchResult
from cafe_import.services.cafe.registry_service import RegistryService
from cafe_import.utils.logger import logger

router = APIRouter(tags=["CAFE"])


def _result_response(result: FetchResult, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.post(
    "/fetch",
    response_model=FetchResult,
    response_model_exclude_none=True,
    responses={400: {"model": FetchResult}, 500: {"model": FetchResult}},
    summary="Consultar factura por CUFE o QR",
    description="""
    Consulta la factura electrónica en la DGI y la retorna parseada.

    **Entrada:** `cufe`, `identifier` o `qrUrl` (la URL completa del QR).

    **Códigos de error:** INVALID_CUFE, NOT_FOUND, FETCH_ERROR, PARSE_ERROR, UNKNOWN.
    """
)
def fetch_cafe(
    payload: FetchRequest,
    service: RegistryService = Depends(get_registry_service),
):
    try:
        result = service.fetch_cafe(payload)
    except Exception as e:
        logger.exception(f"Error interno consultando CAFE: {e}")
        return _result_response(
            FetchResult(success=False, error="Error interno del servidor", error_code=ErrorCode.UNKNOWN),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if not result.success:
        return _result_response(result, status.HTTP_400_BAD_REQUEST)

    logger.info(f"Factura consultada: {result.invoice.cufe} ({len(result.invoice.items)} items)")
    return _result_response(result, status.HTTP_200_OK)
