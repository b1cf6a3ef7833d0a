"""
Flujo de importación CAFE -> sesión de compras.

Cada sesión de usuario (header X-Session-Id) tiene un único flujo. Todas las
respuestas retornan el estado completo del flujo y las notificaciones
generadas desde la respuesta anterior.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from cafe_import.api.deps import get_flow_registry, get_import_flow, get_session_id
from cafe_import.core.exceptions import FlowBusyError, InvalidTransitionError
from cafe_import.schemas.common import ErrorResponse
from cafe_import.schemas.import_flow import ConfirmImportRequest, ImportFlowResponse, SubmitRequest
from cafe_import.services.import_flow import state_machine
from cafe_import.services.import_flow.orchestrator import ImportFlow
from cafe_import.services.import_flow.registry import FlowRegistry

router = APIRouter(tags=["Flujo de Importación"])


def build_response(flow: ImportFlow) -> ImportFlowResponse:
    state = flow.state
    return ImportFlowResponse(
        state=state,
        is_loading=state_machine.is_loading(state),
        can_import=state_machine.can_import(state),
        notifications=flow.notifier.drain(),
    )


@router.get("", response_model=ImportFlowResponse, summary="Estado del flujo")
def get_flow(flow: ImportFlow = Depends(get_import_flow)):
    return build_response(flow)


@router.post(
    "/submit",
    response_model=ImportFlowResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Consultar factura para importar",
    description="""
    Valida el CUFE (o la URL del QR), verifica que no haya sido importado y
    consulta la factura en la DGI. Termina en `preview`, en `error`, o en
    `pending` con `duplicateInfo` si ya fue importada (usar `force=true` para
    importarla de todos modos).
    """
)
async def submit(payload: SubmitRequest, flow: ImportFlow = Depends(get_import_flow)):
    try:
        await flow.submit(payload.raw_input, force=payload.force)
    except FlowBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return build_response(flow)


@router.post(
    "/confirm",
    response_model=ImportFlowResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Importar factura en vista previa",
    description="Crea la sesión de compras con las líneas seleccionadas (vacío = todas).",
)
async def confirm(payload: ConfirmImportRequest, flow: ImportFlow = Depends(get_import_flow)):
    try:
        await flow.confirm_import(
            selected_line_numbers=payload.selected_line_numbers,
            store_id=payload.store_id,
            store_name=payload.store_name,
        )
    except (FlowBusyError, InvalidTransitionError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return build_response(flow)


@router.post("/reset", response_model=ImportFlowResponse, summary="Reiniciar flujo")
def reset(flow: ImportFlow = Depends(get_import_flow)):
    flow.reset()
    return build_response(flow)


@router.post("/close", response_model=ImportFlowResponse, summary="Cerrar vista de importación")
async def close(
    session_id: str = Depends(get_session_id),
    registry: FlowRegistry = Depends(get_flow_registry),
):
    flow = await registry.close(session_id)
    return build_response(flow)
