"""
Máquina de estados del flujo de importación.

reduce(state, event) es pura: no hace I/O, no notifica y no muta el estado
recibido. Los efectos (consultas, notificaciones) viven en orchestrator y
effects.

    pending ──FetchStarted──> fetching ──FetchSucceeded──> parsing
    parsing ──ParseSucceeded──> preview ──ImportStarted──> importing
    importing ──ImportSucceeded──> completed
    pending|fetching|parsing|importing ──Failed──> error
    pending ──DuplicateDetected──> pending (con duplicate_info)
    * ──Reset──> pending (estado inicial)
"""
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional, Union

from cafe_import.core.exceptions import ErrorCode, InvalidTransitionError
from cafe_import.schemas.cafe import Invoice
from cafe_import.schemas.import_flow import (
    BUSY_STATUSES,
    ImportFlowState,
    ImportStatus,
    PriorImport,
    StoreMatch,
)


# ================================================================================
# EVENTOS
# ================================================================================

@dataclass(frozen=True)
class Submitted:
    source_input: Optional[str]
    cufe: Optional[str] = None


@dataclass(frozen=True)
class DuplicateDetected:
    prior: PriorImport


@dataclass(frozen=True)
class FetchStarted:
    pass


@dataclass(frozen=True)
class FetchSucceeded:
    pass


@dataclass(frozen=True)
class ParseSucceeded:
    invoice: Invoice


@dataclass(frozen=True)
class StoreMatched:
    match: StoreMatch


@dataclass(frozen=True)
class Failed:
    error: str
    error_code: ErrorCode = ErrorCode.UNKNOWN


@dataclass(frozen=True)
class ImportStarted:
    pass


@dataclass(frozen=True)
class ImportSucceeded:
    session_id: str
    imported_invoice_id: Optional[str] = None
    item_count: int = 0


@dataclass(frozen=True)
class Reset:
    pass


FlowEvent = Union[
    Submitted,
    DuplicateDetected,
    FetchStarted,
    FetchSucceeded,
    ParseSucceeded,
    StoreMatched,
    Failed,
    ImportStarted,
    ImportSucceeded,
    Reset,
]

DUPLICATE_MESSAGE = "Esta factura ya fue importada"


# ================================================================================
# TRANSICIONES
# ================================================================================

_ALL = frozenset(ImportStatus)

ALLOWED_FROM: Dict[type, FrozenSet[ImportStatus]] = {
    Submitted: frozenset({ImportStatus.pending, ImportStatus.preview, ImportStatus.completed, ImportStatus.error}),
    DuplicateDetected: frozenset({ImportStatus.pending}),
    FetchStarted: frozenset({ImportStatus.pending}),
    FetchSucceeded: frozenset({ImportStatus.fetching}),
    ParseSucceeded: frozenset({ImportStatus.parsing}),
    StoreMatched: frozenset({ImportStatus.preview}),
    Failed: frozenset({ImportStatus.pending, ImportStatus.fetching, ImportStatus.parsing, ImportStatus.importing}),
    ImportStarted: frozenset({ImportStatus.preview}),
    ImportSucceeded: frozenset({ImportStatus.importing}),
    Reset: _ALL,
}


def initial_state() -> ImportFlowState:
    return ImportFlowState()


def _submitted(state: ImportFlowState, event: Submitted) -> ImportFlowState:
    return ImportFlowState(status=ImportStatus.pending, cufe=event.cufe, source_input=event.source_input)


def _duplicate(state: ImportFlowState, event: DuplicateDetected) -> ImportFlowState:
    return state.model_copy(update={
        "status": ImportStatus.pending,
        "duplicate_info": event.prior,
        "error": DUPLICATE_MESSAGE,
        "error_code": ErrorCode.ALREADY_IMPORTED,
    })


def _fetch_started(state: ImportFlowState, event: FetchStarted) -> ImportFlowState:
    return state.model_copy(update={
        "status": ImportStatus.fetching,
        "duplicate_info": None,
        "error": None,
        "error_code": None,
    })


def _fetch_succeeded(state: ImportFlowState, event: FetchSucceeded) -> ImportFlowState:
    return state.model_copy(update={"status": ImportStatus.parsing})


def _parse_succeeded(state: ImportFlowState, event: ParseSucceeded) -> ImportFlowState:
    return state.model_copy(update={
        "status": ImportStatus.preview,
        "invoice": event.invoice,
        "cufe": event.invoice.cufe,
    })


def _store_matched(state: ImportFlowState, event: StoreMatched) -> ImportFlowState:
    return state.model_copy(update={"matched_store": event.match})


def _failed(state: ImportFlowState, event: Failed) -> ImportFlowState:
    return state.model_copy(update={
        "status": ImportStatus.error,
        "error": event.error,
        "error_code": event.error_code,
    })


def _import_started(state: ImportFlowState, event: ImportStarted) -> ImportFlowState:
    return state.model_copy(update={"status": ImportStatus.importing, "error": None, "error_code": None})


def _import_succeeded(state: ImportFlowState, event: ImportSucceeded) -> ImportFlowState:
    return state.model_copy(update={
        "status": ImportStatus.completed,
        "resulting_session_id": event.session_id,
        "imported_invoice_id": event.imported_invoice_id,
        "imported_item_count": event.item_count,
    })


def _reset(state: ImportFlowState, event: Reset) -> ImportFlowState:
    return initial_state()


_HANDLERS: Dict[type, Callable] = {
    Submitted: _submitted,
    DuplicateDetected: _duplicate,
    FetchStarted: _fetch_started,
    FetchSucceeded: _fetch_succeeded,
    ParseSucceeded: _parse_succeeded,
    StoreMatched: _store_matched,
    Failed: _failed,
    ImportStarted: _import_started,
    ImportSucceeded: _import_succeeded,
    Reset: _reset,
}


def can_apply(state: ImportFlowState, event: FlowEvent) -> bool:
    return state.status in ALLOWED_FROM.get(type(event), frozenset())


def reduce(state: ImportFlowState, event: FlowEvent) -> ImportFlowState:
    """
    Aplica un evento al estado y retorna el estado nuevo.

    Raises:
        InvalidTransitionError: Si el evento no está permitido en el estado actual
    """
    if not can_apply(state, event):
        raise InvalidTransitionError(state.status.value, type(event).__name__)
    return _HANDLERS[type(event)](state, event)


# ================================================================================
# SELECTORES
# ================================================================================

def is_loading(state: ImportFlowState) -> bool:
    return state.status in BUSY_STATUSES


def has_error(state: ImportFlowState) -> bool:
    return state.status == ImportStatus.error


def can_import(state: ImportFlowState) -> bool:
    return state.status == ImportStatus.preview and state.invoice is not None and len(state.invoice.items) > 0


def import_complete(state: ImportFlowState) -> bool:
    return state.status == ImportStatus.completed and bool(state.resulting_session_id)
