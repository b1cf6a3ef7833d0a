"""
Orquestador del flujo de importación CAFE.

Un ImportFlow por sesión de usuario. Cada operación avanza la máquina de
estados despachando eventos; las llamadas a colaboradores (registro, base de
datos) corren en el threadpool y son los puntos de suspensión del flujo.

Cada operación toma un número de generación. reset()/close() incrementan la
generación: los resultados que lleguen después de una operación abandonada se
descartan sin tocar el estado.
"""
import asyncio
from typing import Callable, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool

from cafe_import.core.config import settings
from cafe_import.core.exceptions import (
    CafeError,
    ErrorCode,
    FlowBusyError,
    InvalidTransitionError,
    ShoppingImportError,
)
from cafe_import.schemas.cafe import Invoice
from cafe_import.schemas.import_flow import BUSY_STATUSES, ImportFlowState, ImportStatus
from cafe_import.services.cafe.duplicate_guard import DuplicateGuard
from cafe_import.services.cafe.gateway import PersistenceGateway
from cafe_import.services.cafe.registry_service import RegistryService, resolve_identifier
from cafe_import.services.cafe.shopping_aggregator import ShoppingAggregator, select_items
from cafe_import.services.cafe.store_matcher import StoreMatcher
from cafe_import.services.import_flow.effects import FlowNotifier
from cafe_import.services.import_flow.state_machine import (
    DuplicateDetected,
    Failed,
    FetchStarted,
    FetchSucceeded,
    FlowEvent,
    ImportStarted,
    ImportSucceeded,
    ParseSucceeded,
    Reset,
    StoreMatched,
    Submitted,
    initial_state,
    reduce,
)
from cafe_import.utils.logger import logger


Listener = Callable[[ImportFlowState, ImportFlowState, FlowEvent], None]

UNKNOWN_ERROR_MESSAGE = "Error desconocido al consultar la factura"
BUSY_MESSAGE = "Ya hay una consulta o importación en curso"


class ImportFlow:

    def __init__(
        self,
        gateway: PersistenceGateway,
        registry: Optional[RegistryService] = None,
        notifier: Optional[FlowNotifier] = None,
        close_delay: Optional[float] = None,
    ):
        self.gateway = gateway
        self.registry = registry or RegistryService()
        self.guard = DuplicateGuard(gateway)
        self.matcher = StoreMatcher(gateway)
        self.aggregator = ShoppingAggregator(gateway)
        self.close_delay = settings.flow_close_delay_seconds if close_delay is None else close_delay

        self._state = initial_state()
        self._generation = 0
        self._running: Optional[int] = None
        self._listeners: List[Listener] = []

        self.notifier = notifier or FlowNotifier()
        self.subscribe(self.notifier)

    # ================================================================================
    # ESTADO Y SUSCRIPCIONES
    # ================================================================================

    @property
    def state(self) -> ImportFlowState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._running is not None and self._running == self._generation

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registra un listener de transiciones. Retorna la función para desuscribirlo."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, event: FlowEvent, generation: Optional[int] = None) -> bool:
        """
        Aplica el evento si la operación que lo produjo sigue vigente.

        Returns:
            False si el resultado es de una operación abandonada (descartado)
        """
        if generation is not None and generation != self._generation:
            logger.debug(f"Resultado descartado ({type(event).__name__}): la operación fue reiniciada")
            return False

        previous = self._state
        self._state = reduce(previous, event)
        logger.debug(f"Flujo CAFE: {previous.status.value} -> {self._state.status.value} ({type(event).__name__})")

        for listener in list(self._listeners):
            try:
                listener(previous, self._state, event)
            except Exception:
                logger.exception(f"Listener del flujo falló al procesar {type(event).__name__}")
        return True

    def _begin(self) -> int:
        if self.is_busy:
            raise FlowBusyError(BUSY_MESSAGE)
        if self._state.status in BUSY_STATUSES:
            # operación abandonada por close() antes de su reinicio diferido
            self._dispatch(Reset())
        self._generation += 1
        self._running = self._generation
        return self._generation

    def _finish(self, generation: int) -> None:
        if self._running == generation:
            self._running = None

    # ================================================================================
    # OPERACIONES
    # ================================================================================

    async def submit(self, raw: Optional[str], force: bool = False) -> ImportFlowState:
        """
        Consulta una factura por CUFE o enlace QR y la deja en vista previa.

        Args:
            raw: CUFE o URL del QR tal como la ingresó el usuario
            force: Importar aunque el CUFE ya figure como importado

        Raises:
            FlowBusyError: Si hay una consulta o importación en curso
        """
        generation = self._begin()
        try:
            await self._run_submit(raw, force, generation)
        finally:
            self._finish(generation)
        return self._state

    async def _run_submit(self, raw: Optional[str], force: bool, generation: int) -> None:
        try:
            cufe = resolve_identifier(raw)
        except CafeError as e:
            self._dispatch(Submitted(source_input=raw))
            self._dispatch(Failed(e.message, e.code))
            return

        self._dispatch(Submitted(source_input=raw, cufe=cufe))

        if not force:
            try:
                prior = await run_in_threadpool(self.guard.check_prior_import, cufe)
            except Exception as e:
                logger.error(f"Error verificando importación previa de {cufe}: {e}")
                self._dispatch(Failed(UNKNOWN_ERROR_MESSAGE, ErrorCode.UNKNOWN), generation)
                return

            if prior.is_imported:
                self._dispatch(DuplicateDetected(prior), generation)
                return

        if not self._dispatch(FetchStarted(), generation):
            return

        page = await self._step(self.registry.download, raw, generation)
        if page is None or not self._dispatch(FetchSucceeded(), generation):
            return

        invoice = await self._step(self.registry.parse_page, page, generation)
        if invoice is None or not self._dispatch(ParseSucceeded(invoice), generation):
            return

        match = await run_in_threadpool(self.matcher.match_by_tax_id, invoice.issuer.tax_id)
        if match:
            self._dispatch(StoreMatched(match), generation)

    async def _step(self, func, arg, generation: int):
        """Ejecuta un paso del pipeline; en error despacha Failed y retorna None."""
        try:
            return await run_in_threadpool(func, arg)
        except CafeError as e:
            self._dispatch(Failed(e.message, e.code), generation)
        except Exception as e:
            logger.exception(f"Error inesperado en el flujo CAFE: {e}")
            self._dispatch(Failed(UNKNOWN_ERROR_MESSAGE, ErrorCode.UNKNOWN), generation)
        return None

    async def confirm_import(
        self,
        selected_line_numbers: Optional[Iterable[int]] = None,
        store_id: Optional[str] = None,
        store_name: Optional[str] = None,
    ) -> ImportFlowState:
        """
        Importa la factura en vista previa como sesión de compras.

        Args:
            selected_line_numbers: Líneas a importar; vacío o None = todas
            store_id: Tienda elegida por el usuario (reemplaza la asociada)
            store_name: Nombre libre de la tienda

        Raises:
            FlowBusyError: Si hay una operación en curso
            InvalidTransitionError: Si el flujo no está en vista previa
        """
        state = self._state
        if state.status != ImportStatus.preview or state.invoice is None:
            raise InvalidTransitionError(state.status.value, ImportStarted.__name__)

        generation = self._begin()
        try:
            await self._run_import(state, state.invoice, selected_line_numbers, store_id, store_name, generation)
        finally:
            self._finish(generation)
        return self._state

    async def _run_import(
        self,
        state: ImportFlowState,
        invoice: Invoice,
        selected_line_numbers: Optional[Iterable[int]],
        store_id: Optional[str],
        store_name: Optional[str],
        generation: int,
    ) -> None:
        self._dispatch(ImportStarted(), generation)

        items = select_items(invoice, selected_line_numbers)
        if not items:
            self._dispatch(Failed("Selecciona al menos un producto para importar", ErrorCode.IMPORT_ERROR), generation)
            return

        try:
            result = await self.aggregator.apply(invoice, items, state.matched_store, store_id, store_name)
        except ShoppingImportError as e:
            if e.session_id:
                await self._discard_session(e.session_id, e.items_added)
            self._dispatch(Failed(e.message, ErrorCode.IMPORT_ERROR), generation)
            return

        try:
            record = await run_in_threadpool(self.guard.record_import, invoice.cufe, result.session_id, invoice)
        except Exception as e:
            logger.error(f"Error registrando la importación de {invoice.cufe}: {e}")
            await self._discard_session(result.session_id, result.items_added)
            self._dispatch(Failed(f"No se pudo registrar la importación: {e}", ErrorCode.IMPORT_ERROR), generation)
            return

        self._dispatch(ImportSucceeded(result.session_id, record.id, result.items_added), generation)

    async def _discard_session(self, session_id: str, items_added: int) -> None:
        """Compensación: descarta la sesión creada a medias (mejor esfuerzo)."""
        try:
            discarded = await run_in_threadpool(self.gateway.discard_shopping_session, session_id)
        except Exception as e:
            logger.error(
                f"No se pudo descartar la sesión incompleta {session_id} "
                f"({items_added} items agregados); requiere conciliación manual: {e}"
            )
            return

        if discarded:
            logger.warning(f"Sesión incompleta {session_id} descartada ({items_added} items agregados)")
        else:
            logger.warning(f"Sesión incompleta {session_id} ya no existía")

    def reset(self) -> ImportFlowState:
        """Vuelve al estado inicial. Idempotente; descarta resultados en vuelo."""
        self._generation += 1
        self._running = None
        self._dispatch(Reset())
        return self._state

    async def close(self) -> ImportFlowState:
        """
        Cierre de la vista: abandona cualquier operación en curso y reinicia
        el flujo tras close_delay, salvo que en ese lapso empiece otra
        operación.
        """
        self._generation += 1
        self._running = None
        generation = self._generation

        if self.close_delay > 0:
            await asyncio.sleep(self.close_delay)

        if generation == self._generation:
            self._dispatch(Reset())
        return self._state
