"""
Registro de flujos de importación: uno por sesión de usuario.

El flujo de una sesión se crea en el primer acceso y se descarta cuando la
vista se cierra y el flujo queda en su estado inicial.
"""
from typing import Callable, Dict, Optional

from cafe_import.services.cafe.gateway import PersistenceGateway
from cafe_import.services.cafe.registry_service import RegistryService
from cafe_import.services.import_flow.orchestrator import ImportFlow
from cafe_import.services.import_flow.state_machine import initial_state
from cafe_import.utils.logger import logger


class FlowRegistry:

    def __init__(
        self,
        gateway_factory: Callable[[], PersistenceGateway],
        registry_service_factory: Callable[[], RegistryService] = RegistryService,
        close_delay: Optional[float] = None,
    ):
        self.gateway_factory = gateway_factory
        self.registry_service_factory = registry_service_factory
        self.close_delay = close_delay
        self._flows: Dict[str, ImportFlow] = {}

    def _build(self) -> ImportFlow:
        return ImportFlow(
            gateway=self.gateway_factory(),
            registry=self.registry_service_factory(),
            close_delay=self.close_delay,
        )

    def get(self, session_id: str) -> ImportFlow:
        """Flujo de la sesión; se crea en el primer acceso."""
        flow = self._flows.get(session_id)
        if flow is None:
            flow = self._build()
            self._flows[session_id] = flow
            logger.debug(f"Flujo CAFE creado para la sesión {session_id}")
        return flow

    async def close(self, session_id: str) -> ImportFlow:
        """
        Cierra la vista de la sesión y libera su flujo.

        El flujo se quita del registro solo si sigue siendo el de la sesión,
        no quedó ocupado y terminó en el estado inicial: si durante el cierre
        empezó otra operación, el flujo se conserva.

        Returns:
            El flujo cerrado (para armar la respuesta con sus notificaciones)
        """
        flow = self._flows.get(session_id)
        if flow is None:
            return self._build()

        await flow.close()

        if self._flows.get(session_id) is flow and not flow.is_busy and flow.state == initial_state():
            del self._flows[session_id]
            logger.debug(f"Flujo CAFE liberado para la sesión {session_id}")
        return flow

    def discard(self, session_id: str) -> bool:
        return self._flows.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._flows)
