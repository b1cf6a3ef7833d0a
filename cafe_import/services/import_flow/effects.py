"""
Capa de efectos del flujo: observa transiciones y produce notificaciones
para el usuario. La máquina de estados no sabe que existe.
"""
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional

from cafe_import.core.config import settings
from cafe_import.schemas.import_flow import ImportFlowState, Notification
from cafe_import.services.import_flow.state_machine import (
    DuplicateDetected,
    Failed,
    FlowEvent,
    ImportSucceeded,
    ParseSucceeded,
    StoreMatched,
)
from cafe_import.utils.logger import logger


class FlowNotifier:
    """
    Listener del flujo. Guarda las últimas notificaciones en un buffer
    acotado que la API entrega (y vacía) en cada respuesta.
    """

    def __init__(self, buffer_size: Optional[int] = None):
        self._buffer: Deque[Notification] = deque(maxlen=buffer_size or settings.notification_buffer_size)

    def __call__(self, previous: ImportFlowState, current: ImportFlowState, event: FlowEvent) -> None:
        if isinstance(event, DuplicateDetected):
            self._emit("info", "Esta factura ya fue importada anteriormente")
        elif isinstance(event, ParseSucceeded):
            self._emit("success", "Factura encontrada")
        elif isinstance(event, StoreMatched):
            self._emit("info", f"Tienda asociada: {event.match.store_name}")
        elif isinstance(event, ImportSucceeded):
            self._emit("success", f"Factura importada exitosamente con {event.item_count} productos")
        elif isinstance(event, Failed):
            self._emit("error", event.error)

    def _emit(self, level: str, message: str) -> None:
        if level == "error":
            logger.error(f"[flujo CAFE] {message}")
        else:
            logger.info(f"[flujo CAFE] {message}")
        self._buffer.append(Notification(level=level, message=message, created_at=datetime.now(timezone.utc)))

    @property
    def pending(self) -> List[Notification]:
        return list(self._buffer)

    def drain(self) -> List[Notification]:
        notifications = list(self._buffer)
        self._buffer.clear()
        return notifications
