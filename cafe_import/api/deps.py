# cafe_import/api/deps.py
from fastapi import Depends, Header, Request

from cafe_import.services.cafe.registry_service import RegistryService
from cafe_import.services.import_flow.orchestrator import ImportFlow
from cafe_import.services.import_flow.registry import FlowRegistry

DEFAULT_SESSION_ID = "default"


def get_registry_service() -> RegistryService:
    return RegistryService()


def get_flow_registry(request: Request) -> FlowRegistry:
    return request.app.state.flow_registry


def get_session_id(x_session_id: str = Header(DEFAULT_SESSION_ID, alias="X-Session-Id")) -> str:
    """Sesión del usuario: cada una tiene su propio flujo de importación."""
    return x_session_id.strip() or DEFAULT_SESSION_ID


def get_import_flow(
    session_id: str = Depends(get_session_id),
    registry: FlowRegistry = Depends(get_flow_registry),
) -> ImportFlow:
    return registry.get(session_id)
