"""
Configuración central de pytest y fixtures compartidas para todos los tests.

Proporciona:
- Fixtures de factura (HTML del registro y XML rFE)
- Base de datos SQLite en memoria
- Cliente HTTP falso para el registro DGI
- Gateway de persistencia en memoria para el flujo de importación
- Cliente HTTP de prueba de la API
"""
import html
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import cafe_import.models  # noqa: F401
from cafe_import.api.deps import get_registry_service
from cafe_import.db.base import Base
from cafe_import.db.session import get_db
from cafe_import.main import create_app
from cafe_import.schemas.import_flow import ImportRecord, PriorImport
from cafe_import.services.cafe.gateway import SqlAlchemyGateway
from cafe_import.services.cafe.registry_fetcher import RegistryFetcher
from cafe_import.services.cafe.registry_service import RegistryService
from cafe_import.services.import_flow.registry import FlowRegistry


FIXTURES = Path(__file__).parent / "fixtures"

SAMPLE_CUFE = "FE01200000045400-2-299934-0900002022050500000000389990117686690628"
SAMPLE_ISSUER_RUC = "45400-2-299934"


# ==================== FACTURA DE EJEMPLO ====================

@pytest.fixture
def sample_cufe() -> str:
    return SAMPLE_CUFE


@pytest.fixture
def issuer_ruc() -> str:
    return SAMPLE_ISSUER_RUC


@pytest.fixture
def sample_xml() -> str:
    """XML rFE con 3 items: subtotal 10.00, ITBMS 0.70, total 10.70."""
    return (FIXTURES / "factura_rfe.xml").read_text(encoding="utf-8")


@pytest.fixture
def sample_html(sample_xml) -> str:
    """Página de consulta con el XML escapado en un campo oculto."""
    template = (FIXTURES / "consulta_dgi.html").read_text(encoding="utf-8")
    return template.replace("__XML__", html.escape(sample_xml.strip()))


@pytest.fixture
def not_found_html() -> str:
    return (FIXTURES / "no_encontrada.html").read_text(encoding="utf-8")


@pytest.fixture
def rendered_html() -> str:
    """Página de consulta sin XML: emisor en <dl> y líneas en la tabla."""
    return (FIXTURES / "consulta_dgi_renderizada.html").read_text(encoding="utf-8")


# ==================== REGISTRO DGI FALSO ====================

class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = ""):
        self.status_code = status_code
        self.text = text


class FakeHttp:
    """
    Sustituto de requests.Session: registra cada GET y responde con la
    respuesta configurada (o lanza la excepción configurada).

    Si gate no es None, cada GET espera a que se libere; sirve para probar
    operaciones en vuelo.
    """

    def __init__(self, response: FakeResponse = None, error: Exception = None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []
        self.gate = None

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def registry_http(sample_html) -> FakeHttp:
    return FakeHttp(FakeResponse(200, sample_html))


@pytest.fixture
def registry_service(registry_http) -> RegistryService:
    return RegistryService(fetcher=RegistryFetcher(http=registry_http, timeout=5))


@pytest.fixture
def blocking_http(registry_http) -> FakeHttp:
    """Registro que no responde hasta que el test libera registry_http.gate."""
    registry_http.gate = threading.Event()
    return registry_http


# ==================== PERSISTENCIA EN MEMORIA ====================

class FakeGateway:
    """PersistenceGateway en memoria que registra cada llamada."""

    def __init__(self):
        self.imported = {}
        self.stores = {}
        self.sessions = {}
        self.items = []
        self.records = []
        self.discarded = []
        self.calls = []
        self.fail_on_item = None
        self.fail_create_session = False
        self.fail_discard = False

    def check_prior_import(self, cufe):
        self.calls.append(("check_prior_import", cufe))
        return self.imported.get(cufe, PriorImport(is_imported=False))

    def record_import(self, cufe, session_id, invoice=None):
        self.calls.append(("record_import", cufe))
        record = ImportRecord(
            id=f"imp-{len(self.records) + 1}",
            cufe=cufe,
            imported_at=datetime.now(timezone.utc),
            shopping_session_id=session_id,
        )
        self.records.append(record)
        self.imported[cufe] = PriorImport(
            is_imported=True,
            imported_invoice_id=record.id,
            shopping_session_id=session_id,
            imported_at=record.imported_at,
        )
        return record

    def match_store_by_tax_id(self, tax_id):
        self.calls.append(("match_store_by_tax_id", tax_id))
        return self.stores.get(tax_id)

    def create_shopping_session(self, data):
        self.calls.append(("create_shopping_session", data.store_name))
        if self.fail_create_session:
            raise RuntimeError("base de datos no disponible")
        session_id = f"session-{len(self.sessions) + 1}"
        self.sessions[session_id] = data
        return session_id

    def add_shopping_item(self, data):
        self.calls.append(("add_shopping_item", data.line_number))
        if self.fail_on_item is not None and len(self.items) == self.fail_on_item:
            raise RuntimeError("timeout agregando item")
        self.items.append(data)

    def discard_shopping_session(self, session_id):
        self.calls.append(("discard_shopping_session", session_id))
        if self.fail_discard:
            raise RuntimeError("no se pudo descartar")
        self.discarded.append(session_id)
        return self.sessions.pop(session_id, None) is not None


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


# ==================== BASE DE DATOS ====================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    """Sesión de base de datos para pruebas."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def gateway(session_factory) -> SqlAlchemyGateway:
    return SqlAlchemyGateway(session_factory)


# ==================== API ====================

@pytest.fixture
def app(session_factory, gateway, registry_service):
    application = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_registry_service] = lambda: registry_service
    application.state.flow_registry = FlowRegistry(
        gateway_factory=lambda: gateway,
        registry_service_factory=lambda: registry_service,
        close_delay=0,
    )
    return application


@pytest.fixture
def client(app):
    """Cliente HTTP para pruebas de endpoints."""
    return TestClient(app)


@pytest.fixture
def anyio_backend():
    return "asyncio"
