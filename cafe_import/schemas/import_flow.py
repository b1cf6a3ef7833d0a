# cafe_import/schemas/import_flow.py
"""
Esquemas del flujo de importación: estado, duplicados, tienda asociada.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from cafe_import.core.exceptions import ErrorCode
from cafe_import.schemas.cafe import Invoice
from cafe_import.schemas.common import CamelModel


class ImportStatus(str, Enum):
    pending = "pending"        # Esperando CUFE
    fetching = "fetching"      # Consultando la DGI
    parsing = "parsing"        # Extrayendo y parseando XML
    preview = "preview"        # Vista previa para el usuario
    importing = "importing"    # Creando sesión de compras
    completed = "completed"    # Importada
    error = "error"


BUSY_STATUSES = frozenset({ImportStatus.fetching, ImportStatus.parsing, ImportStatus.importing})


class StoreMatch(CamelModel):
    store_id: str
    store_name: str
    is_verified: bool = False


class PriorImport(CamelModel):
    """Resultado del Duplicate Guard"""
    is_imported: bool
    imported_invoice_id: Optional[str] = None
    shopping_session_id: Optional[str] = None
    imported_at: Optional[datetime] = None


class ImportRecord(CamelModel):
    id: str
    cufe: str
    imported_at: datetime
    shopping_session_id: Optional[str] = None


class ImportFlowState(CamelModel):
    """Registro único del flujo en curso (uno por sesión de usuario)"""
    status: ImportStatus = ImportStatus.pending
    cufe: Optional[str] = None
    source_input: Optional[str] = None
    invoice: Optional[Invoice] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    matched_store: Optional[StoreMatch] = None
    duplicate_info: Optional[PriorImport] = None
    resulting_session_id: Optional[str] = None
    imported_invoice_id: Optional[str] = None
    imported_item_count: int = 0


# =====================================================
# REQUEST / RESPONSE SCHEMAS
# =====================================================

class SubmitRequest(CamelModel):
    """CUFE, identificador o URL de QR. force=True importa aunque ya exista (escape hatch)"""
    cufe: Optional[str] = None
    identifier: Optional[str] = None
    qr_url: Optional[str] = None
    force: bool = False

    @property
    def raw_input(self) -> Optional[str]:
        return self.qr_url or self.identifier or self.cufe


class ConfirmImportRequest(CamelModel):
    """Líneas a importar (vacío = todas) y tienda opcional elegida por el usuario"""
    selected_line_numbers: List[int] = Field(default_factory=list)
    store_id: Optional[str] = None
    store_name: Optional[str] = None


class Notification(CamelModel):
    level: str
    message: str
    created_at: datetime


class ImportFlowResponse(CamelModel):
    state: ImportFlowState
    is_loading: bool
    can_import: bool
    notifications: List[Notification] = []
