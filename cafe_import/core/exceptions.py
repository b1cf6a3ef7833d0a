"""
Taxonomía de errores del flujo de importación de facturas CAFE.

Cada excepción lleva un código legible por máquina (ErrorCode) y un mensaje
en español listo para mostrarse al usuario.
"""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    INVALID_CUFE = "INVALID_CUFE"
    NOT_FOUND = "NOT_FOUND"
    FETCH_ERROR = "FETCH_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    ALREADY_IMPORTED = "ALREADY_IMPORTED"
    IMPORT_ERROR = "IMPORT_ERROR"
    UNKNOWN = "UNKNOWN"


class CafeError(Exception):
    """Error base del pipeline: código + mensaje para el usuario."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class InvalidCufeError(CafeError):
    code = ErrorCode.INVALID_CUFE


class InvoiceNotFoundError(CafeError):
    code = ErrorCode.NOT_FOUND


class RegistryFetchError(CafeError):
    code = ErrorCode.FETCH_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class XmlExtractionError(CafeError):
    code = ErrorCode.PARSE_ERROR


class InvoiceParseError(CafeError):
    code = ErrorCode.PARSE_ERROR


class ShoppingImportError(CafeError):
    """
    Falla durante la creación de la sesión de compras o la adición de items.

    session_id y items_added describen el prefijo que alcanzó a persistirse.
    """
    code = ErrorCode.IMPORT_ERROR

    def __init__(self, message: str, session_id: Optional[str] = None, items_added: int = 0):
        super().__init__(message)
        self.session_id = session_id
        self.items_added = items_added


class FlowBusyError(Exception):
    """Se intentó reenviar mientras el flujo está consultando o importando."""


class InvalidTransitionError(Exception):
    """Evento no permitido desde el estado actual del flujo."""

    def __init__(self, status: str, event: str):
        super().__init__(f"Evento '{event}' no permitido en estado '{status}'")
        self.status = status
        self.event = event
