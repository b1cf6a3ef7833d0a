"""
Validador y normalizador de CUFE (Código Único de Factura Electrónica, DGI Panamá).

Funciones puras, sin efectos secundarios. Reconoce además los enlaces QR
impresos en los comprobantes, que llevan el CUFE en el parámetro chFE.

Formato típico:
    FE01200000045400-2-299934-0900002022050500000000389990117686690628
"""

import re
from typing import Optional
from urllib.parse import quote

from cafe_import.core.config import settings


# FE = Factura Electrónica, NC = Nota de Crédito, ND = Nota de Débito
VALID_PREFIXES = ("FE", "NC", "ND")

_QR_PARAM_PATTERN = re.compile(r"[?&]chFE=([A-Za-z0-9\-]+)", re.IGNORECASE)
_CUFE_URL_PATTERN = re.compile(r"FacturasPorCUFE/([A-Za-z0-9\-]+)", re.IGNORECASE)


def normalize(raw: Optional[str]) -> str:
    """
    Normaliza un CUFE: sin espacios alrededor, en mayúsculas.

    Example:
        >>> normalize("  fe0120000... ")
        'FE0120000...'
    """
    if not raw:
        return ""
    return raw.strip().upper()


def is_well_formed(cufe: Optional[str]) -> bool:
    """
    Valida la forma de un CUFE.

    Debe:
    1. No estar vacío
    2. Comenzar con un prefijo de tipo reconocido (FE, NC, ND)
    3. Tener al menos settings.cufe_min_length caracteres
    """
    clean = normalize(cufe)
    if not clean:
        return False

    if not clean.startswith(VALID_PREFIXES):
        return False

    return len(clean) >= settings.cufe_min_length


def looks_like_qr_link(raw: Optional[str]) -> bool:
    """True si el texto tiene forma de enlace QR del registro (FacturasPorQR)."""
    if not raw:
        return False
    return settings.registry_qr_marker.lower() in raw.lower()


def extract_identifier_from_qr_link(raw: Optional[str]) -> Optional[str]:
    """
    Extrae el CUFE del parámetro chFE de un enlace QR.

    Returns:
        CUFE en mayúsculas o None si el enlace no trae el parámetro
    """
    if not raw:
        return None
    match = _QR_PARAM_PATTERN.search(raw)
    return match.group(1).upper() if match else None


def extract_identifier_from_url(raw: Optional[str]) -> Optional[str]:
    """
    Obtiene un CUFE desde una URL de consulta (FacturasPorCUFE/{cufe}),
    un enlace QR, o el propio CUFE escrito a mano.
    """
    if not raw:
        return None

    match = _CUFE_URL_PATTERN.search(raw)
    if match:
        return match.group(1).upper()

    if looks_like_qr_link(raw):
        return extract_identifier_from_qr_link(raw)

    if is_well_formed(raw):
        return normalize(raw)

    return None


def build_registry_url(cufe: str) -> str:
    """URL canónica de consulta por CUFE."""
    return settings.registry_cufe_url_template.format(cufe=quote(cufe.strip(), safe="-"))


def build_qr_link(cufe: str) -> str:
    """Enlace con la forma de los QR impresos (inverso de extract_identifier_from_qr_link)."""
    return settings.registry_qr_url_template.format(cufe=quote(cufe.strip(), safe="-"))


def format_for_display(cufe: Optional[str], max_length: int = 20) -> str:
    """CUFE truncado con '...' para mostrar en listas."""
    if not cufe:
        return ""
    if len(cufe) <= max_length:
        return cufe
    return f"{cufe[:max_length]}..."
