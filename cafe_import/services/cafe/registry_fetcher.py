"""
Cliente HTTP del registro de facturas electrónicas (DGI).

Una sola petición GET por invocación, sin reintentos ni caché: una factura
puede ser anulada o enmendada en el origen y la intermitencia de red se
reporta al llamador en lugar de ocultarse.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

from cafe_import.core.config import settings
from cafe_import.core.exceptions import (
    CafeError,
    ErrorCode,
    InvalidCufeError,
    InvoiceNotFoundError,
    RegistryFetchError,
)
from cafe_import.services.cafe import cufe_validator
from cafe_import.utils.logger import logger


@dataclass(frozen=True)
class RegistryPage:
    """Respuesta cruda del registro"""
    cufe: str
    source_url: str
    html: str


class RegistryFetcher:
    """
    Consulta la página de una factura en el registro.

    Acepta un CUFE o la URL completa de un QR. La URL del QR se usa tal cual
    y de ella se deriva el CUFE para el resto del flujo.
    """

    ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    ACCEPT_LANGUAGE = "es-PA,es;q=0.9,en;q=0.8"

    def __init__(self, http: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.http = http or requests.Session()
        self.timeout = timeout if timeout is not None else settings.registry_timeout_seconds

    def resolve(self, cufe_or_url: str) -> Tuple[str, str]:
        """
        Determina (cufe, url) para la consulta.

        Raises:
            InvalidCufeError: Si es un enlace QR sin parámetro chFE
        """
        raw = (cufe_or_url or "").strip()

        if cufe_validator.looks_like_qr_link(raw):
            cufe = cufe_validator.extract_identifier_from_qr_link(raw)
            if not cufe:
                raise InvalidCufeError("URL del QR inválida: no contiene el parámetro chFE")
            return cufe, raw

        cufe = cufe_validator.normalize(raw)
        return cufe, cufe_validator.build_registry_url(cufe)

    def fetch(self, cufe_or_url: str) -> RegistryPage:
        """
        Descarga el HTML de la factura.

        Returns:
            RegistryPage con el CUFE, la URL consultada y el HTML

        Raises:
            InvalidCufeError: enlace QR sin CUFE
            InvoiceNotFoundError: HTTP 404
            RegistryFetchError: cualquier otro estado no 2xx
            CafeError(UNKNOWN): error de transporte o timeout
        """
        cufe, url = self.resolve(cufe_or_url)

        headers = {
            "User-Agent": settings.registry_user_agent,
            "Accept": self.ACCEPT,
            "Accept-Language": self.ACCEPT_LANGUAGE,
            "Cache-Control": "no-cache",
        }

        logger.info(f"Consultando registro DGI: {url}")

        try:
            response = self.http.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error de transporte consultando la DGI: {e}")
            raise CafeError(
                f"No se pudo conectar con el servidor de la DGI: {e}",
                code=ErrorCode.UNKNOWN,
            ) from e

        logger.info(f"Respuesta del registro: HTTP {response.status_code}")

        if response.status_code == 404:
            raise InvoiceNotFoundError("Factura no encontrada en el sistema de la DGI")

        if response.status_code == 400:
            raise RegistryFetchError(
                "La DGI rechazó la solicitud. Verifica que el CUFE sea correcto.",
                status_code=400,
            )

        if not 200 <= response.status_code < 300:
            logger.error(f"DGI respondió {response.status_code}: {response.text[:500]}")
            raise RegistryFetchError(
                f"Error al consultar la DGI: {response.status_code}",
                status_code=response.status_code,
            )

        return RegistryPage(cufe=cufe, source_url=url, html=response.text)
