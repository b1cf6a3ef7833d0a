"""
Servicio de consulta de facturas CAFE.

Compone Validator -> Fetcher -> Extractor -> Parser. Si la página no trae el
XML, la factura se lee del HTML renderizado como último recurso.

Expone los pasos por separado (el flujo de importación reporta un estado por
paso) y una superficie de invocación única, fetch_cafe, que nunca lanza
errores de dominio: los convierte en FetchResult(success=False, error,
error_code).
"""
from typing import Optional

from cafe_import.core.exceptions import (
    CafeError,
    InvalidCufeError,
    InvoiceNotFoundError,
    InvoiceParseError,
    XmlExtractionError,
)
from cafe_import.schemas.cafe import FetchRequest, FetchResult, Invoice
from cafe_import.services.cafe import cufe_validator
from cafe_import.services.cafe.html_invoice_parser import HtmlInvoiceParser
from cafe_import.services.cafe.invoice_parser import InvoiceParser
from cafe_import.services.cafe.registry_fetcher import RegistryFetcher, RegistryPage
from cafe_import.services.cafe.xml_extractor import extract_invoice_xml, page_reports_not_found
from cafe_import.utils.logger import logger


def resolve_identifier(raw: Optional[str]) -> str:
    """
    Valida la entrada del usuario (CUFE o enlace QR) y retorna el CUFE
    normalizado.

    Raises:
        InvalidCufeError: entrada vacía, QR sin chFE o CUFE mal formado
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidCufeError("CUFE o URL del QR es requerido")

    if cufe_validator.looks_like_qr_link(text):
        cufe = cufe_validator.extract_identifier_from_qr_link(text)
        if not cufe:
            raise InvalidCufeError("URL del QR inválida: no contiene el parámetro chFE")
    else:
        cufe = cufe_validator.normalize(text)

    if not cufe_validator.is_well_formed(cufe):
        raise InvalidCufeError("Formato de CUFE inválido")

    return cufe


class RegistryService:

    def __init__(
        self,
        fetcher: Optional[RegistryFetcher] = None,
        parser: Optional[InvoiceParser] = None,
        html_parser: Optional[HtmlInvoiceParser] = None,
    ):
        self.fetcher = fetcher or RegistryFetcher()
        self.parser = parser or InvoiceParser()
        self.html_parser = html_parser or HtmlInvoiceParser()

    def download(self, raw: str) -> RegistryPage:
        """
        Descarga la página de la factura. Los enlaces QR se consultan tal cual.
        """
        cufe = resolve_identifier(raw)
        target = raw.strip() if cufe_validator.looks_like_qr_link(raw) else cufe
        return self.fetcher.fetch(target)

    def parse_page(self, page: RegistryPage) -> Invoice:
        """
        Extrae y parsea el XML de la página; sin XML, lee la factura del HTML.

        Raises:
            InvoiceNotFoundError: la página es el aviso de factura inexistente
            XmlExtractionError: la página no contiene el XML ni la factura renderizada
            InvoiceParseError: XML ilegible o sin RUC/nombre del emisor
        """
        try:
            xml = extract_invoice_xml(page.html)
        except XmlExtractionError:
            if page_reports_not_found(page.html):
                raise InvoiceNotFoundError("Factura no encontrada en el sistema de la DGI")

            invoice = self.html_parser.parse(page.html, cufe=page.cufe, source_url=page.source_url)
            if invoice is None:
                raise
            logger.warning(f"Factura {page.cufe} sin XML embebido; datos leídos del HTML")
        else:
            invoice = self.parser.parse(xml, cufe=page.cufe, source_url=page.source_url)

        if not invoice.is_usable:
            logger.warning(f"Factura {page.cufe} sin RUC o nombre de emisor")
            raise InvoiceParseError("No se pudieron extraer los datos del emisor de la factura")

        return invoice

    def fetch_invoice(self, raw: str) -> Invoice:
        return self.parse_page(self.download(raw))

    def fetch_cafe(self, request: FetchRequest) -> FetchResult:
        """
        Superficie de invocación: {cufe | identifier | qrUrl} -> FetchResult.
        """
        try:
            invoice = self.fetch_invoice(request.raw_input)
        except CafeError as e:
            logger.info(f"Consulta CAFE fallida [{e.code.value}]: {e.message}")
            return FetchResult(success=False, error=e.message, error_code=e.code)

        return FetchResult(success=True, invoice=invoice)
