"""
Parser de respaldo: datos de la factura leídos del HTML de la consulta.

Algunas páginas del registro no traen el XML rFE embebido pero sí muestran
la factura renderizada:

    <dl>
      <dt>RUC</dt><dd>45400-2-299934</dd>
      <dt>NOMBRE</dt><dd>SUPERMERCADO EL AHORRO, S.A.</dd>
      ...
    </dl>
    <table><tbody>
      <tr>
        <td data-title="Código">7501</td>
        <td data-title="Descripción">ARROZ</td>
        <td data-title="Cantidad">1</td>
        <td data-title="Precio Unitario">4.00</td>
        <td data-title="ITBMS">0.28</td>
        <td data-title="Total">4.28</td>
      </tr>
    </tbody></table>

El HTML no informa el código ITBMS de cada línea: se estima con la tasa
implícita en sus montos. La fecha de emisión, si la página no la muestra,
se toma del CUFE.
"""
import re
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from lxml import html as lxml_html

from cafe_import.core.xml_utils import clean_xml_text, parse_amount, safe_parse_html
from cafe_import.schemas.cafe import Invoice, InvoiceMetadata, InvoiceTotals, Issuer, LineItem
from cafe_import.services.cafe.invoice_parser import tax_code_to_rate
from cafe_import.utils.date_helpers import DateHelper
from cafe_import.utils.logger import logger


_INVOICE_NUMBER = re.compile(r"No\.?\s*Documento[:\s]*(\d+)", re.IGNORECASE)
_ISSUE_DATE = re.compile(r"Fecha[^:]*:\s*(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4})", re.IGNORECASE)
_TOTAL_TAX = re.compile(r"ITBMS\s*Total\s*:\s*([0-9.,]+)", re.IGNORECASE)
_CUFE_DATE = re.compile(r"(\d{8})\d{13}0[1-4][1-2]\d{10}$")


def _key(label: str) -> str:
    """Etiqueta sin tildes, en minúsculas y con espacios normalizados."""
    decomposed = unicodedata.normalize("NFKD", label or "")
    plain = "".join(c for c in decomposed if not unicodedata.combining(c))
    return clean_xml_text(plain).rstrip(":").strip().lower()


def estimate_tax_code(total_price: Decimal, tax_amount: Decimal) -> str:
    """
    Código ITBMS más cercano a la tasa implícita de la línea.

    Umbrales: < 3% exento, < 8.5% general (7%), < 12.5% selectivo (10%),
    el resto 15%. Sin base imponible se asume la tasa general.
    """
    if tax_amount == 0:
        return "0"

    base = total_price - tax_amount
    if base <= 0:
        return "1"

    implied_rate = tax_amount / base * 100
    if implied_rate < 3:
        return "0"
    if implied_rate < Decimal("8.5"):
        return "1"
    if implied_rate < Decimal("12.5"):
        return "2"
    return "3"


def issue_date_from_cufe(cufe: str) -> str:
    """
    Fecha de emisión (YYYY-MM-DD) embebida en el CUFE, o "" si no se reconoce.

    Example:
        >>> issue_date_from_cufe("FE01200000045400-2-299934-0900002022050500000000389990117686690628")
        '2022-05-05'
    """
    match = _CUFE_DATE.search(cufe or "")
    if not match:
        return ""
    digits = match.group(1)
    return f"{digits[:4]}-{digits[4:6]}-{digits[6:]}"


class HtmlInvoiceParser:
    """Convierte la página renderizada del registro en un Invoice."""

    def parse(
        self,
        html: str,
        cufe: str,
        source_url: Optional[str] = None,
        fetched_at: Optional[datetime] = None,
    ) -> Optional[Invoice]:
        """
        Parsea la factura desde el HTML.

        Returns:
            Invoice, o None si la página no muestra ni emisor ni líneas
        """
        document = safe_parse_html(html)
        if document is None:
            return None

        fields = self._definition_fields(document)
        items = self._parse_items(document)

        tax_id = fields.get("ruc", "")
        name = fields.get("nombre", "")
        if not (tax_id or name or items):
            return None

        text = clean_xml_text(document.text_content())
        number = _INVOICE_NUMBER.search(text)
        date = _ISSUE_DATE.search(text)

        issue_date = DateHelper.normalize_date(date.group(1)) if date else issue_date_from_cufe(cufe)

        total_tax = sum((item.tax_amount for item in items), Decimal("0"))
        footer_tax = _TOTAL_TAX.search(text)
        if footer_tax:
            total_tax = parse_amount(footer_tax.group(1))

        invoice = Invoice(
            cufe=cufe,
            invoice_number=number.group(1) if number else "",
            issue_date=issue_date,
            issuer=Issuer(
                tax_id=tax_id,
                name=name,
                check_digit=fields.get("dv") or None,
                address=fields.get("direccion") or None,
                phone=fields.get("telefono") or None,
            ),
            items=items,
            totals=InvoiceTotals(
                subtotal=sum((item.total_price - item.tax_amount for item in items), Decimal("0")),
                total_tax=total_tax,
                grand_total=sum((item.total_price for item in items), Decimal("0")),
            ),
            metadata=InvoiceMetadata(
                fetched_at=fetched_at or datetime.now(timezone.utc),
                source_url=source_url,
            ),
        )

        logger.info(
            f"Factura leída del HTML: emisor={invoice.issuer.tax_id}, "
            f"items={len(items)}, total={invoice.totals.grand_total}"
        )
        return invoice

    def _definition_fields(self, document: lxml_html.HtmlElement) -> Dict[str, str]:
        """Pares <dt>ETIQUETA</dt><dd>VALOR</dd>; gana la primera aparición."""
        fields: Dict[str, str] = {}
        for term in document.iter("dt"):
            value = term.getnext()
            if value is None or value.tag != "dd":
                continue
            fields.setdefault(_key(term.text_content()), clean_xml_text(value.text_content()))
        return fields

    def _parse_items(self, document: lxml_html.HtmlElement) -> List[LineItem]:
        items = []
        for row in document.xpath("//tr[td[@data-title]]"):
            cells = {
                _key(cell.get("data-title")): clean_xml_text(cell.text_content())
                for cell in row.xpath("td[@data-title]")
            }

            description = cells.get("descripcion", "")
            product_code = cells.get("codigo", "")
            if not (description or product_code):
                continue

            quantity = parse_amount(cells.get("cantidad"))
            unit_price = parse_amount(cells.get("precio unitario")) or parse_amount(cells.get("precio"))
            total_price = parse_amount(cells.get("total"))
            tax_amount = parse_amount(cells.get("itbms")) or parse_amount(cells.get("impuesto"))

            tax_code = estimate_tax_code(total_price, tax_amount)
            tax_rate, tax_rate_code = tax_code_to_rate(tax_code)

            items.append(LineItem(
                line_number=len(items) + 1,
                description=description or "Producto",
                quantity=quantity or Decimal("1"),
                unit_price=unit_price,
                total_price=total_price,
                tax_code=tax_code,
                tax_rate=tax_rate,
                tax_amount=tax_amount,
                tax_rate_code=tax_rate_code,
                product_code=product_code or None,
            ))
        return items
