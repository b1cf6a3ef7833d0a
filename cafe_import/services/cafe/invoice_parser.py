"""
Parser del XML de factura electrónica DGI (documento rFE).

Estructura relevante del documento:

    <rFE>
      <dId>...</dId>
      <gDGen>                      datos generales
        <dNroDF/> <dPtoFacDF/> <dFechaEm/>
        <gEmis>                    emisor
          <gRucEmi><dRuc/><dDV/></gRucEmi>
          <dNombEm/> <dSucEm/> <dDirecEm/> <dTfnEm/>
        </gEmis>
        <gDatRec>                  receptor (opcional)
          <iTipoRec/> <gRucRec><dRuc/></gRucRec> <dNombRec/>
        </gDatRec>
      </gDGen>
      <gItem> ... </gItem>         una por línea, en orden
      <gTot>                       totales
        <dTotNeto/> <dTotITBMS/> <dVTot/> <dTotDesc/> <dRedondeo/> <dVuelto/>
        <gFormaPago><iFormaPago/><dVlrCuota/></gFormaPago>
      </gTot>
      <gInfProt><dProtAut/><dFecProc/></gInfProt>
    </rFE>

Si un grupo no existe, todos sus campos se leen como cadena vacía.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from lxml import etree

from cafe_import.core.exceptions import InvoiceParseError
from cafe_import.core.xml_utils import find_group, get_nodes, get_text, local_name, parse_amount, safe_parse_xml
from cafe_import.schemas.cafe import (
    Authorization,
    Invoice,
    InvoiceMetadata,
    InvoiceTotals,
    Issuer,
    LineItem,
    Payment,
    Receiver,
    TaxRateCode,
)
from cafe_import.utils.logger import logger


# Código ITBMS de la DGI -> (tasa %, categoría)
TAX_CODE_TABLE: Dict[str, Tuple[Decimal, TaxRateCode]] = {
    "0": (Decimal("0"), TaxRateCode.exempt),
    "1": (Decimal("7"), TaxRateCode.general),
    "2": (Decimal("10"), TaxRateCode.selective),
    "3": (Decimal("15"), TaxRateCode.services),
}
DEFAULT_TAX_CODE = "1"

ROOT_TAG = "rFE"


def tax_code_to_rate(code: Optional[str]) -> Tuple[Decimal, TaxRateCode]:
    """
    Traduce el código ITBMS a (tasa, categoría).

    Códigos desconocidos se tratan como la tasa general (7%): todo item debe
    tener una tasa para el cálculo de impuestos aguas abajo.
    """
    key = (code or "").strip()
    if key.isdigit():
        key = str(int(key))
    return TAX_CODE_TABLE.get(key, TAX_CODE_TABLE[DEFAULT_TAX_CODE])


def _optional(value: str) -> Optional[str]:
    return value or None


def _optional_amount(value: str) -> Optional[Decimal]:
    return parse_amount(value) if value else None


class InvoiceParser:
    """
    Convierte el XML rFE en un Invoice.

    Es puro y determinista respecto del XML: dos parseos del mismo documento
    producen el mismo Invoice (salvo fetched_at, que se puede fijar).
    """

    def parse(
        self,
        xml: str,
        cufe: str,
        source_url: Optional[str] = None,
        fetched_at: Optional[datetime] = None,
    ) -> Invoice:
        """
        Parsea el XML de la factura.

        Args:
            xml: XML ya decodificado
            cufe: CUFE normalizado con el que se consultó
            source_url: URL consultada
            fetched_at: Momento de la consulta (por defecto ahora, UTC)

        Returns:
            Invoice

        Raises:
            InvoiceParseError: XML ilegible o raíz distinta de rFE
        """
        root = safe_parse_xml(xml) if xml else None
        if root is None:
            raise InvoiceParseError("El XML de la factura no se pudo leer")

        if local_name(root) != ROOT_TAG:
            raise InvoiceParseError(f"Documento inesperado: se esperaba <{ROOT_TAG}>, llegó <{local_name(root)}>")

        general = find_group(root, "gDGen")
        issuer_group = find_group(general, "gEmis")
        receiver_group = find_group(general, "gDatRec")
        totals_group = find_group(root, "gTot")
        auth_group = find_group(root, "gInfProt")

        items = self._parse_items(root)

        invoice = Invoice(
            cufe=cufe,
            invoice_number=get_text(general, "dNroDF"),
            point_of_sale=_optional(get_text(general, "dPtoFacDF")),
            issue_date=get_text(general, "dFechaEm"),
            authorization=self._parse_authorization(auth_group),
            issuer=Issuer(
                tax_id=get_text(issuer_group, "gRucEmi/dRuc"),
                name=get_text(issuer_group, "dNombEm"),
                check_digit=_optional(get_text(issuer_group, "gRucEmi/dDV")),
                branch=_optional(get_text(issuer_group, "dSucEm")),
                address=_optional(get_text(issuer_group, "dDirecEm")),
                phone=_optional(get_text(issuer_group, "dTfnEm")),
            ),
            receiver=self._parse_receiver(receiver_group),
            items=items,
            totals=self._parse_totals(totals_group, items),
            payment=self._parse_payment(totals_group),
            metadata=InvoiceMetadata(
                raw_xml=xml,
                fetched_at=fetched_at or datetime.now(timezone.utc),
                source_url=source_url,
            ),
        )

        logger.info(
            f"Factura parseada: número={invoice.invoice_number}, "
            f"emisor={invoice.issuer.tax_id}, items={len(items)}, total={invoice.totals.grand_total}"
        )
        return invoice

    def _parse_items(self, root: etree._Element) -> List[LineItem]:
        """Una LineItem por gItem, numeradas por posición (1..N)."""
        items = []
        for position, node in enumerate(get_nodes(root, "gItem"), start=1):
            items.append(self._parse_item(node, position))
        return items

    def _parse_item(self, node: etree._Element, line_number: int) -> LineItem:
        prices = find_group(node, "gPrecios")
        tax = find_group(node, "gITBMSItem")

        tax_code = get_text(tax, "dTasaITBMS") or DEFAULT_TAX_CODE
        tax_rate, tax_rate_code = tax_code_to_rate(tax_code)

        quantity = parse_amount(get_text(node, "dCantCodInt"))
        if quantity == 0:
            quantity = Decimal("1")

        return LineItem(
            line_number=line_number,
            description=get_text(node, "dDescProd") or "Producto",
            quantity=quantity,
            unit=get_text(node, "cUnidad") or "UND",
            unit_price=parse_amount(get_text(prices, "dPrUnit")),
            total_price=parse_amount(get_text(prices, "dValTotItem")),
            tax_code=tax_code,
            tax_rate=tax_rate,
            tax_amount=parse_amount(get_text(tax, "dValITBMS")),
            tax_rate_code=tax_rate_code,
            product_code=_optional(get_text(node, "dCodProd")),
        )

    def _parse_totals(self, group: Optional[etree._Element], items: List[LineItem]) -> InvoiceTotals:
        """Totales del registro + bases imponibles por tasa derivadas de los items."""
        brackets = {rate: Decimal("0") for rate, _ in TAX_CODE_TABLE.values()}
        for item in items:
            base = item.total_price - item.tax_amount
            brackets[item.tax_rate] = brackets.get(item.tax_rate, Decimal("0")) + base

        def bracket(rate: str) -> Optional[Decimal]:
            value = brackets.get(Decimal(rate), Decimal("0"))
            return value if value else None

        return InvoiceTotals(
            subtotal=parse_amount(get_text(group, "dTotNeto")),
            total_tax=parse_amount(get_text(group, "dTotITBMS")),
            grand_total=parse_amount(get_text(group, "dVTot")),
            taxable_amount_7=bracket("7"),
            taxable_amount_10=bracket("10"),
            taxable_amount_15=bracket("15"),
            exempt_amount=bracket("0"),
            discount=_optional_amount(get_text(group, "dTotDesc")),
            rounding=_optional_amount(get_text(group, "dRedondeo")),
        )

    def _parse_receiver(self, group: Optional[etree._Element]) -> Optional[Receiver]:
        tax_id = get_text(group, "gRucRec/dRuc")
        name = get_text(group, "dNombRec")
        receiver_type = get_text(group, "iTipoRec")

        if not (tax_id or name or receiver_type):
            return None
        return Receiver(tax_id=_optional(tax_id), name=_optional(name), type=_optional(receiver_type))

    def _parse_payment(self, group: Optional[etree._Element]) -> Optional[Payment]:
        method = get_text(group, "gFormaPago/iFormaPago")
        amount_paid = get_text(group, "gFormaPago/dVlrCuota")
        change = get_text(group, "dVuelto")

        if not (method or amount_paid or change):
            return None
        return Payment(
            method=_optional(method),
            amount_paid=_optional_amount(amount_paid),
            change=_optional_amount(change),
        )

    def _parse_authorization(self, group: Optional[etree._Element]) -> Optional[Authorization]:
        protocol = get_text(group, "dProtAut")
        date = get_text(group, "dFecProc")

        if not (protocol or date):
            return None
        return Authorization(protocol=_optional(protocol), date=_optional(date))
