"""
Tests del parser de facturas rFE.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cafe_import.core.exceptions import ErrorCode, InvoiceParseError
from cafe_import.core.xml_utils import parse_amount
from cafe_import.schemas.cafe import TaxRateCode
from cafe_import.services.cafe.invoice_parser import InvoiceParser, tax_code_to_rate


FETCHED_AT = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
SOURCE_URL = "https://dgi-fep.mef.gob.pa/Consultas/FacturasPorCUFE/FE0120"


@pytest.fixture
def parser():
    return InvoiceParser()


@pytest.fixture
def invoice(parser, sample_xml, sample_cufe):
    return parser.parse(sample_xml, sample_cufe, SOURCE_URL, fetched_at=FETCHED_AT)


class TestFacturaDeEjemplo:

    def test_items_en_orden_de_documento(self, invoice):
        assert len(invoice.items) == 3
        assert [item.line_number for item in invoice.items] == [1, 2, 3]
        assert [item.description for item in invoice.items] == [
            "ARROZ SELECTO 5 LB",
            "GALLETAS M&M 200G",
            "PAN BLANCO",
        ]

    def test_totales(self, invoice):
        assert invoice.totals.subtotal == Decimal("10.00")
        assert invoice.totals.total_tax == Decimal("0.70")
        assert invoice.totals.grand_total == Decimal("10.70")

    def test_suma_de_items_cuadra_con_los_totales(self, invoice):
        total_items = sum(item.total_price for item in invoice.items)
        assert abs(total_items - (invoice.totals.subtotal + invoice.totals.total_tax)) <= Decimal("0.01")

    def test_bases_imponibles_por_tasa(self, invoice):
        assert invoice.totals.taxable_amount_7 == Decimal("10.00")
        assert invoice.totals.taxable_amount_10 is None
        assert invoice.totals.taxable_amount_15 is None
        assert invoice.totals.exempt_amount is None

    def test_item(self, invoice):
        item = invoice.items[1]
        assert item.quantity == Decimal("2")
        assert item.unit == "UND"
        assert item.unit_price == Decimal("2.14")
        assert item.total_price == Decimal("4.28")
        assert item.tax_code == "01"
        assert item.tax_rate == Decimal("7")
        assert item.tax_rate_code == TaxRateCode.general
        assert item.tax_amount == Decimal("0.28")
        assert item.product_code == "7451001000024"
        assert invoice.items[2].product_code is None

    def test_datos_generales_y_emisor(self, invoice, sample_cufe, issuer_ruc):
        assert invoice.cufe == sample_cufe
        assert invoice.invoice_number == "0000000389"
        assert invoice.point_of_sale == "009"
        assert invoice.issue_date == "2022-05-05T10:15:30-05:00"
        assert invoice.issuer.tax_id == issuer_ruc
        assert invoice.issuer.check_digit == "09"
        assert invoice.issuer.name == "SUPERMERCADO EL AHORRO, S.A."
        assert invoice.issuer.branch == "0009"
        assert invoice.issuer.address == "VIA ESPAÑA, CIUDAD DE PANAMA"
        assert invoice.issuer.phone == "223-4567"
        assert invoice.is_usable

    def test_receptor_pago_y_autorizacion(self, invoice):
        assert invoice.receiver is not None
        assert invoice.receiver.name == "CONSUMIDOR FINAL"
        assert invoice.receiver.type == "02"
        assert invoice.receiver.tax_id is None

        assert invoice.payment.method == "02"
        assert invoice.payment.amount_paid == Decimal("20.00")
        assert invoice.payment.change == Decimal("9.30")

        assert invoice.authorization.protocol == "20220000000000012345"
        assert invoice.authorization.date == "2022-05-05T10:16:02-05:00"

    def test_metadata(self, invoice, sample_xml):
        assert invoice.metadata.raw_xml == sample_xml
        assert invoice.metadata.source_url == SOURCE_URL
        assert invoice.metadata.fetched_at == FETCHED_AT

    def test_parseo_determinista(self, parser, sample_xml, sample_cufe, invoice):
        again = parser.parse(sample_xml, sample_cufe, SOURCE_URL, fetched_at=FETCHED_AT)
        assert again == invoice


class TestGruposFaltantes:

    def test_grupos_ausentes_degradan_a_vacio(self, parser):
        xml = "<rFE><gItem><dDescProd>AGUA</dDescProd></gItem></rFE>"
        invoice = parser.parse(xml, "FE123")

        assert invoice.issuer.tax_id == ""
        assert invoice.issuer.name == ""
        assert invoice.invoice_number == ""
        assert invoice.receiver is None
        assert invoice.payment is None
        assert invoice.authorization is None
        assert invoice.totals.grand_total == Decimal("0")
        assert not invoice.is_usable

        item = invoice.items[0]
        assert item.line_number == 1
        assert item.quantity == Decimal("1")
        assert item.tax_rate == Decimal("7")
        assert item.tax_rate_code == TaxRateCode.general

    @pytest.mark.parametrize("cantidad", ["0", "abc", ""])
    def test_cantidad_invalida_es_uno(self, parser, cantidad):
        xml = f"<rFE><gItem><dDescProd>X</dDescProd><dCantCodInt>{cantidad}</dCantCodInt></gItem></rFE>"
        assert parser.parse(xml, "FE123").items[0].quantity == Decimal("1")

    def test_item_exento(self, parser):
        xml = (
            "<rFE><gItem><dDescProd>MEDICINA</dDescProd>"
            "<gPrecios><dPrUnit>5.00</dPrUnit><dValTotItem>5.00</dValTotItem></gPrecios>"
            "<gITBMSItem><dTasaITBMS>00</dTasaITBMS><dValITBMS>0.00</dValITBMS></gITBMSItem>"
            "</gItem></rFE>"
        )
        invoice = parser.parse(xml, "FE123")
        assert invoice.items[0].tax_rate_code == TaxRateCode.exempt
        assert invoice.totals.exempt_amount == Decimal("5.00")
        assert invoice.totals.taxable_amount_7 is None


class TestErrores:

    def test_xml_ilegible(self, parser):
        with pytest.raises(InvoiceParseError) as exc:
            parser.parse("esto no es xml", "FE123")
        assert exc.value.code == ErrorCode.PARSE_ERROR

    def test_xml_vacio(self, parser):
        with pytest.raises(InvoiceParseError):
            parser.parse("", "FE123")

    def test_raiz_distinta(self, parser):
        with pytest.raises(InvoiceParseError):
            parser.parse("<html><body><p>hola</p></body></html>", "FE123")


@pytest.mark.parametrize("code,rate,category", [
    ("0", Decimal("0"), TaxRateCode.exempt),
    ("00", Decimal("0"), TaxRateCode.exempt),
    ("1", Decimal("7"), TaxRateCode.general),
    ("02", Decimal("10"), TaxRateCode.selective),
    ("3", Decimal("15"), TaxRateCode.services),
    ("9", Decimal("7"), TaxRateCode.general),
    ("", Decimal("7"), TaxRateCode.general),
    (None, Decimal("7"), TaxRateCode.general),
])
def test_tabla_de_tasas(code, rate, category):
    assert tax_code_to_rate(code) == (rate, category)


@pytest.mark.parametrize("raw,expected", [
    ("10.70", Decimal("10.70")),
    ("12,5", Decimal("12.5")),
    ("B/. 10,70", Decimal("10.70")),
    ("1,234.50", Decimal("1234.50")),
    ("1.234,50", Decimal("1234.50")),
    ("-3.5", Decimal("-3.5")),
    ("abc", Decimal("0")),
    ("", Decimal("0")),
    (None, Decimal("0")),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected
