"""
Tests del parser de respaldo que lee la factura del HTML renderizado.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cafe_import.schemas.cafe import TaxRateCode
from cafe_import.services.cafe.html_invoice_parser import (
    HtmlInvoiceParser,
    estimate_tax_code,
    issue_date_from_cufe,
)


@pytest.fixture
def rendered_invoice(rendered_html, sample_cufe):
    return HtmlInvoiceParser().parse(
        rendered_html,
        sample_cufe,
        source_url="https://dgi-fep.mef.gob.pa/Consultas/FacturasPorCUFE/X",
        fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestEmisor:

    def test_campos_dt_dd(self, rendered_invoice):
        issuer = rendered_invoice.issuer
        assert issuer.tax_id == "45400-2-299934"
        assert issuer.name == "SUPERMERCADO EL AHORRO, S.A."
        assert issuer.check_digit == "90"
        assert issuer.address == "VÍA ESPAÑA, CIUDAD DE PANAMÁ"
        assert issuer.phone == "507-2222222"

    def test_el_receptor_no_pisa_al_emisor(self, rendered_invoice):
        assert rendered_invoice.issuer.tax_id != "8-888-8888"
        assert rendered_invoice.is_usable is True


class TestLineas:

    def test_filas_de_la_tabla(self, rendered_invoice):
        items = rendered_invoice.items
        assert [i.line_number for i in items] == [1, 2, 3]
        assert [i.description for i in items] == ["ARROZ SELECTO 5 LB", "LECHE ENTERA 1L", "CERVEZA 355ML"]
        assert items[0].product_code == "7501001"
        assert items[1].quantity == Decimal("2.00")
        assert items[1].unit_price == Decimal("1.50")
        assert items[0].unit == "UND"

    def test_tasa_estimada_por_linea(self, rendered_invoice):
        codes = [(i.tax_code, i.tax_rate, i.tax_rate_code) for i in rendered_invoice.items]
        assert codes == [
            ("1", Decimal("7"), TaxRateCode.general),
            ("0", Decimal("0"), TaxRateCode.exempt),
            ("2", Decimal("10"), TaxRateCode.selective),
        ]

    def test_fila_sin_descripcion_ni_codigo_se_omite(self, sample_cufe):
        page = (
            "<table><tbody>"
            '<tr><td data-title="Descripción"></td><td data-title="Total">1.00</td></tr>'
            '<tr><td data-title="Codigo">99</td><td data-title="Precio">2.00</td><td data-title="Total">2.00</td></tr>'
            "</tbody></table>"
        )
        invoice = HtmlInvoiceParser().parse(page, sample_cufe)

        assert len(invoice.items) == 1
        assert invoice.items[0].description == "Producto"
        assert invoice.items[0].unit_price == Decimal("2.00")
        assert invoice.items[0].quantity == Decimal("1")


class TestDatosGenerales:

    def test_totales(self, rendered_invoice):
        totals = rendered_invoice.totals
        assert totals.subtotal == Decimal("8.00")
        assert totals.total_tax == Decimal("0.38")
        assert totals.grand_total == Decimal("8.38")

    def test_numero_y_fecha_desde_el_cufe(self, rendered_invoice, sample_cufe):
        assert rendered_invoice.invoice_number == "0000000389"
        assert rendered_invoice.issue_date == "2022-05-05"
        assert rendered_invoice.cufe == sample_cufe

    def test_fecha_mostrada_en_la_pagina(self, rendered_html, sample_cufe):
        page = rendered_html.replace("<p>No. Documento", "<p>Fecha de Emisión: 7/06/2022</p><p>No. Documento")
        assert HtmlInvoiceParser().parse(page, sample_cufe).issue_date == "2022-06-07"

    def test_metadatos_sin_xml(self, rendered_invoice):
        assert rendered_invoice.metadata.raw_xml is None
        assert rendered_invoice.metadata.source_url.endswith("/X")

    @pytest.mark.parametrize("page", ["", "<html><body><h1>Mantenimiento</h1></body></html>", None])
    def test_pagina_sin_factura(self, page, sample_cufe):
        assert HtmlInvoiceParser().parse(page, sample_cufe) is None


@pytest.mark.parametrize("total,tax,expected", [
    ("4.28", "0", "0"),
    ("1.01", "0.01", "0"),
    ("4.28", "0.28", "1"),
    ("1.10", "0.10", "2"),
    ("1.15", "0.15", "3"),
    ("0.10", "0.10", "1"),
])
def test_estimate_tax_code(total, tax, expected):
    assert estimate_tax_code(Decimal(total), Decimal(tax)) == expected


def test_issue_date_from_cufe(sample_cufe):
    assert issue_date_from_cufe(sample_cufe) == "2022-05-05"
    assert issue_date_from_cufe("FE123") == ""
    assert issue_date_from_cufe(None) == ""
