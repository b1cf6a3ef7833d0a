# cafe_import/schemas/cafe.py
"""
Esquemas de la factura electrónica (CAFE) parseada desde el registro DGI.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import ConfigDict, Field, model_validator

from cafe_import.core.exceptions import ErrorCode
from cafe_import.schemas.common import Amount, CamelModel


class TaxRateCode(str, Enum):
    exempt = "exempt"
    general = "general"
    selective = "selective"
    services = "services"


class LineItem(CamelModel):
    """Línea de la factura. line_number es la posición 1-based en el documento."""
    line_number: int = Field(..., ge=1)
    description: str
    quantity: Amount = Decimal("1")
    unit: str = "UND"
    unit_price: Amount = Decimal("0")
    total_price: Amount = Decimal("0")
    tax_code: str = "1"
    tax_rate: Amount = Decimal("7")
    tax_amount: Amount = Decimal("0")
    tax_rate_code: TaxRateCode = TaxRateCode.general
    product_code: Optional[str] = None


class Issuer(CamelModel):
    tax_id: str
    name: str
    check_digit: Optional[str] = None
    branch: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


class Receiver(CamelModel):
    tax_id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None


class Authorization(CamelModel):
    protocol: Optional[str] = None
    date: Optional[str] = None


class InvoiceTotals(CamelModel):
    """
    Totales tal como los reporta el registro.

    grand_total idealmente es subtotal + total_tax - discount, pero no se
    valida: el registro es la fuente autoritativa.
    """
    subtotal: Amount = Decimal("0")
    total_tax: Amount = Decimal("0")
    grand_total: Amount = Decimal("0")
    taxable_amount_7: Optional[Amount] = None
    taxable_amount_10: Optional[Amount] = None
    taxable_amount_15: Optional[Amount] = None
    exempt_amount: Optional[Amount] = None
    discount: Optional[Amount] = None
    rounding: Optional[Amount] = None


class Payment(CamelModel):
    method: Optional[str] = None
    amount_paid: Optional[Amount] = None
    change: Optional[Amount] = None


class InvoiceMetadata(CamelModel):
    raw_xml: Optional[str] = None
    fetched_at: datetime
    source_url: Optional[str] = None


class Invoice(CamelModel):
    cufe: str
    invoice_number: str = ""
    point_of_sale: Optional[str] = None
    issue_date: str = ""
    authorization: Optional[Authorization] = None
    issuer: Issuer
    receiver: Optional[Receiver] = None
    items: List[LineItem] = []
    totals: InvoiceTotals
    payment: Optional[Payment] = None
    metadata: InvoiceMetadata

    @model_validator(mode="after")
    def check_unique_line_numbers(self):
        numbers = [item.line_number for item in self.items]
        if len(numbers) != len(set(numbers)):
            raise ValueError("line_number debe ser único dentro de la factura")
        return self

    @property
    def is_usable(self) -> bool:
        """RUC y nombre del emisor son obligatorios para importar."""
        return bool(self.issuer.tax_id and self.issuer.name)


# =====================================================
# SUPERFICIE DE INVOCACIÓN - fetch
# =====================================================

class FetchRequest(CamelModel):
    """Acepta cufe / identifier directamente o la URL completa del QR"""
    cufe: Optional[str] = None
    identifier: Optional[str] = None
    qr_url: Optional[str] = None

    @property
    def raw_input(self) -> Optional[str]:
        return self.qr_url or self.identifier or self.cufe

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "cufe": "FE01200000045400-2-299934-0900002022050500000000389990117686690628"
            }
        }
    )


class FetchResult(CamelModel):
    success: bool
    invoice: Optional[Invoice] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
