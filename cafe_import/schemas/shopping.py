# cafe_import/schemas/shopping.py
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict

from cafe_import.schemas.cafe import TaxRateCode
from cafe_import.schemas.common import Amount, CamelModel


class ShoppingSessionCreate(CamelModel):
    """Solicitud de creación de sesión de compras (compra ya realizada)"""
    store_id: Optional[str] = None
    store_name: Optional[str] = None
    date: str
    mode: str = "completed"
    notes: Optional[str] = None


class ShoppingItemCreate(CamelModel):
    model_config = ConfigDict(use_enum_values=True)

    session_id: str
    line_number: int
    product_name: str
    price: Amount
    quantity: Amount = Decimal("1")
    unit: str = "UND"
    store_id: Optional[str] = None
    store_name: Optional[str] = None
    tax_rate_code: TaxRateCode
    tax_rate: Amount
    price_includes_tax: bool = True
    base_price: Amount
    tax_amount: Amount = Decimal("0")
