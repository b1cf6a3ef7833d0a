# cafe_import/schemas/imported_invoice.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict

from cafe_import.schemas.cafe import Invoice
from cafe_import.schemas.common import Amount, CamelModel


class ImportedInvoiceSummary(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    cufe: str
    invoice_number: str
    emitter_name: str
    emitter_ruc: str
    issue_date: str
    grand_total: Amount
    item_count: int
    shopping_session_id: Optional[str] = None
    created_at: datetime


class ImportedInvoiceRead(ImportedInvoiceSummary):
    total_tax: Amount
    invoice_data: Optional[Invoice] = None


class ImportStatistics(CamelModel):
    total_imports: int = 0
    total_amount: Amount = Decimal("0")
    total_items: int = 0
    unique_stores: int = 0
    first_import: Optional[datetime] = None
    last_import: Optional[datetime] = None
