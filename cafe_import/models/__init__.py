from cafe_import.db.base import Base

# Importa modelos para que se registren en Base.metadata
from .store import Store
from .imported_invoice import ImportedInvoice, ImportedInvoiceItem
from .shopping import ShoppingSession, ShoppingItem

__all__ = [
    "Store",
    "ImportedInvoice",
    "ImportedInvoiceItem",
    "ShoppingSession",
    "ShoppingItem",
    "Base",
]
