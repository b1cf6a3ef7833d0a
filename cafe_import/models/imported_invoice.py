# cafe_import/models/imported_invoice.py
"""
Modelos de facturas importadas (registro del Duplicate Guard).

Un ImportedInvoice se crea una sola vez por CUFE importado con éxito y nunca
se modifica. Guarda además una copia completa de la factura (invoice_data) y
sus líneas para auditoría.
"""
import uuid

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from cafe_import.db.base import Base


class ImportedInvoice(Base):
    __tablename__ = "imported_invoices"

    # ==================== IDENTIFICACIÓN ====================
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    cufe = Column(
        String(128),
        nullable=False,
        unique=True,
        index=True,
        comment="CUFE normalizado (mayúsculas)"
    )

    invoice_number = Column(String(64), nullable=False, server_default="")
    point_of_sale = Column(String(64), nullable=True)
    issue_date = Column(String(64), nullable=False, server_default="", comment="Fecha nativa del registro")
    authorization_date = Column(String(64), nullable=True)
    authorization_protocol = Column(String(128), nullable=True)

    # ==================== EMISOR / RECEPTOR ====================
    emitter_ruc = Column(String(64), nullable=False, index=True)
    emitter_name = Column(String(255), nullable=False)
    emitter_dv = Column(String(8), nullable=True)
    emitter_branch = Column(String(255), nullable=True)
    emitter_address = Column(String(500), nullable=True)
    emitter_phone = Column(String(64), nullable=True)

    receiver_ruc = Column(String(64), nullable=True)
    receiver_name = Column(String(255), nullable=True)
    receiver_type = Column(String(16), nullable=True)

    # ==================== TOTALES ====================
    subtotal = Column(Numeric(15, 2), nullable=False, server_default="0")
    total_tax = Column(Numeric(15, 2), nullable=False, server_default="0")
    grand_total = Column(Numeric(15, 2), nullable=False, server_default="0")
    taxable_amount_7 = Column(Numeric(15, 2), nullable=False, server_default="0")
    taxable_amount_10 = Column(Numeric(15, 2), nullable=False, server_default="0")
    taxable_amount_15 = Column(Numeric(15, 2), nullable=False, server_default="0")
    exempt_amount = Column(Numeric(15, 2), nullable=False, server_default="0")
    discount_amount = Column(Numeric(15, 2), nullable=False, server_default="0")

    payment_method = Column(String(32), nullable=True)
    amount_paid = Column(Numeric(15, 2), nullable=True)
    change_amount = Column(Numeric(15, 2), nullable=True)

    item_count = Column(Integer, nullable=False, server_default="0")

    # ==================== VÍNCULOS Y AUDITORÍA ====================
    shopping_session_id = Column(String(36), nullable=True, index=True)
    invoice_data = Column(JSON, nullable=True, comment="Copia completa de la factura parseada")
    source_url = Column(String(1000), nullable=True)
    raw_xml = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "ImportedInvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="ImportedInvoiceItem.line_number",
    )

    def __repr__(self):
        return f"<ImportedInvoice(id={self.id}, cufe={self.cufe[:20]}...)>"


class ImportedInvoiceItem(Base):
    __tablename__ = "imported_invoice_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    imported_invoice_id = Column(
        String(36),
        ForeignKey("imported_invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_number = Column(Integer, nullable=False, comment="Posición 1-based en la factura")
    description = Column(String(2000), nullable=False)
    quantity = Column(Numeric(15, 4), nullable=False, default=1)
    unit = Column(String(50), nullable=True)
    unit_price = Column(Numeric(15, 4), nullable=False)
    total_price = Column(Numeric(15, 2), nullable=False)
    tax_code = Column(String(8), nullable=True)
    tax_rate = Column(Numeric(5, 2), nullable=False, server_default="0")
    tax_amount = Column(Numeric(15, 2), nullable=False, server_default="0")
    product_code = Column(String(100), nullable=True)

    invoice = relationship("ImportedInvoice", back_populates="items")
