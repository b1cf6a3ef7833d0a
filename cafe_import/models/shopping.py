# cafe_import/models/shopping.py
"""
Sesiones de compras y sus items.

Solo se implementa lo que consume el importador: crear sesión, agregar item
y descartar una sesión incompleta.
"""
import uuid

from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from cafe_import.db.base import Base


class ShoppingSession(Base):
    __tablename__ = "shopping_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="SET NULL"), nullable=True)
    store_name = Column(String(255), nullable=True, comment="Texto libre cuando no hay tienda asociada")
    date = Column(String(32), nullable=False)
    mode = Column(String(32), nullable=False, server_default="completed")
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items = relationship(
        "ShoppingItem",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ShoppingItem.id",
    )


class ShoppingItem(Base):
    __tablename__ = "shopping_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String(36),
        ForeignKey("shopping_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number = Column(Integer, nullable=True, comment="Línea de la factura de origen")
    product_name = Column(String(2000), nullable=False)
    price = Column(Numeric(15, 4), nullable=False)
    quantity = Column(Numeric(15, 4), nullable=False, default=1)
    unit = Column(String(50), nullable=True)
    store_id = Column(String(36), nullable=True)
    store_name = Column(String(255), nullable=True)
    tax_rate_code = Column(String(16), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False)
    price_includes_tax = Column(Boolean, nullable=False, default=True)
    base_price = Column(Numeric(15, 4), nullable=False)
    tax_amount = Column(Numeric(15, 2), nullable=False, server_default="0")

    session = relationship("ShoppingSession", back_populates="items")
