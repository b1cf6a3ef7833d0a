# cafe_import/models/store.py
"""
Modelo Store - directorio de comercios conocidos.

Permite asociar el emisor de una factura (RUC) con una tienda registrada.
La bandera is_verified solo se usa como pista visual en la vista previa.
"""
import uuid

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func

from cafe_import.db.base import Base


class Store(Base):
    __tablename__ = "stores"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Identificador único de la tienda"
    )

    ruc = Column(
        String(64),
        nullable=True,
        unique=True,
        index=True,
        comment="RUC del comercio (sin DV)"
    )

    name = Column(String(255), nullable=False, comment="Nombre comercial")

    is_verified = Column(Boolean, nullable=False, default=False, comment="RUC verificado por un administrador")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Store(id={self.id}, ruc={self.ruc}, name={self.name})>"
