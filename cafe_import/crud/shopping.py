# cafe_import/crud/shopping.py
import logging

from sqlalchemy.orm import Session

from cafe_import.models.shopping import ShoppingSession, ShoppingItem
from cafe_import.schemas.shopping import ShoppingSessionCreate, ShoppingItemCreate

logger = logging.getLogger(__name__)


def create_shopping_session(db: Session, data: ShoppingSessionCreate) -> ShoppingSession:
    session = ShoppingSession(
        store_id=data.store_id,
        store_name=data.store_name,
        date=data.date,
        mode=data.mode,
        notes=data.notes,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"Sesión de compras creada: ID={session.id}")
    return session


def add_shopping_item(db: Session, data: ShoppingItemCreate) -> ShoppingItem:
    item = ShoppingItem(**data.model_dump(mode="python"))
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def delete_shopping_session(db: Session, session_id: str) -> bool:
    """Elimina la sesión y, en cascada, sus items. False si no existe."""
    session = db.query(ShoppingSession).filter(ShoppingSession.id == session_id).first()
    if not session:
        return False

    db.delete(session)
    db.commit()
    logger.warning(f"Sesión de compras descartada: ID={session_id}")
    return True
