# cafe_import/crud/store.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from cafe_import.models.store import Store

logger = logging.getLogger(__name__)


def normalizar_ruc(ruc: Optional[str]) -> Optional[str]:
    """Normaliza RUC: sin espacios, mayúsculas."""
    if not ruc:
        return None
    ruc = "".join(ruc.split()).upper()
    return ruc or None


def find_store_by_ruc(db: Session, ruc: str) -> Optional[Store]:
    ruc_normalizado = normalizar_ruc(ruc)
    if not ruc_normalizado:
        return None
    return db.query(Store).filter(Store.ruc == ruc_normalizado).first()


def create_store(db: Session, name: str, ruc: Optional[str] = None, is_verified: bool = False) -> Store:
    store = Store(name=name, ruc=normalizar_ruc(ruc), is_verified=is_verified)
    db.add(store)
    db.commit()
    db.refresh(store)
    logger.info(f"Tienda creada: ID={store.id}, RUC={store.ruc}")
    return store
