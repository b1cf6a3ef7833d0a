"""
Colaborador de persistencia del importador.

El flujo de importación solo conoce el protocolo PersistenceGateway; la
implementación por defecto abre una sesión SQLAlchemy por llamada y delega
en los módulos crud.
"""
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Protocol

from sqlalchemy.orm import Session

from cafe_import.core.exceptions import CafeError, ErrorCode
from cafe_import.crud import imported_invoice as crud_imported_invoice
from cafe_import.crud import shopping as crud_shopping
from cafe_import.crud import store as crud_store
from cafe_import.db.session import SessionLocal
from cafe_import.schemas.cafe import Invoice
from cafe_import.schemas.import_flow import ImportRecord, PriorImport, StoreMatch
from cafe_import.schemas.shopping import ShoppingItemCreate, ShoppingSessionCreate


class PersistenceGateway(Protocol):
    def check_prior_import(self, cufe: str) -> PriorImport: ...

    def record_import(self, cufe: str, session_id: str, invoice: Optional[Invoice] = None) -> ImportRecord: ...

    def match_store_by_tax_id(self, tax_id: str) -> Optional[StoreMatch]: ...

    def create_shopping_session(self, data: ShoppingSessionCreate) -> str: ...

    def add_shopping_item(self, data: ShoppingItemCreate) -> None: ...

    def discard_shopping_session(self, session_id: str) -> bool: ...


class SqlAlchemyGateway:
    """PersistenceGateway sobre la base de datos de la aplicación."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def check_prior_import(self, cufe: str) -> PriorImport:
        with self._session() as db:
            record = crud_imported_invoice.find_by_cufe(db, cufe)
            if not record:
                return PriorImport(is_imported=False)
            return PriorImport(
                is_imported=True,
                imported_invoice_id=record.id,
                shopping_session_id=record.shopping_session_id,
                imported_at=record.created_at,
            )

    def record_import(self, cufe: str, session_id: str, invoice: Optional[Invoice] = None) -> ImportRecord:
        """
        Registra la importación. Si el CUFE ya tenía registro (reimportación
        forzada), el registro anterior se reemplaza por el nuevo en la misma
        transacción.
        """
        with self._session() as db:
            previous = crud_imported_invoice.find_by_cufe(db, cufe)

            try:
                if previous:
                    record = crud_imported_invoice.replace_imported_invoice(db, previous, session_id, invoice)
                else:
                    record = crud_imported_invoice.create_imported_invoice(db, cufe, session_id, invoice)
            except ValueError as e:
                raise CafeError(str(e), code=ErrorCode.ALREADY_IMPORTED) from e

            return ImportRecord(
                id=record.id,
                cufe=record.cufe,
                imported_at=record.created_at,
                shopping_session_id=record.shopping_session_id,
            )

    def match_store_by_tax_id(self, tax_id: str) -> Optional[StoreMatch]:
        with self._session() as db:
            store = crud_store.find_store_by_ruc(db, tax_id)
            if not store:
                return None
            return StoreMatch(store_id=store.id, store_name=store.name, is_verified=bool(store.is_verified))

    def create_shopping_session(self, data: ShoppingSessionCreate) -> str:
        with self._session() as db:
            return crud_shopping.create_shopping_session(db, data).id

    def add_shopping_item(self, data: ShoppingItemCreate) -> None:
        with self._session() as db:
            crud_shopping.add_shopping_item(db, data)

    def discard_shopping_session(self, session_id: str) -> bool:
        with self._session() as db:
            return crud_shopping.delete_shopping_session(db, session_id)
