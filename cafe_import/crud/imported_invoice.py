# cafe_import/crud/imported_invoice.py
"""
CRUD de facturas importadas.

Acceso a datos del registro de importaciones (Duplicate Guard) y del archivo
de facturas importadas: consulta por CUFE, alta única, listados y
estadísticas.
"""

import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from cafe_import.models.imported_invoice import ImportedInvoice, ImportedInvoiceItem
from cafe_import.schemas.cafe import Invoice

logger = logging.getLogger(__name__)


# ================================================================================
# LECTURA
# ================================================================================

def find_by_cufe(db: Session, cufe: str) -> Optional[ImportedInvoice]:
    return db.query(ImportedInvoice).filter(ImportedInvoice.cufe == cufe).first()


def get_imported_invoice(db: Session, imported_invoice_id: str) -> Optional[ImportedInvoice]:
    return db.query(ImportedInvoice).filter(ImportedInvoice.id == imported_invoice_id).first()


def list_imported_invoices(db: Session, skip: int = 0, limit: int = 20) -> List[ImportedInvoice]:
    """
    Lista facturas importadas, más recientes primero.

    Args:
        db: Sesión de base de datos
        skip: Offset para paginación
        limit: Límite de resultados

    Returns:
        Lista de facturas importadas
    """
    return (
        db.query(ImportedInvoice)
        .order_by(ImportedInvoice.created_at.desc(), ImportedInvoice.id)
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_import_statistics(db: Session) -> Dict[str, Any]:
    """
    Estadísticas agregadas de importación.

    Returns:
        {
            "total_imports": int,
            "total_amount": Decimal,
            "total_items": int,
            "unique_stores": int,
            "first_import": datetime | None,
            "last_import": datetime | None
        }
    """
    row = db.query(
        func.count(ImportedInvoice.id),
        func.coalesce(func.sum(ImportedInvoice.grand_total), 0),
        func.coalesce(func.sum(ImportedInvoice.item_count), 0),
        func.count(func.distinct(ImportedInvoice.emitter_ruc)),
        func.min(ImportedInvoice.created_at),
        func.max(ImportedInvoice.created_at),
    ).one()

    return {
        "total_imports": row[0] or 0,
        "total_amount": Decimal(str(row[1] or 0)),
        "total_items": int(row[2] or 0),
        "unique_stores": row[3] or 0,
        "first_import": row[4],
        "last_import": row[5],
    }


# ================================================================================
# ESCRITURA
# ================================================================================

def create_imported_invoice(
    db: Session,
    cufe: str,
    shopping_session_id: Optional[str],
    invoice: Optional[Invoice] = None,
) -> ImportedInvoice:
    """
    Registra una importación completada.

    Se invoca una sola vez, después de crear la sesión de compras y agregar
    todos sus items.

    Args:
        db: Sesión de base de datos
        cufe: CUFE normalizado
        shopping_session_id: Sesión de compras resultante
        invoice: Factura parseada (opcional, se archiva completa)

    Returns:
        ImportedInvoice creado

    Raises:
        ValueError: Si el CUFE ya está registrado
    """
    record = _build_record(cufe, shopping_session_id, invoice)

    try:
        db.add(record)
        db.commit()
        db.refresh(record)
    except IntegrityError:
        db.rollback()
        logger.error(f"CUFE ya registrado como importado: {cufe}")
        raise ValueError(f"La factura {cufe} ya fue importada")

    logger.info(f"Factura importada registrada: ID={record.id}, sesión={shopping_session_id}")
    return record


def replace_imported_invoice(
    db: Session,
    previous: ImportedInvoice,
    shopping_session_id: Optional[str],
    invoice: Optional[Invoice] = None,
) -> ImportedInvoice:
    """
    Reemplaza el registro de un CUFE ya importado (reimportación forzada).

    El borrado del registro anterior y el alta del nuevo van en una sola
    transacción: si el alta falla, el registro anterior se conserva.

    Raises:
        ValueError: Si el alta viola la unicidad del CUFE
    """
    cufe = previous.cufe
    logger.warning(
        f"Reimportación de {cufe}: se reemplaza el registro {previous.id} "
        f"(sesión anterior {previous.shopping_session_id})"
    )

    try:
        db.delete(previous)
        # el DELETE debe llegar antes que el INSERT con el mismo CUFE
        db.flush()

        record = _build_record(cufe, shopping_session_id, invoice)
        db.add(record)
        db.commit()
        db.refresh(record)
    except IntegrityError:
        db.rollback()
        logger.error(f"No se pudo reemplazar el registro de {cufe}")
        raise ValueError(f"La factura {cufe} ya fue importada")
    except Exception:
        db.rollback()
        raise

    logger.info(f"Factura reimportada: ID={record.id}, sesión={shopping_session_id}")
    return record


def delete_imported_invoice(db: Session, imported_invoice_id: str) -> bool:
    """
    Elimina una factura importada (y sus líneas).

    La sesión de compras asociada no se toca.

    Returns:
        True si se eliminó, False si no existe
    """
    record = get_imported_invoice(db, imported_invoice_id)
    if not record:
        return False

    logger.warning(f"Eliminando factura importada: ID={record.id}, CUFE={record.cufe}")
    db.delete(record)
    db.commit()
    return True


def _build_record(cufe: str, shopping_session_id: Optional[str], invoice: Optional[Invoice]) -> ImportedInvoice:
    record = ImportedInvoice(cufe=cufe, shopping_session_id=shopping_session_id)
    if invoice is not None:
        _fill_from_invoice(record, invoice)
    else:
        record.emitter_ruc = ""
        record.emitter_name = ""
    return record


def _fill_from_invoice(record: ImportedInvoice, invoice: Invoice) -> None:
    totals = invoice.totals
    zero = Decimal("0")

    record.invoice_number = invoice.invoice_number
    record.point_of_sale = invoice.point_of_sale
    record.issue_date = invoice.issue_date
    if invoice.authorization:
        record.authorization_date = invoice.authorization.date
        record.authorization_protocol = invoice.authorization.protocol

    record.emitter_ruc = invoice.issuer.tax_id
    record.emitter_name = invoice.issuer.name
    record.emitter_dv = invoice.issuer.check_digit
    record.emitter_branch = invoice.issuer.branch
    record.emitter_address = invoice.issuer.address
    record.emitter_phone = invoice.issuer.phone

    if invoice.receiver:
        record.receiver_ruc = invoice.receiver.tax_id
        record.receiver_name = invoice.receiver.name
        record.receiver_type = invoice.receiver.type

    record.subtotal = totals.subtotal
    record.total_tax = totals.total_tax
    record.grand_total = totals.grand_total
    record.taxable_amount_7 = totals.taxable_amount_7 or zero
    record.taxable_amount_10 = totals.taxable_amount_10 or zero
    record.taxable_amount_15 = totals.taxable_amount_15 or zero
    record.exempt_amount = totals.exempt_amount or zero
    record.discount_amount = totals.discount or zero

    if invoice.payment:
        record.payment_method = invoice.payment.method
        record.amount_paid = invoice.payment.amount_paid
        record.change_amount = invoice.payment.change

    record.item_count = len(invoice.items)
    record.invoice_data = invoice.model_dump(mode="json", exclude={"metadata": {"raw_xml"}})
    record.source_url = invoice.metadata.source_url
    record.raw_xml = invoice.metadata.raw_xml

    record.items = [
        ImportedInvoiceItem(
            line_number=item.line_number,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=item.unit_price,
            total_price=item.total_price,
            tax_code=item.tax_code,
            tax_rate=item.tax_rate,
            tax_amount=item.tax_amount,
            product_code=item.product_code,
        )
        for item in invoice.items
    ]
