from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from cafe_import.crud import imported_invoice as crud
from cafe_import.db.session import get_db
from cafe_import.schemas.common import ErrorResponse
from cafe_import.schemas.imported_invoice import ImportedInvoiceRead, ImportedInvoiceSummary, ImportStatistics
from cafe_import.utils.logger import logger

router = APIRouter(tags=["Facturas Importadas"])


@router.get("", response_model=List[ImportedInvoiceSummary], summary="Listar facturas importadas")
def list_imports(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return crud.list_imported_invoices(db, skip=skip, limit=limit)


@router.get("/statistics", response_model=ImportStatistics, summary="Estadísticas de importación")
def statistics(db: Session = Depends(get_db)):
    return ImportStatistics(**crud.get_import_statistics(db))


@router.get(
    "/{imported_invoice_id}",
    response_model=ImportedInvoiceRead,
    responses={404: {"model": ErrorResponse}},
    summary="Obtener factura importada",
)
def get_import(imported_invoice_id: str, db: Session = Depends(get_db)):
    record = crud.get_imported_invoice(db, imported_invoice_id)
    if not record:
        raise HTTPException(status_code=404, detail="Factura importada no encontrada")
    return record


@router.delete(
    "/{imported_invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Eliminar factura importada",
    description="Elimina el registro de importación; la sesión de compras asociada se conserva.",
)
def delete_import(imported_invoice_id: str, db: Session = Depends(get_db)):
    if not crud.delete_imported_invoice(db, imported_invoice_id):
        raise HTTPException(status_code=404, detail="Factura importada no encontrada")
    logger.info(f"Factura importada eliminada: {imported_invoice_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
