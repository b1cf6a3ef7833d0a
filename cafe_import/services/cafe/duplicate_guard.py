"""
Duplicate Guard: evita que una misma factura genere dos sesiones de compras.
"""
from typing import Optional

from cafe_import.schemas.cafe import Invoice
from cafe_import.schemas.import_flow import ImportRecord, PriorImport
from cafe_import.services.cafe.gateway import PersistenceGateway
from cafe_import.utils.logger import logger


class DuplicateGuard:

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def check_prior_import(self, cufe: str) -> PriorImport:
        """
        Consulta si el CUFE ya fue importado. Solo lectura.

        Se llama antes de consultar el registro, para no gastar la petición
        cuando la factura ya existe.
        """
        prior = self.gateway.check_prior_import(cufe)
        if prior.is_imported:
            logger.info(f"CUFE ya importado: {cufe} (registro {prior.imported_invoice_id})")
        return prior

    def record_import(self, cufe: str, session_id: str, invoice: Optional[Invoice] = None) -> ImportRecord:
        """
        Registra la importación completada.

        Solo debe llamarse cuando la sesión de compras y todos sus items ya
        fueron creados: un registro nunca apunta a una importación a medias.
        """
        record = self.gateway.record_import(cufe, session_id, invoice)
        logger.info(f"Importación registrada: CUFE={cufe}, sesión={session_id}, registro={record.id}")
        return record
