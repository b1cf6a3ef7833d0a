"""
Store Matcher: asocia el emisor de la factura (RUC) con una tienda conocida.

No encontrar tienda no es un error: la importación sigue con el nombre del
emisor como etiqueta libre.
"""
from typing import Optional

from cafe_import.schemas.import_flow import StoreMatch
from cafe_import.services.cafe.gateway import PersistenceGateway
from cafe_import.utils.logger import logger


class StoreMatcher:

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def match_by_tax_id(self, tax_id: Optional[str]) -> Optional[StoreMatch]:
        if not tax_id or not tax_id.strip():
            return None

        try:
            match = self.gateway.match_store_by_tax_id(tax_id.strip())
        except Exception as e:
            logger.warning(f"No se pudo buscar la tienda para RUC {tax_id}: {e}")
            return None

        if match:
            logger.info(f"Tienda asociada: RUC={tax_id} -> {match.store_name} (verificada={match.is_verified})")
        return match
