"""
Shopping Aggregator: convierte una factura (o parte de ella) en una sesión de
compras ya realizada.

Una solicitud de creación de sesión seguida de una solicitud por item, en
orden de line_number y de forma secuencial: si una adición falla, lo
persistido es exactamente el prefijo de items anteriores.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool

from cafe_import.core.exceptions import ShoppingImportError
from cafe_import.schemas.cafe import Invoice, LineItem
from cafe_import.schemas.import_flow import StoreMatch
from cafe_import.schemas.shopping import ShoppingItemCreate, ShoppingSessionCreate
from cafe_import.services.cafe.gateway import PersistenceGateway
from cafe_import.utils.date_helpers import DateHelper
from cafe_import.utils.logger import logger


SESSION_MODE = "completed"
BASE_PRICE_QUANTUM = Decimal("0.0001")


def session_note(invoice: Invoice) -> str:
    return f"Importada desde CAFE: {invoice.invoice_number}"


def base_price(unit_price: Decimal, tax_rate: Decimal) -> Decimal:
    """Precio sin impuesto: los precios del registro siempre incluyen ITBMS."""
    divisor = Decimal("1") + tax_rate / Decimal("100")
    return (unit_price / divisor).quantize(BASE_PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def select_items(invoice: Invoice, selected_line_numbers: Optional[Iterable[int]] = None) -> List[LineItem]:
    """
    Items a importar, en orden ascendente de line_number.

    Sin selección (None o vacía) se importan todos. Números que no existen en
    la factura se ignoran.
    """
    ordered = sorted(invoice.items, key=lambda item: item.line_number)
    wanted = set(selected_line_numbers or ())
    if not wanted:
        return ordered
    return [item for item in ordered if item.line_number in wanted]


def resolve_store(
    invoice: Invoice,
    store_match: Optional[StoreMatch] = None,
    store_id: Optional[str] = None,
    store_name: Optional[str] = None,
):
    """
    (store_id, store_name) para la sesión.

    Prioridad: tienda elegida por el usuario, luego la tienda asociada por
    RUC, y como etiqueta libre el nombre del emisor.
    """
    resolved_id = store_id or (store_match.store_id if store_match else None)
    resolved_name = store_name or (store_match.store_name if store_match else None) or invoice.issuer.name
    return resolved_id, resolved_name


def build_session_request(
    invoice: Invoice,
    store_match: Optional[StoreMatch] = None,
    store_id: Optional[str] = None,
    store_name: Optional[str] = None,
) -> ShoppingSessionCreate:
    resolved_id, resolved_name = resolve_store(invoice, store_match, store_id, store_name)
    return ShoppingSessionCreate(
        store_id=resolved_id,
        store_name=resolved_name,
        date=DateHelper.normalize_date(invoice.issue_date) or DateHelper.today_iso(),
        mode=SESSION_MODE,
        notes=session_note(invoice),
    )


def build_item_requests(
    items: Iterable[LineItem],
    session_id: str,
    store_id: Optional[str] = None,
    store_name: Optional[str] = None,
) -> List[ShoppingItemCreate]:
    return [
        ShoppingItemCreate(
            session_id=session_id,
            line_number=item.line_number,
            product_name=item.description,
            price=item.unit_price,
            quantity=item.quantity,
            unit=item.unit,
            store_id=store_id,
            store_name=store_name,
            tax_rate_code=item.tax_rate_code,
            tax_rate=item.tax_rate,
            price_includes_tax=True,
            base_price=base_price(item.unit_price, item.tax_rate),
            tax_amount=item.tax_amount,
        )
        for item in sorted(items, key=lambda item: item.line_number)
    ]


@dataclass(frozen=True)
class AggregationResult:
    session_id: str
    items_added: int


class ShoppingAggregator:

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def apply(
        self,
        invoice: Invoice,
        items: List[LineItem],
        store_match: Optional[StoreMatch] = None,
        store_id: Optional[str] = None,
        store_name: Optional[str] = None,
    ) -> AggregationResult:
        """
        Crea la sesión y agrega los items uno por uno.

        Raises:
            ShoppingImportError: Con session_id (si se alcanzó a crear) y la
                cantidad de items agregados antes de la falla
        """
        session_request = build_session_request(invoice, store_match, store_id, store_name)

        try:
            session_id = await run_in_threadpool(self.gateway.create_shopping_session, session_request)
        except Exception as e:
            logger.error(f"Error creando sesión de compras para {invoice.cufe}: {e}")
            raise ShoppingImportError(f"No se pudo crear la sesión de compras: {e}") from e

        item_requests = build_item_requests(items, session_id, session_request.store_id, session_request.store_name)

        added = 0
        for request in item_requests:
            try:
                await run_in_threadpool(self.gateway.add_shopping_item, request)
            except Exception as e:
                logger.error(
                    f"Error agregando línea {request.line_number} a la sesión {session_id} "
                    f"({added}/{len(item_requests)} agregados): {e}"
                )
                raise ShoppingImportError(
                    f"No se pudo agregar el producto '{request.product_name}': {e}",
                    session_id=session_id,
                    items_added=added,
                ) from e
            added += 1

        logger.info(f"Sesión {session_id} creada con {added} productos desde {invoice.cufe}")
        return AggregationResult(session_id=session_id, items_added=added)
