"""
orders.py
Órdenes de compra (colección `orders`).
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import ValidationError

from valmore.catalog import PRODUCTS
from valmore.documents import DocumentStore, DocumentStoreError
from valmore.schemas import Order

logger = logging.getLogger(__name__)

ORDERS = "orders"

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled", "returned")

STATUS_TEXT = {
    "pending": "Beklemede",
    "processing": "Hazırlanıyor",
    "shipped": "Kargoda",
    "delivered": "Teslim Edildi",
    "cancelled": "İptal Edildi",
    "returned": "İade Edildi",
}


def status_text(status: str) -> str:
    return STATUS_TEXT.get(status, status)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_order(doc: Dict) -> Optional[Order]:
    try:
        return Order.model_validate(doc)
    except ValidationError:
        logger.warning("Orden con formato inválido: %s", doc.get("id"))
        return None


def generate_order_number(store: DocumentStore, now: Optional[datetime] = None) -> str:
    """Número legible tipo ORD-20240315-001 (cantidad de órdenes del día + 1)."""
    now = now or _now()
    day = now.date().isoformat()
    todays = [
        o for o in store.query(ORDERS)
        if str(o.get("createdAt", "")).startswith(day)
    ]
    return f"ORD-{day.replace('-', '')}-{len(todays) + 1:03d}"


def create_order(store: DocumentStore, order: Order) -> str:
    try:
        now = _now()
        doc = order.to_document()
        doc["orderNumber"] = doc.get("orderNumber") or generate_order_number(store, now)
        doc["createdAt"] = now.isoformat()
        doc["updatedAt"] = now.isoformat()
        return store.add(ORDERS, doc)
    except DocumentStoreError as e:
        logger.exception("Error creando la orden")
        raise DocumentStoreError("No se pudo crear la orden. Intentá de nuevo.") from e


def fetch_all_orders(store: DocumentStore) -> List[Order]:
    docs = store.query(ORDERS, order_by="createdAt", descending=True)
    return [o for o in (_to_order(d) for d in docs) if o is not None]


def fetch_user_orders(store: DocumentStore, user_id: str) -> List[Order]:
    """Órdenes del usuario, más nuevas primero. Si la base falla devuelve []."""
    try:
        docs = store.query(ORDERS, where={"userId": user_id}, order_by="createdAt", descending=True)
    except DocumentStoreError:
        logger.exception("Error leyendo órdenes de %s", user_id)
        return []
    return [o for o in (_to_order(d) for d in docs) if o is not None]


def fetch_order(store: DocumentStore, order_id: str) -> Optional[Order]:
    doc = store.get(ORDERS, order_id)
    if doc is None:
        return None
    doc["id"] = order_id
    return _to_order(doc)


def update_order_status(
    store: DocumentStore,
    order_id: str,
    status: str,
    carrier: Optional[str] = None,
    tracking_number: Optional[str] = None,
) -> None:
    if status not in ORDER_STATUSES:
        raise ValueError(f"Estado inválido: {status}")
    changes = {"status": status, "updatedAt": _now().isoformat()}
    if carrier is not None or tracking_number is not None:
        changes["carrier"] = carrier
        changes["trackingNumber"] = tracking_number
    store.update(ORDERS, order_id, changes)


def dashboard_stats(store: DocumentStore, recent: int = 5) -> Dict:
    orders = fetch_all_orders(store)
    return {
        "totalSales": sum(o.total for o in orders),
        "totalSalesNotReturn": sum(o.total for o in orders if o.status != "returned"),
        "totalOrders": len(orders),
        "totalProducts": store.count(PRODUCTS),
        "recentOrders": orders[:recent],
    }
