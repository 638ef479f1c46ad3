"""Putting new tickets on the feed: guest orders, staff orders and waiter calls."""
import logging
import math
from typing import List, Optional, Tuple

from alerts import now_ms
from database import create_document, get_documents
from errors import CoordinationError, CooldownActive
from schemas import AppSettings, Order, OrderItem

logger = logging.getLogger(__name__)

COLLECTION = "order"


def place_order(table_number: int, items: List[OrderItem], table_code: Optional[str] = None,
                ordered_by: Optional[str] = None, now: Optional[int] = None) -> Tuple[str, float]:
    if not items:
        raise CoordinationError("Cart is empty")
    total = round(sum(i.price * i.quantity for i in items), 2)
    if table_code is None:
        table_code = f"waiter-{table_number}" if ordered_by else f"table-{table_number}"
    order = Order(
        table_code=table_code,
        table_number=table_number,
        kind="order",
        items=items,
        total=total,
        timestamp=now if now is not None else now_ms(),
        ordered_by=ordered_by,
    )
    order_id = create_document(COLLECTION, order)
    logger.info("New order %s for table %s (%.2f)", order_id, table_number, total)
    return order_id, total


def call_waiter(table_number: int, settings: AppSettings, table_code: Optional[str] = None,
                now: Optional[int] = None) -> str:
    """Push a waiter call unless the table already called within the cooldown."""
    if now is None:
        now = now_ms()
    cooldown_ms = settings.waiter_call_cooldown_seconds * 1000
    if cooldown_ms:
        recent = get_documents(
            COLLECTION,
            {"table_number": table_number, "kind": "waiter_call", "timestamp": {"$gt": now - cooldown_ms}},
            limit=1,
            sort=[("timestamp", -1)],
        )
        if recent:
            retry_after = math.ceil((recent[0]["timestamp"] + cooldown_ms - now) / 1000)
            raise CooldownActive(table_number, retry_after)
    call = Order(
        table_code=table_code or f"table-{table_number}",
        table_number=table_number,
        kind="waiter_call",
        timestamp=now,
    )
    call_id = create_document(COLLECTION, call)
    logger.info("Waiter called to table %s", table_number)
    return call_id


def list_orders() -> List[dict]:
    return get_documents(COLLECTION, sort=[("timestamp", 1)])
