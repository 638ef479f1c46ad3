"""
Claim Coordination

Claims are plain last-writer-wins field updates on the shared order feed.
There is no compare-and-swap: two waiters claiming within the propagation
window may both see their own name until the next snapshot arrives, after
which every client shows whichever write the store applied last. Multiple
waiters serving the same table is tolerated, so this stays as is.

Every function writes the fields it owns in one update call.
"""
import logging
from typing import Optional

from alerts import now_ms
from database import delete_document, get_document_by_id, update_document
from errors import NotClaimant
from stats import record_if_needed
from visibility import Role

logger = logging.getLogger(__name__)

COLLECTION = "order"


def claim(order_id: str, actor_name: str, now: Optional[int] = None) -> bool:
    """Attach ``actor_name`` to the ticket. The result is provisional."""
    claimed_at = now if now is not None else now_ms()
    applied = update_document(COLLECTION, order_id, {"claimed_by": actor_name, "claimed_at": claimed_at})
    if applied:
        logger.info("Order %s claimed by %s", order_id, actor_name)
    return applied


def unclaim(order_id: str) -> bool:
    applied = update_document(COLLECTION, order_id, {}, unset=["claimed_by", "claimed_at"])
    if applied:
        logger.info("Order %s released", order_id)
    return applied


def hide_from_bar(order_id: str, actor_name: Optional[str] = None, role: Role = Role.WAITER) -> bool:
    """Take a ticket off the bar's board; the waiters keep it.

    The bar may hide any ticket, claimed or not. A waiter may only hide a
    ticket they claimed. Counts the order in the statistics if nobody has
    yet.
    """
    order = get_document_by_id(COLLECTION, order_id)
    if order is None:
        return False
    if role != Role.BAR and (not actor_name or order.get("claimed_by") != actor_name):
        raise NotClaimant(order_id, actor_name or "anonymous", order.get("claimed_by") or "nobody")
    if not record_if_needed(order, {"hidden_from_bar": True}):
        update_document(COLLECTION, order_id, {"hidden_from_bar": True})
    logger.info("Order %s hidden from the bar by %s", order_id, actor_name or role.value)
    return True


def complete(order_id: str, actor_name: str, now: Optional[int] = None) -> bool:
    """Mark a ticket done for the waiters.

    An unclaimed ticket is claimed by the completing waiter in the same
    update. A ticket claimed by someone else cannot be completed.
    """
    order = get_document_by_id(COLLECTION, order_id)
    if order is None:
        return False
    claimed_by = order.get("claimed_by")
    if claimed_by and claimed_by != actor_name:
        raise NotClaimant(order_id, actor_name, claimed_by)
    fields = {"completed_by_waiter": True}
    if not claimed_by:
        fields["claimed_by"] = actor_name
        fields["claimed_at"] = now if now is not None else now_ms()
    if not record_if_needed(order, fields):
        update_document(COLLECTION, order_id, fields)
    logger.info("Order %s completed by %s", order_id, actor_name)
    return True


def dismiss(order_id: str) -> bool:
    """Archive a ticket from the bar: count it if needed, then remove it from the feed."""
    order = get_document_by_id(COLLECTION, order_id)
    if order is None:
        return False
    record_if_needed(order)
    removed = delete_document(COLLECTION, order_id)
    if removed:
        logger.info("Order %s dismissed", order_id)
    return removed
