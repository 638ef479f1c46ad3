"""
View models handed to the bar and waiter screens.

Everything here is recomputed from a feed snapshot plus the current settings
and clock; nothing is cached between calls.
"""
from typing import Iterable, List, Optional

from pydantic import BaseModel

from alerts import AlertPhase, effective_auto_hide, now_ms, phase
from broadcasts import unread_count
from labels import t
from schemas import AppSettings, Waiterassignment
from visibility import Role, is_visible


class OrderView(BaseModel):
    order: dict
    phase: AlertPhase
    visible_to_role: bool
    label: str


class BroadcastView(BaseModel):
    message: dict
    unread_count: int


class WaiterView(BaseModel):
    waiter_name: str
    assignment: Optional[Waiterassignment] = None


def order_view(order: dict, role: Role, settings: AppSettings, now: Optional[int] = None) -> OrderView:
    current = phase(order["timestamp"], effective_auto_hide(settings, role), now)
    return OrderView(
        order=order,
        phase=current,
        visible_to_role=is_visible(order, role, current),
        label=t(current.value, settings.language),
    )


def bar_board(orders: Iterable[dict], settings: AppSettings, now: Optional[int] = None) -> List[OrderView]:
    """Tickets the bar should show, oldest first."""
    if now is None:
        now = now_ms()
    views = [order_view(o, Role.BAR, settings, now) for o in orders]
    return sorted((v for v in views if v.visible_to_role), key=lambda v: v.order["timestamp"])


def waiter_board(orders: Iterable[dict], waiter_name: str, settings: AppSettings,
                 tables: Optional[List[int]] = None, now: Optional[int] = None) -> List[OrderView]:
    """A waiter's working list, newest first.

    Only tickets for ``tables`` (if given) that nobody else has claimed.
    """
    if now is None:
        now = now_ms()
    views = []
    for order in orders:
        if tables is not None and order["table_number"] not in tables:
            continue
        if order.get("claimed_by") and order["claimed_by"] != waiter_name:
            continue
        view = order_view(order, Role.WAITER, settings, now)
        if view.visible_to_role:
            views.append(view)
    return sorted(views, key=lambda v: v.order["timestamp"], reverse=True)


def broadcast_views(messages: List[dict], recipient: str) -> List[BroadcastView]:
    count = unread_count(recipient, messages)
    return [BroadcastView(message=m, unread_count=count) for m in messages]


def waiter_view(waiter_name: str, assignment: Optional[Waiterassignment]) -> WaiterView:
    return WaiterView(waiter_name=waiter_name, assignment=assignment)
