"""Per-role visibility of tickets.

The bar and the waiters dismiss tickets independently: ``hidden_from_bar``
only affects the bar, ``completed_by_waiter`` and expiry only affect waiters.
"""
from enum import Enum

from alerts import AlertPhase


class Role(str, Enum):
    BAR = "bar"
    WAITER = "waiter"


def is_visible(order: dict, role: Role, current_phase: AlertPhase) -> bool:
    if role == Role.BAR:
        # the bar keeps expired tickets until someone hides them
        return not order.get("hidden_from_bar", False)
    if order.get("completed_by_waiter", False):
        return False
    return current_phase != AlertPhase.EXPIRED
