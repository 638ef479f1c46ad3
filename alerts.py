"""Alert phase of a ticket, derived from its age.

The phase is never stored. Callers recompute it on every snapshot and on a
timer tick, since it changes with elapsed time alone.
"""
import time
from enum import Enum
from typing import Optional

from schemas import AppSettings

RED_MINUTES = 2
ORANGE_MINUTES = 4
DEFAULT_AUTO_HIDE_MINUTES = 6


class AlertPhase(str, Enum):
    RED = "red"
    ORANGE = "orange"
    GREEN = "green"
    EXPIRED = "expired"


def now_ms() -> int:
    return int(time.time() * 1000)


def phase(timestamp: int, auto_hide_minutes: int = DEFAULT_AUTO_HIDE_MINUTES, now: Optional[int] = None) -> AlertPhase:
    """Return the alert phase of a ticket created at ``timestamp`` (epoch ms).

    ``auto_hide_minutes == 0`` means a ticket stays green forever. Small
    positive thresholds are compared as-is, so a ticket can move from orange
    straight to expired.
    """
    if now is None:
        now = now_ms()
    minutes = (now - timestamp) / 60000
    if minutes < RED_MINUTES:
        return AlertPhase.RED
    if minutes < ORANGE_MINUTES:
        return AlertPhase.ORANGE
    if auto_hide_minutes == 0:
        return AlertPhase.GREEN
    if minutes >= auto_hide_minutes:
        return AlertPhase.EXPIRED
    return AlertPhase.GREEN


def effective_auto_hide(settings: AppSettings, role: str) -> int:
    """Auto-hide threshold a role works with.

    Waiters may get a floor on the threshold (``waiter_min_auto_hide_minutes``)
    so tickets do not vanish from their phones too early. 0 is never clamped.
    """
    minutes = settings.auto_hide_minutes
    if role == "waiter" and minutes != 0:
        return max(minutes, settings.waiter_min_auto_hide_minutes)
    return minutes
