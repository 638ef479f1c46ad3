from alerts import AlertPhase
from visibility import Role, is_visible


def test_hidden_from_bar_only_affects_bar():
    order = {"hidden_from_bar": True, "completed_by_waiter": False}
    assert not is_visible(order, Role.BAR, AlertPhase.GREEN)
    assert is_visible(order, Role.WAITER, AlertPhase.GREEN)


def test_completed_by_waiter_only_affects_waiters():
    order = {"hidden_from_bar": False, "completed_by_waiter": True}
    assert is_visible(order, Role.BAR, AlertPhase.RED)
    assert not is_visible(order, Role.WAITER, AlertPhase.RED)


def test_expiry_retires_waiter_tickets_but_not_bar_tickets():
    order = {"hidden_from_bar": False, "completed_by_waiter": False}
    assert is_visible(order, Role.BAR, AlertPhase.EXPIRED)
    assert not is_visible(order, Role.WAITER, AlertPhase.EXPIRED)


def test_claim_does_not_change_visibility():
    order = {"claimed_by": "Anna", "claimed_at": 1}
    for current in (AlertPhase.RED, AlertPhase.ORANGE, AlertPhase.GREEN):
        assert is_visible(order, Role.BAR, current)
        assert is_visible(order, Role.WAITER, current)
