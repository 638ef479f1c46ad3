import pytest

import database
import orders
from errors import CoordinationError, CooldownActive
from schemas import AppSettings, OrderItem

T0 = 1_700_000_000_000
MINUTE = 60_000


def test_place_order_computes_total():
    items = [OrderItem(name="Kölsch", price=2.2, quantity=3), OrderItem(name="Cola", price=3.0, quantity=1)]
    order_id, total = orders.place_order(12, items, now=T0)
    assert total == pytest.approx(9.6)
    order = database.get_document_by_id("order", order_id)
    assert order["kind"] == "order"
    assert order["table_code"] == "table-12"
    assert order["status"] == "new"
    assert order["timestamp"] == T0
    assert order["stats_recorded"] is False
    assert "claimed_by" not in order
    assert len(order["items"]) == 2


def test_staff_order_keeps_waiter_name():
    order_id, _ = orders.place_order(5, [OrderItem(name="Wasser", price=3.0, quantity=1)], ordered_by="Anna", now=T0)
    order = database.get_document_by_id("order", order_id)
    assert order["ordered_by"] == "Anna"
    assert order["table_code"] == "waiter-5"


def test_empty_cart_is_rejected():
    with pytest.raises(CoordinationError):
        orders.place_order(5, [], now=T0)


def test_waiter_call_has_no_items():
    call_id = orders.call_waiter(3, AppSettings(), now=T0)
    call = database.get_document_by_id("order", call_id)
    assert call["kind"] == "waiter_call"
    assert "items" not in call
    assert "total" not in call


def test_waiter_call_cooldown():
    settings = AppSettings(waiter_call_cooldown_seconds=300)
    orders.call_waiter(3, settings, now=T0)
    with pytest.raises(CooldownActive) as exc:
        orders.call_waiter(3, settings, now=T0 + MINUTE)
    assert exc.value.retry_after == 240
    # other tables are not affected
    orders.call_waiter(4, settings, now=T0 + MINUTE)
    orders.call_waiter(3, settings, now=T0 + 5 * MINUTE)
    assert len(orders.list_orders()) == 3


def test_cooldown_disabled():
    settings = AppSettings(waiter_call_cooldown_seconds=0)
    orders.call_waiter(3, settings, now=T0)
    orders.call_waiter(3, settings, now=T0 + 1)
    assert len(orders.list_orders()) == 2
