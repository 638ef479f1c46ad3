import pytest

import claims
import database
from errors import NotClaimant
from schemas import AppSettings
from stats import get_statistics
from views import bar_board, waiter_board
from visibility import Role

T0 = 1_700_000_000_000


def _order(order_id):
    return database.get_document_by_id("order", order_id)


def test_claim_sets_both_fields(make_order):
    order_id = make_order()
    assert claims.claim(order_id, "Anna", now=T0 + 1000)
    order = _order(order_id)
    assert order["claimed_by"] == "Anna"
    assert order["claimed_at"] == T0 + 1000


def test_unclaim_clears_both_fields(make_order):
    order_id = make_order()
    claims.claim(order_id, "Anna", now=T0)
    assert claims.unclaim(order_id)
    order = _order(order_id)
    assert "claimed_by" not in order
    assert "claimed_at" not in order


def test_claim_leaves_other_fields_alone(make_order):
    order_id = make_order(hidden_from_bar=True)
    claims.claim(order_id, "Anna", now=T0)
    order = _order(order_id)
    assert order["hidden_from_bar"] is True
    assert order["total"] == 13.0


def test_concurrent_claims_converge_on_last_write(make_order):
    order_id = make_order()
    seen = {"bar": None, "anna": None, "ben": None}

    def watcher(name):
        def on_snapshot(snapshot):
            seen[name] = next(o for o in snapshot if o["_id"] == order_id)
        return on_snapshot

    for name in seen:
        database.subscribe("order", watcher(name))

    # both believe they won until the next snapshot
    assert claims.claim(order_id, "Anna", now=T0 + 100)
    assert claims.claim(order_id, "Ben", now=T0 + 120)

    pairs = {(o["claimed_by"], o["claimed_at"]) for o in seen.values()}
    assert pairs == {("Ben", T0 + 120)}


def test_claim_on_deleted_order_is_a_noop(make_order):
    order_id = make_order()
    database.delete_document("order", order_id)
    assert claims.claim(order_id, "Anna") is False
    assert _order(order_id) is None


def test_hide_from_bar_requires_claimant(make_order):
    order_id = make_order()
    with pytest.raises(NotClaimant):
        claims.hide_from_bar(order_id, "Anna")
    claims.claim(order_id, "Ben", now=T0)
    with pytest.raises(NotClaimant):
        claims.hide_from_bar(order_id, "Anna")
    assert _order(order_id)["hidden_from_bar"] is False
    with pytest.raises(NotClaimant):
        claims.hide_from_bar(order_id)


def test_bar_hides_any_ticket(make_order):
    settings = AppSettings()
    unclaimed = make_order()
    taken = make_order(timestamp=T0 + 1000)
    claims.claim(taken, "Anna", now=T0 + 2000)

    assert claims.hide_from_bar(unclaimed, "Haupttheke", role=Role.BAR)
    assert claims.hide_from_bar(taken, "Haupttheke", role=Role.BAR)

    orders = [_order(unclaimed), _order(taken)]
    assert all(order["hidden_from_bar"] for order in orders)
    assert _order(taken)["claimed_by"] == "Anna"
    assert bar_board(orders, settings, now=T0 + 3000) == []
    board = waiter_board(orders, "Anna", settings, now=T0 + 3000)
    assert [v.order["_id"] for v in board] == [taken, unclaimed]
    assert get_statistics().total_orders == 2


def test_hide_from_bar_records_stats_once(make_order):
    order_id = make_order()
    claims.claim(order_id, "Anna", now=T0)
    assert claims.hide_from_bar(order_id, "Anna")
    assert claims.hide_from_bar(order_id, "Anna")
    order = _order(order_id)
    assert order["hidden_from_bar"] is True
    assert order["stats_recorded"] is True
    assert order["completed_by_waiter"] is False
    assert get_statistics().total_orders == 1


def test_complete_claims_unclaimed_order(make_order):
    order_id = make_order()
    assert claims.complete(order_id, "Anna", now=T0 + 5)
    order = _order(order_id)
    assert order["completed_by_waiter"] is True
    assert order["claimed_by"] == "Anna"
    assert order["claimed_at"] == T0 + 5
    assert order["hidden_from_bar"] is False
    assert get_statistics().total_orders == 1


def test_complete_rejects_other_claimant(make_order):
    order_id = make_order()
    claims.claim(order_id, "Ben", now=T0)
    with pytest.raises(NotClaimant):
        claims.complete(order_id, "Anna")
    assert _order(order_id)["completed_by_waiter"] is False


def test_complete_after_hide_does_not_count_twice(make_order):
    order_id = make_order()
    claims.claim(order_id, "Anna", now=T0)
    claims.hide_from_bar(order_id, "Anna")
    claims.complete(order_id, "Anna")
    assert get_statistics().total_orders == 1
    assert _order(order_id)["completed_by_waiter"] is True


def test_dismiss_removes_and_counts(make_order):
    order_id = make_order()
    assert claims.dismiss(order_id)
    assert _order(order_id) is None
    assert get_statistics().total_orders == 1
    assert claims.dismiss(order_id) is False


def test_missing_order_returns_false():
    missing = "0123456789abcdef01234567"
    assert claims.hide_from_bar(missing, "Anna") is False
    assert claims.complete(missing, "Anna") is False
    assert claims.unclaim(missing) is False
