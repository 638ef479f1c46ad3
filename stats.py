"""
Statistics Recording

A completed order adds to the aggregate statistics exactly once, guarded by
the order's ``stats_recorded`` flag. The guard is checked against the
caller's snapshot and set afterwards in the same update as the completion
fields. Two callers holding the same stale snapshot can therefore both
record; the counters themselves are atomic ``$inc`` updates.
"""
import csv
import io
import logging
from typing import Any, Dict, Optional

from database import delete_document, display_key, field_key, get_document_by_id, increment_document, update_document
from schemas import ItemStats, Statistics, TableStats

logger = logging.getLogger(__name__)

STATS_COLLECTION = "statistics"
STATS_KEY = "totals"


def _counters(order: dict) -> Dict[str, float]:
    table = f"tables.{order['table_number']}"
    total = order.get("total") or 0
    counters: Dict[str, float] = {
        "total_orders": 1,
        "total_amount": total,
        f"{table}.total_orders": 1,
        f"{table}.total_amount": total,
    }
    for item in order["items"]:
        name = field_key(item["name"])
        amount = item["price"] * item["quantity"]
        for prefix in (f"{table}.items.{name}", f"item_totals.{name}"):
            counters[f"{prefix}.quantity"] = counters.get(f"{prefix}.quantity", 0) + item["quantity"]
            counters[f"{prefix}.amount"] = counters.get(f"{prefix}.amount", 0) + amount
    return counters


def record_if_needed(order: dict, extra_fields: Optional[Dict[str, Any]] = None) -> bool:
    """Add ``order`` to the statistics unless it was already recorded.

    ``extra_fields`` are written together with ``stats_recorded=True`` in one
    update. Waiter calls carry no items and only get the flag. Returns True
    when this call did the recording.
    """
    if order.get("stats_recorded"):
        return False
    if order.get("kind") == "order" and order.get("items"):
        increment_document(STATS_COLLECTION, STATS_KEY, _counters(order))
        logger.info("Recorded order %s for table %s", order["_id"], order["table_number"])
    fields = dict(extra_fields or {})
    fields["stats_recorded"] = True
    update_document("order", order["_id"], fields)
    return True


def get_statistics() -> Statistics:
    doc = get_document_by_id(STATS_COLLECTION, STATS_KEY) or {}
    tables = {}
    for number, table in (doc.get("tables") or {}).items():
        tables[int(number)] = TableStats(
            table_number=int(number),
            total_orders=table.get("total_orders", 0),
            total_amount=table.get("total_amount", 0.0),
            items={display_key(k): ItemStats(**v) for k, v in (table.get("items") or {}).items()},
        )
    return Statistics(
        total_orders=doc.get("total_orders", 0),
        total_amount=doc.get("total_amount", 0.0),
        item_totals={display_key(k): ItemStats(**v) for k, v in (doc.get("item_totals") or {}).items()},
        tables=tables,
    )


def reset_statistics() -> None:
    delete_document(STATS_COLLECTION, STATS_KEY)
    logger.info("Statistics reset")


def _money(amount: float) -> str:
    return f"{amount:.2f}".replace(".", ",")


def statistics_csv(stats: Statistics) -> str:
    """Semicolon separated export with German decimal commas."""
    out = io.StringIO()
    writer = csv.writer(out, delimiter=";", lineterminator="\n")
    writer.writerow(["Kategorie", "Produkt", "Anzahl", "Umsatz"])
    for name, item in sorted(stats.item_totals.items(), key=lambda kv: kv[1].quantity, reverse=True):
        writer.writerow(["Gesamt", name, item.quantity, _money(item.amount)])
    writer.writerow([])
    writer.writerow(["Tisch", "Bestellungen", "Umsatz"])
    for table in sorted(stats.tables.values(), key=lambda t: t.total_amount, reverse=True):
        writer.writerow([f"Tisch {table.table_number}", table.total_orders, _money(table.total_amount)])
    writer.writerow([])
    writer.writerow(["Zusammenfassung"])
    writer.writerow(["Gesamtbestellungen", stats.total_orders])
    writer.writerow(["Gesamtumsatz", f"{_money(stats.total_amount)} EUR"])
    return out.getvalue()
