"""Pytest configuration and fixtures."""
import mongomock
import pytest
from fastapi.testclient import TestClient

import database

T0 = 1_700_000_000_000
MINUTE = 60_000


@pytest.fixture(autouse=True)
def store():
    """Run every test against a fresh in-memory MongoDB."""
    database.clear_subscribers()
    client = mongomock.MongoClient()
    database.init_db(client, "coordination_test")
    yield database.db
    database.clear_subscribers()
    client.drop_database("coordination_test")


@pytest.fixture
def client(store):
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_order(store):
    """Insert an order ticket straight into the feed."""
    def _make(table_number=7, timestamp=T0, kind="order", **fields):
        doc = {
            "table_code": f"table-{table_number}",
            "table_number": table_number,
            "kind": kind,
            "timestamp": timestamp,
            "status": "new",
            "hidden_from_bar": False,
            "completed_by_waiter": False,
            "stats_recorded": False,
        }
        if kind == "order":
            doc["items"] = [
                {"name": "Kölsch 0.2l", "price": 2.5, "quantity": 4},
                {"name": "Wasser", "price": 3.0, "quantity": 1},
            ]
            doc["total"] = 13.0
        doc.update(fields)
        return database.create_document("order", doc)

    return _make
