"""Which waiter looks after which tables. Last write wins, no history."""
import logging
from typing import List, Optional

from database import delete_document, get_documents, put_document
from schemas import Waiterassignment

logger = logging.getLogger(__name__)

COLLECTION = "waiterassignment"


def save(waiter_name: str, tables: List[int]) -> Waiterassignment:
    assignment = Waiterassignment(waiter_name=waiter_name, tables=sorted(set(tables)))
    put_document(COLLECTION, waiter_name, assignment)
    logger.info("Assigned %s to tables %s", waiter_name, assignment.tables)
    return assignment


def get(waiter_name: str) -> Optional[Waiterassignment]:
    docs = get_documents(COLLECTION, {"_id": waiter_name}, limit=1)
    if not docs:
        return None
    return Waiterassignment(waiter_name=docs[0]["waiter_name"], tables=docs[0].get("tables", []))


def list_assignments() -> List[Waiterassignment]:
    return [
        Waiterassignment(waiter_name=doc["waiter_name"], tables=doc.get("tables", []))
        for doc in get_documents(COLLECTION, sort=[("waiter_name", 1)])
    ]


def remove(waiter_name: str) -> bool:
    return delete_document(COLLECTION, waiter_name)


def waiters_for_table(table_number: int, assignments: Optional[List[Waiterassignment]] = None) -> List[str]:
    if assignments is None:
        assignments = list_assignments()
    return [a.waiter_name for a in assignments if table_number in a.tables]
