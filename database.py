"""
Database Helper Functions

MongoDB helpers that expose each collection as a realtime feed:
push (create_document), field-level update (update_document), keyed upsert
(put_document), remove (delete_document) and subscribe.

Subscribers receive the full current snapshot of a collection after every
write that goes through this process. Writes made by other processes reach
them through watch_changes() when the deployment supports change streams.
"""

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from errors import DatabaseUnavailable

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]

Snapshot = List[dict]
Subscriber = Callable[[Snapshot], None]

_subscribers: Dict[str, List[Subscriber]] = {}
_subscribers_lock = threading.Lock()


def init_db(client, name: str) -> None:
    """Point the helpers at another client, e.g. a test double."""
    global _client, db
    _client = client
    db = client[name]


def _ensure_db():
    if db is None:
        raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_none=True)
    return dict(data)


def _key(_id: str):
    # Generated ids are ObjectIds; keyed collections use plain strings.
    try:
        return ObjectId(_id)
    except (InvalidId, TypeError):
        return _id


# Feed primitives

def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    _ensure_db()
    payload = _to_dict(data)
    now = datetime.now(timezone.utc)
    payload['created_at'] = now
    payload['updated_at'] = now
    result = db[collection_name].insert_one(payload)
    _notify(collection_name)
    return str(result.inserted_id)


def put_document(collection_name: str, key: str, data: Union[BaseModel, dict]) -> None:
    """Upsert a document under a caller-chosen key, replacing it wholesale."""
    _ensure_db()
    payload = _to_dict(data)
    payload['updated_at'] = datetime.now(timezone.utc)
    db[collection_name].replace_one({"_id": key}, payload, upsert=True)
    _notify(collection_name)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
    _ensure_db()
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(int(limit))
    return [serialize_doc(doc) for doc in cursor]


def get_document_by_id(collection_name: str, _id: str) -> Optional[dict]:
    _ensure_db()
    doc = db[collection_name].find_one({"_id": _key(_id)})
    return serialize_doc(doc) if doc else None


def update_document(collection_name: str, _id: str, update_data: Dict[str, Any], unset: Optional[List[str]] = None,
                    upsert: bool = False) -> bool:
    """Apply a field-level update in a single call.

    Only the named fields are touched. Returns False when the record no
    longer exists; the write is then a no-op and nothing is recreated,
    unless ``upsert`` asks for a keyed document to be created.
    """
    _ensure_db()
    update = {"$set": _to_dict(update_data)}
    update["$set"]["updated_at"] = datetime.now(timezone.utc)
    if unset:
        update["$unset"] = {field: "" for field in unset}
    result = db[collection_name].update_one({"_id": _key(_id)}, update, upsert=upsert)
    if result.matched_count == 0 and result.upserted_id is None:
        logger.warning("Stale write to %s/%s ignored, record is gone", collection_name, _id)
        return False
    _notify(collection_name)
    return True


def increment_document(collection_name: str, key: str, counters: Dict[str, Union[int, float]]) -> None:
    """Atomically add to numeric fields of a keyed document, creating it if needed."""
    _ensure_db()
    db[collection_name].update_one(
        {"_id": key},
        {"$inc": counters, "$set": {"updated_at": datetime.now(timezone.utc)}},
        upsert=True,
    )
    _notify(collection_name)


def delete_document(collection_name: str, _id: str) -> bool:
    _ensure_db()
    result = db[collection_name].delete_one({"_id": _key(_id)})
    if result.deleted_count == 0:
        return False
    _notify(collection_name)
    return True


# Subscriptions

def subscribe(collection_name: str, callback: Subscriber) -> Callable[[], None]:
    """Register a callback for snapshots of a collection; returns an unsubscribe function."""
    with _subscribers_lock:
        _subscribers.setdefault(collection_name, []).append(callback)

    def unsubscribe():
        with _subscribers_lock:
            callbacks = _subscribers.get(collection_name, [])
            if callback in callbacks:
                callbacks.remove(callback)

    return unsubscribe


def clear_subscribers() -> None:
    with _subscribers_lock:
        _subscribers.clear()


def _notify(collection_name: str) -> None:
    with _subscribers_lock:
        callbacks = list(_subscribers.get(collection_name, []))
    if not callbacks:
        return
    snapshot = get_documents(collection_name)
    for callback in callbacks:
        try:
            callback(snapshot)
        except Exception:
            logger.exception("Subscriber for %s failed", collection_name)


def watch_changes(collection_name: str, stop: threading.Event) -> None:
    """Forward changes made by other processes to local subscribers.

    Blocks until ``stop`` is set; run it in a background thread. Requires a
    replica set or sharded cluster.
    """
    _ensure_db()
    try:
        with db[collection_name].watch(max_await_time_ms=1000) as stream:
            while not stop.is_set():
                if stream.try_next() is not None:
                    _notify(collection_name)
    except PyMongoError:
        logger.exception("Change stream on %s stopped", collection_name)


# Utility

# Field names that end up in dotted update paths.
_DOT = "\uff0e"
_DOLLAR = "\uff04"


def field_key(name: str) -> str:
    key = name.replace(".", _DOT)
    if key.startswith("$"):
        key = _DOLLAR + key[1:]
    return key


def display_key(key: str) -> str:
    if key.startswith(_DOLLAR):
        key = "$" + key[1:]
    return key.replace(_DOT, ".")


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])  # convert ObjectId to string
    return d
