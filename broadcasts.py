"""
Broadcast Channel

One-to-many announcements with a read flag per recipient. Marking a message
read sets only ``read_by.<recipient>``, so concurrent readers never
overwrite each other's flags. Recipient names are stored as field keys
(see ``database.field_key``) and handed back in their display form.
"""
import logging
from typing import Iterable, List, Optional

from alerts import now_ms
from database import create_document, display_key, field_key, get_documents, update_document
from errors import InvalidRecipient
from schemas import Broadcast, BroadcastTarget

logger = logging.getLogger(__name__)

COLLECTION = "broadcast"


def _check_recipient(recipient: str) -> None:
    if not recipient:
        raise InvalidRecipient(f"Invalid recipient name: {recipient!r}")


def send(message: str, recipients: Iterable[str], target: BroadcastTarget = "all", now: Optional[int] = None) -> str:
    read_by = {}
    for recipient in recipients:
        _check_recipient(recipient)
        read_by[field_key(recipient)] = False
    broadcast = Broadcast(
        message=message,
        timestamp=now if now is not None else now_ms(),
        target=target,
        read_by=read_by,
    )
    message_id = create_document(COLLECTION, broadcast)
    logger.info("Broadcast %s sent to %d recipients (%s)", message_id, len(read_by), target)
    return message_id


def mark_read(message_id: str, recipient: str) -> bool:
    _check_recipient(recipient)
    return update_document(COLLECTION, message_id, {f"read_by.{field_key(recipient)}": True})


def clear(message_id: str) -> bool:
    """Deactivate a message; it stays in the feed but no longer counts as unread."""
    return update_document(COLLECTION, message_id, {"active": False})


def _decoded(msg: dict) -> dict:
    msg["read_by"] = {display_key(k): v for k, v in (msg.get("read_by") or {}).items()}
    return msg


def list_messages() -> List[dict]:
    return [_decoded(msg) for msg in get_documents(COLLECTION, sort=[("timestamp", -1)])]


def _is_unread(msg: dict, recipient: str) -> bool:
    # Raw feed snapshots still carry the stored keys.
    read_by = msg.get("read_by") or {}
    return read_by.get(recipient, read_by.get(field_key(recipient))) is False


def unread_count(recipient: str, messages: Optional[List[dict]] = None) -> int:
    """Count active messages ``recipient`` has not read.

    Always computed from the full message list; a new message changes the
    count without any notice to earlier results.
    """
    if messages is None:
        messages = list_messages()
    return sum(
        1 for msg in messages
        if msg.get("active", True) and _is_unread(msg, recipient)
    )


def latest_for(target: BroadcastTarget, messages: Optional[List[dict]] = None) -> Optional[dict]:
    """Newest active message addressed to ``target`` or to everyone."""
    if messages is None:
        messages = list_messages()
    candidates = [
        msg for msg in messages
        if msg.get("active", True) and msg.get("target") in ("all", target)
    ]
    return max(candidates, key=lambda msg: msg["timestamp"], default=None)
