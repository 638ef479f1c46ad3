"""
Live App Settings

Settings live in a single document of the ``settings`` collection. Pure
functions never read them implicitly: the SettingsContext keeps the latest
snapshot, fed by one subscription, and callers pass ``context.current`` on.
Whenever the store cannot be read the defaults apply.
"""
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from database import get_documents, put_document, subscribe, update_document
from errors import DatabaseUnavailable
from schemas import AppSettings

logger = logging.getLogger(__name__)

COLLECTION = "settings"
SETTINGS_KEY = "app"


def _parse(doc: Optional[dict]) -> AppSettings:
    if not doc:
        return AppSettings()
    try:
        return AppSettings(**doc)
    except ValidationError:
        logger.warning("Stored settings are invalid, using defaults")
        return AppSettings()


def load_settings() -> AppSettings:
    try:
        docs = get_documents(COLLECTION, {"_id": SETTINGS_KEY}, limit=1)
    except (DatabaseUnavailable, PyMongoError) as e:
        logger.warning("Settings not available (%s), using defaults", e)
        return AppSettings()
    return _parse(docs[0] if docs else None)


def save_settings(settings: AppSettings) -> AppSettings:
    put_document(COLLECTION, SETTINGS_KEY, settings)
    logger.info("Settings saved: auto_hide_minutes=%s language=%s", settings.auto_hide_minutes, settings.language)
    return settings


def update_settings(changes: dict) -> AppSettings:
    """Validate ``changes`` against the current settings and store only those fields.

    Fields nobody asked to change are left as they are in the store, so two
    admins editing different settings do not undo each other. A stored
    document that no longer validates is replaced wholesale.
    """
    docs = get_documents(COLLECTION, {"_id": SETTINGS_KEY}, limit=1)
    stored = docs[0] if docs else {}
    try:
        current = AppSettings(**stored)
    except ValidationError:
        logger.warning("Stored settings are invalid, replacing them")
        return save_settings(AppSettings(**changes))
    merged = AppSettings(**{**current.model_dump(), **changes})
    values = merged.model_dump()
    update_document(COLLECTION, SETTINGS_KEY, {k: values[k] for k in changes if k in values}, upsert=True)
    logger.info("Settings updated: %s", ", ".join(sorted(changes)))
    return merged


class SettingsContext:
    """Process-wide holder of the current settings snapshot."""

    def __init__(self):
        self.current = AppSettings()
        self._listeners: List[Callable[[AppSettings], None]] = []
        self._unsubscribe = None

    def start(self) -> None:
        self.current = load_settings()
        self._unsubscribe = subscribe(COLLECTION, self._on_snapshot)

    def stop(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def on_change(self, listener: Callable[[AppSettings], None]) -> None:
        self._listeners.append(listener)

    def _on_snapshot(self, snapshot: List[dict]) -> None:
        doc = next((d for d in snapshot if d.get("_id") == SETTINGS_KEY), None)
        self.current = _parse(doc)
        for listener in self._listeners:
            listener(self.current)
