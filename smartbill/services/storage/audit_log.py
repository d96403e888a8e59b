"""
Audit Log Storage on the Key/Value Store

Events are kept as a JSON array under one key, oldest first, and trimmed
to a fixed size so the local store cannot grow without bound.
"""

from typing import Any

from smartbill.models.audit import AuditEvent
from smartbill.services.storage.interface import (
    AuditStorageInterface,
    CorruptValueError,
    KeyValueStore,
    StorageKeys,
)


class KeyValueAuditStorage(AuditStorageInterface):

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = 500,
        key: str = StorageKeys.AUDIT_LOG,
    ):
        self._store = store
        self._limit = limit
        self._key = key

    def _load(self) -> list[dict[str, Any]]:
        try:
            events = self._store.get_json(self._key)
        except CorruptValueError:
            return []
        return events if isinstance(events, list) else []

    def append_event(self, event: AuditEvent) -> bool:
        events = self._load()
        events.append(event.to_log_dict())
        self._store.set_json(self._key, events[-self._limit:])
        return True

    def recent_events(self, limit: int = 100) -> list[dict[str, Any]]:
        events = self._load()
        return list(reversed(events[-limit:]))
