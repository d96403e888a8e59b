"""
Abstract Storage Interface

DESIGN DECISION: Persistence is a plain string key/value contract, the
same shape as browser local storage. This allows us to:
1. Keep every persisted value readable as JSON text
2. Use in-memory storage for testing
3. Swap the local file for another backend without touching business logic

Values are stored as strings. Structured values are JSON-encoded by the
caller (or via the get_json/set_json helpers). No schema versioning exists:
callers must degrade corrupt or missing values to defaults.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from smartbill.models.audit import AuditEvent


class StorageKeys:
    """Well-known keys of the local store."""
    USER_SESSION = "smartbill_user"
    MONTHLY_BUDGET = "smartbill_budget"
    CONVERSATION_HISTORY = "smartbill_ai_messages"
    API_KEY = "qwen_api_key"
    TRANSACTIONS = "smartbill_transactions"
    AUDIT_LOG = "smartbill_audit_log"


class KeyValueStore(ABC):
    """
    Abstract interface for the local key/value store.

    Any storage implementation (JSON file, sqlite, etc.)
    must implement these methods.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is absent
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageWriteError: If the value could not be persisted
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass

    def get_json(self, key: str) -> Optional[Any]:
        """
        Read and decode a JSON value.

        Returns:
            The decoded value, or None if the key is absent

        Raises:
            CorruptValueError: If the stored text is not valid JSON
        """
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CorruptValueError(key, str(e)) from e

    def set_json(self, key: str, value: Any) -> None:
        """Encode a value as JSON and store it."""
        self.set(key, json.dumps(value, ensure_ascii=False))


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def recent_events(self, limit: int = 100) -> list[dict[str, Any]]:
        """
        Get the most recent audit events as log dictionaries.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptValueError(StorageError):
    """A stored value could not be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Stored value for '{key}' is corrupt: {reason}")


class StorageWriteError(StorageError):
    """A value could not be persisted."""
    pass
