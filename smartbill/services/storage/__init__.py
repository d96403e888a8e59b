"""
Storage Services Package

Provides the abstract key/value interface and its implementations.
The local JSON file is the default backend, but designed to be swappable.
"""

from smartbill.services.storage.interface import (
    AuditStorageInterface,
    CorruptValueError,
    KeyValueStore,
    StorageError,
    StorageKeys,
    StorageWriteError,
)
from smartbill.services.storage.audit_log import KeyValueAuditStorage
from smartbill.services.storage.json_file import JsonFileStore
from smartbill.services.storage.memory import InMemoryStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStore",
    "StorageKeys",
    # Exceptions
    "CorruptValueError",
    "StorageError",
    "StorageWriteError",
    # Implementations
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueAuditStorage",
]
