"""
Local JSON File Storage

DESIGN DECISION: A single JSON object on disk holds every key. It is the
desktop stand-in for the browser's local storage:
1. The user can open and read their data
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- The whole file is rewritten on every set (fine for one personal ledger)
- One writer per device; there is no cross-process locking

Writes go to a temp file that then replaces the real one, so a crash
mid-write never leaves a half-written store behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from smartbill.services.storage.interface import KeyValueStore, StorageWriteError


logger = structlog.get_logger(__name__)


class JsonFileStore(KeyValueStore):
    """
    Key/value store backed by one JSON file.

    The file is read once when the store is opened; afterwards the
    in-memory copy is authoritative and every mutation is flushed.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()
        self._data: dict[str, str] = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        """Load the file, treating a missing or corrupt file as empty."""
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("store_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            logger.warning("store_not_an_object", path=str(self._path))
            return {}
        # Values are strings by contract; anything else is re-encoded
        return {
            str(key): value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
            for key, value in raw.items()
        }

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_file(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _flush(self, data: dict[str, str]) -> None:
        """Write `data` to disk, then adopt it as the in-memory copy."""
        payload = json.dumps(data, ensure_ascii=False, indent=2)
        try:
            self._write_file(payload)
        except OSError as e:
            raise StorageWriteError(f"Failed to write {self._path}: {e}") from e
        self._data = data

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._flush({**self._data, key: value})

    def delete(self, key: str) -> None:
        if key in self._data:
            self._flush({k: v for k, v in self._data.items() if k != key})
