"""In-memory store implementation."""

import dataclasses
import threading
import time
from collections.abc import Callable

from ..exceptions import DuplicateKeyError
from ..record import KeyRecord
from .base import KeyStore


class MemoryStore(KeyStore):
    """Thread-safe in-memory store for idempotency key records.

    Note: This store does NOT persist across processes or restarts.
    Use FileStore, RedisStore or SQLStore for multi-process scenarios.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        super().__init__(clock)
        self._records: dict[str, KeyRecord] = {}
        self._global_lock = threading.Lock()

    def insert(self, record: KeyRecord) -> None:
        with self._global_lock:
            if record.key in self._records:
                raise DuplicateKeyError(record.key)
            self._records[record.key] = dataclasses.replace(record)

    def get(self, key: str) -> KeyRecord | None:
        """Retrieve a copy of a record."""
        with self._global_lock:
            record = self._records.get(key)
            return dataclasses.replace(record) if record else None

    def claim(self, key: str, owner: str | None = None) -> bool:
        with self._global_lock:
            record = self._records.get(key)
            now = self.now()
            if record is None or not record.is_claimable_by(owner, now):
                return False

            record.status = "processing"
            record.updated_at = now
            return True

    def finish(self, key: str, status: str, response: str) -> bool:
        with self._global_lock:
            record = self._records.get(key)
            if record is None or record.status != "processing":
                return False

            record.status = status  # type: ignore[assignment]
            record.response = response
            record.updated_at = self.now()
            return True

    def delete_expired(self) -> int:
        with self._global_lock:
            now = self.now()
            expired = [k for k, r in self._records.items() if r.is_expired(now)]
            for key in expired:
                del self._records[key]
            return len(expired)

    def clear(self) -> None:
        """Clear all records (useful for testing)."""
        with self._global_lock:
            self._records.clear()
