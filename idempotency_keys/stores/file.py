"""File-based store implementation with cross-process locking."""

import fcntl
import hashlib
import json
import os
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from ..exceptions import DuplicateKeyError, StorageUnavailableError
from ..record import KeyRecord
from .base import KeyStore


class FileStore(KeyStore):
    """File-based store for idempotency key records.

    Uses one JSON file per key and an fcntl lock file per key around every
    read-modify-write, so a claim is atomic across processes on one host
    (e.g., gunicorn workers, celery).

    Args:
        directory: Path to directory for storing records
        lock_timeout: Maximum time to wait for a key's lock (seconds)
        clock: Function returning the current epoch time
    """

    def __init__(
        self,
        directory: str | Path,
        lock_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(clock)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.lock_timeout = lock_timeout

    def _name(self, key: str) -> str:
        # Keys are caller-visible text; hash them into safe file names
        return hashlib.sha256(key.encode()).hexdigest()

    def _record_path(self, key: str) -> Path:
        return self.directory / f"{self._name(key)}.json"

    def _lock_path(self, key: str) -> Path:
        return self.directory / f"{self._name(key)}.lock"

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        """Hold the cross-process lock for a key.

        Raises:
            StorageUnavailableError: If the lock is not acquired in time
        """
        lock_path = self._lock_path(key)
        start_time = time.monotonic()

        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_RDWR)
        except OSError as exc:
            raise StorageUnavailableError("lock", str(exc)) from exc

        try:
            while True:
                try:
                    # Non-blocking lock attempt
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() - start_time >= self.lock_timeout:
                        raise StorageUnavailableError(
                            "lock", f"timed out waiting for key '{key}'"
                        ) from None
                    time.sleep(0.01)

            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _read(self, key: str) -> KeyRecord | None:
        record_path = self._record_path(key)
        try:
            with open(record_path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageUnavailableError("read", str(exc)) from exc

        return KeyRecord.from_dict(data)

    def _write(self, record: KeyRecord) -> None:
        record_path = self._record_path(record.key)

        # Write atomically using temp file + rename; the key lock is held
        temp_path = record_path.with_suffix(".tmp")
        try:
            with open(temp_path, "w") as f:
                json.dump(record.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(record_path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageUnavailableError("write", str(exc)) from exc

    def insert(self, record: KeyRecord) -> None:
        with self._locked(record.key):
            if self._record_path(record.key).exists():
                raise DuplicateKeyError(record.key)
            self._write(record)

    def get(self, key: str) -> KeyRecord | None:
        # Records are replaced by rename, so an unlocked read sees a whole file
        return self._read(key)

    def claim(self, key: str, owner: str | None = None) -> bool:
        with self._locked(key):
            record = self._read(key)
            now = self.now()
            if record is None or not record.is_claimable_by(owner, now):
                return False

            record.status = "processing"
            record.updated_at = now
            self._write(record)
            return True

    def finish(self, key: str, status: str, response: str) -> bool:
        with self._locked(key):
            record = self._read(key)
            if record is None or record.status != "processing":
                return False

            record.status = status  # type: ignore[assignment]
            record.response = response
            record.updated_at = self.now()
            self._write(record)
            return True

    def delete_expired(self) -> int:
        deleted = 0
        for path in self.directory.glob("*.json"):
            try:
                with open(path) as f:
                    key = json.load(f)["key"]
            except (OSError, ValueError, KeyError):
                # Removed by a concurrent sweep, or not a record
                continue

            with self._locked(key):
                record = self._read(key)
                if record is None or not record.is_expired(self.now()):
                    continue
                self._record_path(key).unlink(missing_ok=True)
                deleted += 1

            # A deleted key can never be claimed again, so its lock can go
            self._lock_path(key).unlink(missing_ok=True)
        return deleted

    def clear(self) -> None:
        """Clear all records and locks (useful for testing)."""
        for path in self.directory.glob("*.json"):
            path.unlink(missing_ok=True)
        for path in self.directory.glob("*.lock"):
            path.unlink(missing_ok=True)
