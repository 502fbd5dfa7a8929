"""Base store interface for idempotency key records."""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from ..record import KeyRecord


class KeyStore(ABC):
    """Abstract base class for idempotency key stores.

    Stores are responsible for:
    - Persisting key records (one record per key)
    - Performing the reserved -> processing claim as one atomic step
    - Recording terminal states only for processing keys
    - Removing expired, never-claimed reservations

    Every time comparison uses the store's clock, so a backend that
    arbitrates races also owns the notion of "now".

    Args:
        clock: Function returning the current epoch time in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock

    def now(self) -> float:
        return self.clock()

    @abstractmethod
    def insert(self, record: KeyRecord) -> None:
        """Store a new record.

        Args:
            record: The record to create

        Raises:
            DuplicateKeyError: If a record with this key already exists
            StorageUnavailableError: If the write could not be committed
        """

    @abstractmethod
    def get(self, key: str) -> KeyRecord | None:
        """Retrieve a record by key.

        Args:
            key: The idempotency key

        Returns:
            Record if found, None otherwise
        """

    @abstractmethod
    def claim(self, key: str, owner: str | None = None) -> bool:
        """Atomically move a claimable record to processing.

        Args:
            key: The idempotency key
            owner: Principal presenting the key

        Returns:
            True if this call made the transition, False otherwise
        """

    @abstractmethod
    def finish(self, key: str, status: str, response: str) -> bool:
        """Write a terminal status and response for a processing record.

        Args:
            key: The idempotency key
            status: "completed" or "failed"
            response: Canonical JSON text of the response

        Returns:
            True if written, False if the record is not processing
        """

    @abstractmethod
    def delete_expired(self) -> int:
        """Delete reserved records whose reservation window has elapsed.

        Returns:
            Number of records deleted
        """

    @abstractmethod
    def clear(self) -> None:
        """Delete all records (useful for testing)."""
