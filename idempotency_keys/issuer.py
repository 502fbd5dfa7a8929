"""Issue new idempotency keys bound to a reservation window."""

import logging
from collections.abc import Callable

from .exceptions import DuplicateKeyError
from .key import generate_key
from .record import KeyRecord
from .stores import KeyStore

logger = logging.getLogger(__name__)


class KeyIssuer:
    """Mint keys and persist them in the reserved state.

    Args:
        store: Storage backend
        ttl: Reservation window in seconds
        key_factory: Function producing new key values
        max_attempts: Inserts to try before giving up on key collisions
    """

    def __init__(
        self,
        store: KeyStore,
        ttl: float,
        key_factory: Callable[[], str] = generate_key,
        max_attempts: int = 3,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.store = store
        self.ttl = ttl
        self.key_factory = key_factory
        self.max_attempts = max_attempts

    def issue(
        self, owner: str | None = None, operation: str | None = None
    ) -> KeyRecord:
        """Create a reserved key.

        The record is durably inserted before it is returned, so a caller
        never receives a key the store does not know about.

        Returns:
            The new record, carrying ``key`` and ``reserved_until``

        Raises:
            StorageUnavailableError: If the insert could not be committed
            DuplicateKeyError: If every generated key collided
        """
        attempt = 0
        while True:
            attempt += 1
            now = self.store.now()
            record = KeyRecord(
                key=self.key_factory(),
                status="reserved",
                owner=owner,
                operation=operation,
                reserved_until=now + self.ttl,
                created_at=now,
                updated_at=now,
            )
            try:
                self.store.insert(record)
            except DuplicateKeyError:
                if attempt >= self.max_attempts:
                    raise
                logger.warning("Generated key collided, retrying (attempt %d)", attempt)
                continue

            logger.info(
                "Issued key %s (owner=%s, operation=%s)", record.key, owner, operation
            )
            return record
