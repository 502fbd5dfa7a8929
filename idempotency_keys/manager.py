"""Key lifecycle manager: issue, claim, execute once, replay."""

import logging
from collections.abc import Callable

from .arbiter import ClaimArbiter
from .config import Settings
from .exceptions import (
    KeyExpiredError,
    KeyMismatchError,
    OperationFailedError,
    StillProcessingError,
    UnknownKeyError,
)
from .issuer import KeyIssuer
from .record import KeyRecord
from .recorder import CompletionRecorder
from .stores import KeyStore, create_store
from .sweeper import ExpirySweeper
from .utils import canonical_json
from .waiter import WaitCoordinator

logger = logging.getLogger(__name__)


class KeyManager:
    """Run operations exactly once per idempotency key.

    Args:
        store: Storage backend shared by every component
        ttl: Reservation window for issued keys (seconds)
        poll_interval: Seconds between reads while waiting on a sibling
        max_wait: Upper bound on a wait for a sibling (seconds)
        waiter: Optional preconfigured wait coordinator

    Example:
        manager = KeyManager(MemoryStore())
        record = manager.issue(owner="1", operation="pay")
        manager.execute(record.key, lambda: charge(1, 100), owner="1")
    """

    def __init__(
        self,
        store: KeyStore,
        ttl: float = 1440 * 60,
        poll_interval: float = 0.1,
        max_wait: float = 5.0,
        waiter: WaitCoordinator | None = None,
    ) -> None:
        self.store = store
        self.issuer = KeyIssuer(store, ttl)
        self.arbiter = ClaimArbiter(store)
        self.recorder = CompletionRecorder(store)
        self.waiter = waiter or WaitCoordinator(store, poll_interval, max_wait)
        self.sweeper = ExpirySweeper(store)

    @classmethod
    def from_settings(cls, settings: Settings) -> "KeyManager":
        return cls(
            create_store(settings),
            ttl=settings.key_ttl,
            poll_interval=settings.poll_interval,
            max_wait=settings.max_wait,
        )

    def issue(
        self, owner: str | None = None, operation: str | None = None
    ) -> KeyRecord:
        return self.issuer.issue(owner=owner, operation=operation)

    def lookup(self, key: str) -> KeyRecord:
        """Return the record for a key.

        Raises:
            UnknownKeyError: If there is no such key
        """
        record = self.store.get(key)
        if record is None:
            raise UnknownKeyError(key)
        return record

    def sweep(self) -> int:
        return self.sweeper.sweep()

    def execute(
        self,
        key: str,
        action: Callable[[], object],
        owner: str | None = None,
        operation: str | None = None,
        deadline: float | None = None,
    ) -> object:
        """Run ``action`` at most once for ``key`` and return its response.

        The caller that wins the claim runs the action and records its
        result; every other caller, now or later, gets that same recorded
        response without running the action.

        Args:
            key: Previously issued idempotency key
            action: The protected operation; must return a JSON-serializable value
            owner: Principal presenting the key
            operation: Name of the protected action, checked against the key
            deadline: Caller's absolute deadline for waiting on a sibling

        Returns:
            The canonical stored response

        Raises:
            UnknownKeyError: If the key was never issued (or was swept)
            KeyMismatchError: If the key belongs to another owner or operation
            KeyExpiredError: If the unclaimed reservation has expired
            OperationFailedError: If the action failed, now or earlier
            StillProcessingError: If a sibling is still running at the deadline
            StorageUnavailableError: If the store could not be reached
        """
        record = self.lookup(key)
        if record.is_terminal:
            return self._replay(record)

        if operation and record.operation and operation != record.operation:
            raise KeyMismatchError(key, "operation")

        if self.arbiter.claim(key, owner):
            return self._run(key, action)

        record = self.lookup(key)
        if record.status == "reserved":
            if not record.owner_matches(owner):
                raise KeyMismatchError(key, "owner")
            # Still reserved after a lost claim: only the window can be the cause
            if not record.is_claimable_by(owner, self.store.now()):
                raise KeyExpiredError(key)

        outcome = self.waiter.await_result(key, deadline=deadline)
        if outcome.state == "completed":
            return outcome.response
        if outcome.state == "failed":
            raise OperationFailedError(key, outcome.response, replayed=True)
        raise StillProcessingError(key, outcome.waited)

    def _run(self, key: str, action: Callable[[], object]) -> object:
        try:
            result = action()
            # Only checks the result can be stored; an unstorable result fails the key
            canonical_json(result)
        except Exception as exc:
            error_info = {"error": str(exc), "type": type(exc).__name__}
            logger.exception("Operation for key %s failed", key)
            self.recorder.fail(key, error_info)
            raise OperationFailedError(key, error_info) from exc

        # The side effect is committed; a storage error here leaves the key
        # processing and is raised to the caller as StorageUnavailableError
        return self.recorder.complete(key, result).payload()

    def _replay(self, record: KeyRecord) -> object:
        logger.debug("Replaying %s response for key %s", record.status, record.key)
        if record.status == "failed":
            raise OperationFailedError(record.key, record.payload(), replayed=True)
        return record.payload()
