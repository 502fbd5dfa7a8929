"""Short-poll wait for a sibling's in-flight execution."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from .exceptions import UnknownKeyError
from .stores import KeyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Result of waiting on a key.

    Attributes:
        state: "completed", "failed" or "timed_out"
        response: Decoded stored response (None when timed out)
        waited: Seconds spent waiting
    """

    state: Literal["completed", "failed", "timed_out"]
    response: object = None
    waited: float = 0.0

    @property
    def timed_out(self) -> bool:
        return self.state == "timed_out"


class WaitCoordinator:
    """Poll the store until a key reaches a terminal state or time runs out.

    Args:
        store: Storage backend
        poll_interval: Seconds between reads
        max_wait: Upper bound on any single wait (seconds)
        clock: Monotonic clock used for deadlines
        sleep: Function used to suspend between reads
    """

    def __init__(
        self,
        store: KeyStore,
        poll_interval: float = 0.1,
        max_wait: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval <= 0 or max_wait <= 0:
            raise ValueError("poll_interval and max_wait must be positive")
        self.store = store
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.clock = clock
        self.sleep = sleep

    def await_result(self, key: str, deadline: float | None = None) -> Outcome:
        """Wait for a key's terminal response.

        Args:
            key: The idempotency key
            deadline: Caller's own absolute deadline on ``clock``; the
                wait ends at whichever of this and max_wait comes first

        Returns:
            Outcome with the terminal response, or a timed_out outcome

        Raises:
            UnknownKeyError: If the key disappears while waiting
        """
        start = self.clock()
        end = start + self.max_wait
        if deadline is not None:
            end = min(end, deadline)

        while True:
            record = self.store.get(key)
            if record is None:
                raise UnknownKeyError(key)

            now = self.clock()
            if record.is_terminal:
                return Outcome(
                    state=record.status,  # type: ignore[arg-type]
                    response=record.payload(),
                    waited=now - start,
                )

            remaining = end - now
            if remaining <= 0:
                logger.info("Gave up waiting on key %s after %.2fs", key, now - start)
                return Outcome(state="timed_out", waited=now - start)

            self.sleep(min(self.poll_interval, remaining))
