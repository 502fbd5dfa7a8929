"""Elect exactly one executor per idempotency key."""

import logging

from .stores import KeyStore

logger = logging.getLogger(__name__)


class ClaimArbiter:
    """Perform the reserved -> processing transition.

    The transition is a compare-and-swap carried out by the store in a
    single atomic step, so when several callers claim the same key at
    once, in one process or many, exactly one of them gets True.
    """

    def __init__(self, store: KeyStore) -> None:
        self.store = store

    def claim(self, key: str, owner: str | None = None) -> bool:
        """Try to become the executor for a key.

        Succeeds only if the key exists, is reserved, is usable by
        ``owner`` and its reservation window has not elapsed. A False
        result leaves the record untouched.
        """
        claimed = self.store.claim(key, owner)
        if claimed:
            logger.info("Claimed key %s", key)
        else:
            logger.debug("Claim lost for key %s", key)
        return claimed
