"""Reclaim reservations that expired without being claimed."""

import logging

from .stores import KeyStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Delete reserved keys past their reservation window.

    Claimed keys are history and are never removed. Safe to run
    repeatedly and alongside every other operation.
    """

    def __init__(self, store: KeyStore) -> None:
        self.store = store

    def sweep(self) -> int:
        deleted = self.store.delete_expired()
        logger.info("Deleted expired keys: %d", deleted)
        return deleted
