"""Record the terminal outcome of a claimed key."""

import logging

from .exceptions import InvalidTransitionError, UnknownKeyError
from .record import KeyRecord
from .stores import KeyStore
from .utils import canonical_json

logger = logging.getLogger(__name__)


class CompletionRecorder:
    """Move a processing key to completed or failed.

    Only the caller whose claim succeeded should record an outcome, and
    only once; the store refuses to overwrite a key that is not
    processing, so a terminal response is never replaced.
    """

    def __init__(self, store: KeyStore) -> None:
        self.store = store

    def complete(self, key: str, response: object) -> KeyRecord:
        """Store the successful response for a key.

        Raises:
            SerializationError: If the response is not JSON-serializable
            InvalidTransitionError: If the key is not processing
        """
        return self._finish(key, "completed", response)

    def fail(self, key: str, error_info: object) -> KeyRecord:
        """Store error details for a key whose operation raised.

        Raises:
            SerializationError: If the error info is not JSON-serializable
            InvalidTransitionError: If the key is not processing
        """
        return self._finish(key, "failed", error_info)

    def _finish(self, key: str, status: str, payload: object) -> KeyRecord:
        response = canonical_json(payload)

        if not self.store.finish(key, status, response):
            current = self.store.get(key)
            if current is None:
                raise UnknownKeyError(key)
            raise InvalidTransitionError(key, current.status, status)

        record = self.store.get(key)
        if record is None:
            raise UnknownKeyError(key)

        log = logger.info if status == "completed" else logger.warning
        log("Key %s %s", key, status)
        return record
