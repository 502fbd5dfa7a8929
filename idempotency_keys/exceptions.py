"""Exceptions for idempotency key handling."""


class IdempotencyError(Exception):
    """Base exception for idempotency-related errors."""


class UnknownKeyError(IdempotencyError):
    """Raise when a presented key has no record in the store."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(
            f"Unknown idempotency key: {key}. Acquire a key first."
        )


class DuplicateKeyError(IdempotencyError):
    """Raise when inserting a key that already exists."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Idempotency key already exists: {key}")


class InvalidTransitionError(IdempotencyError):
    """Raise when a key cannot move to the requested status."""

    def __init__(self, key: str, status: str | None, target: str) -> None:
        self.key = key
        self.status = status
        self.target = target
        super().__init__(
            f"Cannot move key '{key}' from {status or 'missing'} to {target}"
        )


class KeyMismatchError(IdempotencyError):
    """Raise when a key is bound to a different owner or operation."""

    def __init__(self, key: str, field: str) -> None:
        self.key = key
        self.field = field
        super().__init__(f"Idempotency key '{key}' does not match {field}")


class KeyExpiredError(IdempotencyError):
    """Raise when an unclaimed key is presented after its reservation window."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Reservation for idempotency key '{key}' has expired")


class OperationFailedError(IdempotencyError):
    """Raise when the protected operation failed for a key.

    ``replayed`` is True when the failure was recorded by an earlier
    execution and is only being reported again.
    """

    def __init__(
        self, key: str, error_info: object, replayed: bool = False
    ) -> None:
        self.key = key
        self.error_info = error_info
        self.replayed = replayed
        super().__init__(f"Operation for key '{key}' failed: {error_info}")


class StillProcessingError(IdempotencyError):
    """Raise when the bounded wait ends before the key reaches a terminal state."""

    def __init__(self, key: str, waited: float) -> None:
        self.key = key
        self.waited = waited
        super().__init__(
            f"Key '{key}' is still processing after {waited:.2f}s"
        )


class StorageUnavailableError(IdempotencyError):
    """Raise when a storage operation could not complete."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage unavailable during {operation}: {reason}")


class SerializationError(IdempotencyError):
    """Raise when a response cannot be serialized."""

    def __init__(self, value: object, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot serialize response: {reason}")
