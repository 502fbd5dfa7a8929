"""Idempotency Keys - exactly-once execution with server-issued keys.

Keys are issued in a reserved state, claimed atomically by exactly one
caller, and finish as completed or failed with a stored response that
every later caller replays.

Example:
    manager = KeyManager(MemoryStore())
    record = manager.issue(owner="1", operation="pay")
    manager.execute(record.key, lambda: charge(1, 100), owner="1")
"""

from .arbiter import ClaimArbiter
from .config import Settings
from .decorator import idempotent
from .exceptions import (
    DuplicateKeyError,
    IdempotencyError,
    InvalidTransitionError,
    KeyExpiredError,
    KeyMismatchError,
    OperationFailedError,
    SerializationError,
    StillProcessingError,
    StorageUnavailableError,
    UnknownKeyError,
)
from .issuer import KeyIssuer
from .manager import KeyManager
from .record import KeyRecord
from .recorder import CompletionRecorder
from .stores import FileStore, KeyStore, MemoryStore
from .sweeper import ExpirySweeper
from .waiter import Outcome, WaitCoordinator

__version__ = "0.1.0"

__all__ = [
    "idempotent",
    "KeyManager",
    "KeyIssuer",
    "ClaimArbiter",
    "CompletionRecorder",
    "WaitCoordinator",
    "Outcome",
    "ExpirySweeper",
    "KeyRecord",
    "Settings",
    "KeyStore",
    "MemoryStore",
    "FileStore",
    "IdempotencyError",
    "UnknownKeyError",
    "DuplicateKeyError",
    "InvalidTransitionError",
    "KeyMismatchError",
    "KeyExpiredError",
    "OperationFailedError",
    "StillProcessingError",
    "StorageUnavailableError",
    "SerializationError",
]
