"""Record dataclass for storing idempotency key state."""

import json
import time
from dataclasses import dataclass, field
from typing import Literal

from idempotency_keys.utils import ensure_float

Status = Literal["reserved", "processing", "completed", "failed"]

STATUSES: tuple[str, ...] = ("reserved", "processing", "completed", "failed")
TERMINAL_STATUSES: tuple[str, ...] = ("completed", "failed")


@dataclass
class KeyRecord:
    """Represents the lifecycle state of one idempotency key.

    Attributes:
        key: Unique identifier presented by callers
        status: Current lifecycle status
        response: Canonical JSON text of the result (terminal states only)
        owner: Principal allowed to use the key (None = anyone)
        operation: Tag naming the protected action
        reserved_until: Expiry of an unclaimed reservation (epoch seconds)
        created_at: Timestamp when the key was issued
        updated_at: Timestamp of the last transition
    """

    key: str
    status: Status = "reserved"
    response: str | None = None
    owner: str | None = None
    operation: str | None = None
    reserved_until: float | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def payload(self) -> object:
        """Decode the stored response, or None before a terminal state."""
        if self.response is None:
            return None
        return json.loads(self.response)

    def owner_matches(self, owner: str | None) -> bool:
        return self.owner is None or self.owner == owner

    def is_claimable_by(self, owner: str | None, now: float) -> bool:
        """Check every condition of the reserved -> processing transition."""
        if self.status != "reserved":
            return False
        if not self.owner_matches(owner):
            return False
        return self.reserved_until is None or self.reserved_until > now

    def is_expired(self, now: float) -> bool:
        """Check if an unclaimed reservation has passed its window.

        Claimed keys never expire.
        """
        if self.status != "reserved" or self.reserved_until is None:
            return False
        return self.reserved_until < now

    def to_dict(self) -> dict[str, object]:
        """Convert record to dictionary for serialization."""
        return {
            "key": self.key,
            "status": self.status,
            "response": self.response,
            "owner": self.owner,
            "operation": self.operation,
            "reserved_until": self.reserved_until,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "KeyRecord":
        """Create record from dictionary."""
        status = data["status"]
        if status not in STATUSES:
            raise ValueError(f"Invalid status: {status}")

        response = data.get("response")
        owner = data.get("owner")
        operation = data.get("operation")

        return cls(
            key=str(data["key"]),
            status=status,  # type: ignore[arg-type]
            response=str(response) if response is not None else None,
            owner=str(owner) if owner is not None else None,
            operation=str(operation) if operation is not None else None,
            reserved_until=ensure_float(data.get("reserved_until"), default=None),
            created_at=ensure_float(data["created_at"]),  # type: ignore[arg-type]
            updated_at=ensure_float(data["updated_at"]),  # type: ignore[arg-type]
        )
