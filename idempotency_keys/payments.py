"""Payment ledger: the side effect protected by idempotency keys."""

import itertools
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from sqlalchemy import Column, Double, Engine, Integer, Table, insert, select
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import StorageUnavailableError
from .stores.sql import metadata


@dataclass(frozen=True)
class Payment:
    id: int
    user_id: int
    amount: int
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "created_at": self.created_at,
        }


class PaymentLedger(ABC):
    """Append-only record of executed payments."""

    @abstractmethod
    def record(self, user_id: int, amount: int) -> Payment:
        """Append a payment and return it with its assigned id."""

    @abstractmethod
    def recent(self, limit: int = 100) -> list[Payment]:
        """Return the most recent payments, newest first."""


class MemoryPaymentLedger(PaymentLedger):
    def __init__(self) -> None:
        self._payments: list[Payment] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def record(self, user_id: int, amount: int) -> Payment:
        with self._lock:
            payment = Payment(id=next(self._ids), user_id=user_id, amount=amount)
            self._payments.append(payment)
            return payment

    def recent(self, limit: int = 100) -> list[Payment]:
        with self._lock:
            return list(reversed(self._payments))[:limit]


payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("amount", Integer, nullable=False),
    Column("created_at", Double, nullable=False),
)


class SQLPaymentLedger(PaymentLedger):
    """Payments table sharing the idempotency keys' database."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_schema(self) -> None:
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("create_schema", str(exc)) from exc

    def record(self, user_id: int, amount: int) -> Payment:
        created_at = time.time()
        # Committed before the key is marked completed
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(payments).values(
                    user_id=user_id, amount=amount, created_at=created_at
                )
            )
            payment_id = result.inserted_primary_key[0]
        return Payment(
            id=payment_id, user_id=user_id, amount=amount, created_at=created_at
        )

    def recent(self, limit: int = 100) -> list[Payment]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(payments).order_by(payments.c.id.desc()).limit(limit)
                ).all()
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("list_payments", str(exc)) from exc
        return [Payment(**row._mapping) for row in rows]
