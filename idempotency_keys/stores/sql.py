"""SQL store implementation using SQLAlchemy Core conditional updates."""

import time
from collections.abc import Callable

from sqlalchemy import (
    Column,
    Double,
    Engine,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..exceptions import DuplicateKeyError, StorageUnavailableError
from ..record import KeyRecord
from .base import KeyStore

metadata = MetaData()

idempotency_keys = Table(
    "idempotency_keys",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("status", String(16), nullable=False),
    Column("response", Text, nullable=True),
    Column("owner", String(255), nullable=True, index=True),
    Column("operation", String(255), nullable=True),
    Column("reserved_until", Double, nullable=True),
    Column("created_at", Double, nullable=False),
    Column("updated_at", Double, nullable=False),
)


def create_sql_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    An in-memory SQLite database exists per connection, so it is pinned to
    one connection shared by every thread.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(url, pool_pre_ping=True)


class SQLStore(KeyStore):
    """SQL store for idempotency key records.

    Every transition is a single-row, single-statement UPDATE conditioned
    on the current status; the database's row locking decides which of
    several concurrent claims matches, across any number of processes.

    Args:
        engine: SQLAlchemy engine
        clock: Function returning the current epoch time
    """

    def __init__(
        self, engine: Engine, clock: Callable[[], float] = time.time
    ) -> None:
        super().__init__(clock)
        self.engine = engine

    def create_schema(self) -> None:
        """Create the idempotency_keys table if it does not exist."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("create_schema", str(exc)) from exc

    def insert(self, record: KeyRecord) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(idempotency_keys).values(**record.to_dict()))
        except IntegrityError as exc:
            raise DuplicateKeyError(record.key) from exc
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("insert", str(exc)) from exc

    def get(self, key: str) -> KeyRecord | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(idempotency_keys).where(idempotency_keys.c.key == key)
                ).first()
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("get", str(exc)) from exc

        if row is None:
            return None
        return KeyRecord.from_dict(dict(row._mapping))

    def claim(self, key: str, owner: str | None = None) -> bool:
        t = idempotency_keys
        now = self.now()

        owner_clause = t.c.owner.is_(None)
        if owner is not None:
            owner_clause = or_(owner_clause, t.c.owner == owner)

        stmt = (
            update(t)
            .where(
                t.c.key == key,
                t.c.status == "reserved",
                owner_clause,
                or_(t.c.reserved_until.is_(None), t.c.reserved_until > now),
            )
            .values(status="processing", updated_at=now)
        )
        try:
            with self.engine.begin() as conn:
                claimed = conn.execute(stmt).rowcount == 1
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("claim", str(exc)) from exc
        return claimed

    def finish(self, key: str, status: str, response: str) -> bool:
        t = idempotency_keys
        stmt = (
            update(t)
            .where(t.c.key == key, t.c.status == "processing")
            .values(status=status, response=response, updated_at=self.now())
        )
        try:
            with self.engine.begin() as conn:
                written = conn.execute(stmt).rowcount == 1
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("finish", str(exc)) from exc
        return written

    def delete_expired(self) -> int:
        t = idempotency_keys
        stmt = delete(t).where(
            t.c.status == "reserved",
            t.c.reserved_until.is_not(None),
            t.c.reserved_until < self.now(),
        )
        try:
            with self.engine.begin() as conn:
                deleted = conn.execute(stmt).rowcount
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("sweep", str(exc)) from exc
        return deleted

    def clear(self) -> None:
        """Delete all records (useful for testing)."""
        with self.engine.begin() as conn:
            conn.execute(delete(idempotency_keys))
