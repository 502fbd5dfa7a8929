"""Shared fixtures for store and manager tests."""

import pytest
from sqlalchemy import create_engine

from idempotency_keys.stores import FileStore, MemoryStore
from idempotency_keys.stores.sql import SQLStore


class FakeClock:
    """Manually advanced clock for deterministic expiry and wait tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


def make_sql_store(tmp_path, clock=None):
    engine = create_engine(f"sqlite:///{tmp_path / 'keys.db'}")
    store = SQLStore(engine, clock=clock) if clock else SQLStore(engine)
    store.create_schema()
    return store


@pytest.fixture(params=["memory", "file", "sql"])
def store(request, tmp_path, clock):
    """Each local backend, driven by the fake clock."""
    if request.param == "memory":
        yield MemoryStore(clock=clock)
    elif request.param == "file":
        yield FileStore(tmp_path / "records", clock=clock)
    else:
        sql_store = make_sql_store(tmp_path, clock)
        yield sql_store
        sql_store.engine.dispose()


@pytest.fixture(params=["memory", "file", "sql"])
def real_clock_store(request, tmp_path):
    """Each local backend on the wall clock, for threaded tests."""
    if request.param == "memory":
        yield MemoryStore()
    elif request.param == "file":
        yield FileStore(tmp_path / "records")
    else:
        sql_store = make_sql_store(tmp_path)
        yield sql_store
        sql_store.engine.dispose()
