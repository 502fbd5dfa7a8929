"""Tests for store implementations."""

import pytest

from idempotency_keys.exceptions import DuplicateKeyError
from idempotency_keys.record import KeyRecord
from idempotency_keys.stores import FileStore
from idempotency_keys.stores.sql import SQLStore, idempotency_keys


def reserved(store, key="test:1", owner=None, ttl=60.0):
    now = store.now()
    record = KeyRecord(
        key=key,
        owner=owner,
        operation="pay",
        reserved_until=now + ttl if ttl is not None else None,
        created_at=now,
        updated_at=now,
    )
    store.insert(record)
    return record


def test_store_insert_get(store):
    """Test basic insert/get operations."""
    record = reserved(store, owner="7")

    retrieved = store.get("test:1")
    assert retrieved is not None
    assert retrieved == record
    assert retrieved.status == "reserved"
    assert retrieved.response is None

    assert store.get("missing") is None


def test_store_insert_duplicate(store):
    """Test that inserting an existing key fails and keeps the original."""
    reserved(store, owner="1")

    with pytest.raises(DuplicateKeyError):
        reserved(store, owner="2")

    assert store.get("test:1").owner == "1"


def test_store_claim_once(store, clock):
    """Test that a key can be claimed exactly once."""
    reserved(store)
    clock.advance(1)

    assert store.claim("test:1") is True
    assert store.claim("test:1") is False

    record = store.get("test:1")
    assert record.status == "processing"
    assert record.updated_at == clock.now


def test_store_claim_unknown_key(store):
    """Test that claiming a key that does not exist fails."""
    assert store.claim("missing") is False


def test_store_claim_owner(store):
    """Test owner restriction on claims."""
    reserved(store, key="owned", owner="1")
    reserved(store, key="open", owner=None)

    assert store.claim("owned", owner="2") is False
    assert store.claim("owned", owner=None) is False
    assert store.get("owned").status == "reserved"
    assert store.claim("owned", owner="1") is True

    assert store.claim("open", owner="whoever") is True


def test_store_claim_empty_owner(store):
    """Test that an empty owner is an owner, distinct from no owner."""
    reserved(store, owner="")

    assert store.claim("test:1", owner=None) is False
    assert store.claim("test:1", owner="") is True


def test_store_claim_after_window(store, clock):
    """Test that an expired reservation cannot be claimed."""
    reserved(store, ttl=1.0)
    clock.advance(2.0)

    assert store.claim("test:1") is False
    assert store.get("test:1").status == "reserved"


def test_store_claim_without_window(store, clock):
    """Test that a reservation without reserved_until never lapses."""
    reserved(store, ttl=None)
    clock.advance(10 ** 6)

    assert store.claim("test:1") is True


def test_store_finish_requires_processing(store, clock):
    """Test that terminal states are only written for processing keys."""
    reserved(store)

    # reserved -> completed is not a legal transition
    assert store.finish("test:1", "completed", '{"ok":true}') is False
    assert store.get("test:1").response is None

    store.claim("test:1")
    clock.advance(1)
    assert store.finish("test:1", "completed", '{"ok":true}') is True

    record = store.get("test:1")
    assert record.status == "completed"
    assert record.response == '{"ok":true}'
    assert record.updated_at == clock.now

    # Terminal responses are immutable
    assert store.finish("test:1", "failed", '{"error":"x"}') is False
    assert store.get("test:1").response == '{"ok":true}'

    assert store.finish("missing", "completed", "{}") is False


def test_store_delete_expired(store, clock):
    """Test that only expired, unclaimed reservations are swept."""
    reserved(store, key="stale", ttl=1.0)
    reserved(store, key="fresh", ttl=100.0)
    reserved(store, key="claimed", ttl=1.0)
    reserved(store, key="done", ttl=1.0)
    reserved(store, key="forever", ttl=None)
    store.claim("claimed")
    store.claim("done")
    store.finish("done", "completed", "{}")

    clock.advance(5.0)

    assert store.delete_expired() == 1
    assert store.get("stale") is None
    assert store.get("fresh") is not None
    assert store.get("claimed").status == "processing"
    assert store.get("done").status == "completed"
    assert store.get("forever") is not None

    # Idempotent
    assert store.delete_expired() == 0


def test_store_special_characters_in_key(store):
    """Test that stores handle special characters in keys."""
    reserved(store, key="test:user/123:amount:100")

    retrieved = store.get("test:user/123:amount:100")
    assert retrieved is not None
    assert retrieved.key == "test:user/123:amount:100"
    assert store.claim("test:user/123:amount:100") is True


def test_store_clear(store):
    """Test clearing all records."""
    reserved(store, key="test:1")
    reserved(store, key="test:2")

    store.clear()

    assert store.get("test:1") is None
    assert store.get("test:2") is None


def test_file_store_persistence(tmp_path, clock):
    """Test that FileStore persists across instances."""
    store1 = FileStore(tmp_path, clock=clock)
    reserved(store1)
    store1.claim("test:1")
    store1.finish("test:1", "completed", '{"data":123}')

    # Second store instance (simulates process restart)
    store2 = FileStore(tmp_path, clock=clock)
    retrieved = store2.get("test:1")

    assert retrieved is not None
    assert retrieved.status == "completed"
    assert retrieved.payload() == {"data": 123}


def test_file_store_directory_creation(tmp_path):
    """Test that FileStore creates directory if it doesn't exist."""
    nested_dir = tmp_path / "nested" / "path"
    store = FileStore(nested_dir)

    assert nested_dir.is_dir()

    reserved(store)
    assert store.get("test:1") is not None


def test_file_store_sweep_removes_lock_files(tmp_path, clock):
    """Test that sweeping a key leaves no files behind."""
    store = FileStore(tmp_path, clock=clock)
    reserved(store, ttl=1.0)
    clock.advance(2.0)

    assert store.delete_expired() == 1
    assert list(tmp_path.iterdir()) == []


def test_sql_timestamps_are_double_precision():
    """Test that timestamp columns are not single-precision floats on MySQL."""
    from sqlalchemy.dialects import mysql

    for name in ("reserved_until", "created_at", "updated_at"):
        column_type = idempotency_keys.c[name].type.compile(dialect=mysql.dialect())
        assert column_type.startswith("DOUBLE")

    from idempotency_keys.payments import payments

    assert payments.c.created_at.type.compile(dialect=mysql.dialect()).startswith("DOUBLE")


def test_sql_store_sub_second_window(tmp_path, clock):
    """Test that a reservation window is kept to the sub-second."""
    from sqlalchemy import create_engine

    clock.now = 1760000000.0
    store = SQLStore(create_engine(f"sqlite:///{tmp_path / 'keys.db'}"), clock=clock)
    store.create_schema()
    reserved(store, ttl=30.5)

    assert store.get("test:1").reserved_until == 1760000030.5

    clock.now = 1760000030.25
    assert store.claim("test:1") is True
    store.engine.dispose()
