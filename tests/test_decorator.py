"""Tests for the idempotent decorator."""

import pytest

from idempotency_keys import (
    KeyManager,
    KeyMismatchError,
    MemoryStore,
    OperationFailedError,
    UnknownKeyError,
    idempotent,
)


@pytest.fixture
def manager():
    return KeyManager(MemoryStore())


def test_basic_idempotency(manager):
    """Test that function only executes once per key."""
    call_count = 0

    @idempotent(manager)
    def create_invoice(user_id, amount):
        nonlocal call_count
        call_count += 1
        return {"invoice_id": 123, "amount": amount}

    key = manager.issue().key

    # First call
    result1 = create_invoice(user_id=1, amount=100, idempotency_key=key)
    assert result1 == {"invoice_id": 123, "amount": 100}
    assert call_count == 1

    # Second call with same key - should return cached result
    result2 = create_invoice(user_id=1, amount=100, idempotency_key=key)
    assert result2 == result1
    assert call_count == 1

    # New key - should execute again
    result3 = create_invoice(user_id=2, amount=200, idempotency_key=manager.issue().key)
    assert result3 == {"invoice_id": 123, "amount": 200}
    assert call_count == 2


def test_same_key_different_arguments_replays(manager):
    """Test that deduplication is by key, not by request content."""

    @idempotent(manager)
    def charge(amount):
        return {"charged": amount}

    key = manager.issue().key

    assert charge(100, idempotency_key=key) == {"charged": 100}
    assert charge(999, idempotency_key=key) == {"charged": 100}


def test_missing_key_raises(manager):
    """Test that calls without a key are rejected."""

    @idempotent(manager)
    def charge(amount):
        return {"charged": amount}

    with pytest.raises(UnknownKeyError):
        charge(100)


def test_custom_key_and_owner_arguments(manager):
    """Test custom argument names for the key and the owner."""

    @idempotent(manager, key_arg="request_id", owner_arg="user_id", operation="pay")
    def pay(user_id, amount):
        return {"user_id": user_id, "amount": amount}

    key = manager.issue(owner="1", operation="pay").key

    with pytest.raises(KeyMismatchError):
        pay(user_id=2, amount=5, request_id=key)

    assert pay(user_id=1, amount=5, request_id=key) == {"user_id": 1, "amount": 5}


def test_failures_are_idempotent(manager):
    """Test that a failure is stored and re-raised without re-running."""
    call_count = 0

    @idempotent(manager)
    def flaky():
        nonlocal call_count
        call_count += 1
        raise ValueError("Something went wrong")

    key = manager.issue().key

    with pytest.raises(OperationFailedError) as first:
        flaky(idempotency_key=key)
    with pytest.raises(OperationFailedError) as second:
        flaky(idempotency_key=key)

    assert call_count == 1
    assert first.value.error_info == second.value.error_info
    assert second.value.replayed is True


def test_decorator_preserves_metadata(manager):
    """Test that function name and docstring survive decoration."""

    @idempotent(manager)
    def documented():
        """Docstring."""

    assert documented.__name__ == "documented"
    assert documented.__doc__ == "Docstring."
