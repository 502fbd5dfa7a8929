"""Tests for key generation and validation."""

import uuid

import pytest

from idempotency_keys.key import MAX_KEY_LENGTH, generate_key, validate_key


def test_generated_key_is_uuid4():
    """Test that keys are random UUID4 strings."""
    key = generate_key()

    parsed = uuid.UUID(key)
    assert parsed.version == 4
    assert str(parsed) == key


def test_generated_keys_are_unique():
    """Test that many generated keys do not collide."""
    keys = {generate_key() for _ in range(10_000)}
    assert len(keys) == 10_000


def test_validate_key_strips_whitespace():
    """Test that surrounding whitespace is ignored."""
    assert validate_key("  abc  ") == "abc"


@pytest.mark.parametrize("value", ["", "   ", "x" * (MAX_KEY_LENGTH + 1), 123, None])
def test_validate_key_rejects_bad_values(value):
    """Test that empty, oversized and non-string keys are rejected."""
    with pytest.raises(ValueError):
        validate_key(value)
