"""Key generation for idempotency keys."""

import uuid

MAX_KEY_LENGTH = 255


def generate_key() -> str:
    """Generate a new server-issued idempotency key.

    Returns:
        A random UUID4 string (122 random bits)
    """
    return str(uuid.uuid4())


def validate_key(key: object) -> str:
    """Check that a presented key is a usable lookup handle.

    Args:
        key: Value presented by the caller

    Returns:
        The key, stripped of surrounding whitespace

    Raises:
        ValueError: If the key is empty, not a string, or too long
    """
    if not isinstance(key, str):
        raise ValueError(f"Idempotency key must be a string, got {type(key).__name__}")

    key = key.strip()
    if not key:
        raise ValueError("Idempotency key must not be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise ValueError(
            f"Idempotency key must be at most {MAX_KEY_LENGTH} characters"
        )
    return key
