import json

from .exceptions import SerializationError


def ensure_float(value: object, default: float | None = 0.0) -> float | None:
    """Convert a value to float, with a default fallback."""
    if isinstance(value, bytes):
        value = value.decode()
    if value == "":
        return default
    try:
        return float(value) if isinstance(value, (int, float, str)) else default
    except (TypeError, ValueError):
        return default


def canonical_json(value: object) -> str:
    """Serialize a response payload so equal payloads give identical text.

    Raises:
        SerializationError: If the value is not JSON-serializable
    """
    try:
        return json.dumps(
            value, sort_keys=True, separators=(",", ":"), allow_nan=False
        )
    except (TypeError, ValueError) as exc:
        raise SerializationError(value, str(exc)) from exc
