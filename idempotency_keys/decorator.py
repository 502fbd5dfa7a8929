"""Decorator running a function once per server-issued idempotency key."""

import functools
from collections.abc import Callable
from typing import TypeVar

from .exceptions import UnknownKeyError
from .manager import KeyManager

F = TypeVar("F", bound=Callable)


def idempotent(
    manager: KeyManager,
    key_arg: str = "idempotency_key",
    owner_arg: str | None = None,
    operation: str | None = None,
) -> Callable[[F], F]:
    """Decorator to make a function idempotent per issued key.

    The decorated function is called with an extra keyword argument
    holding the key; it is removed before the function runs. The first
    caller to claim the key runs the function; every other call with the
    same key returns the stored response (or raises the stored failure).

    Args:
        manager: Key manager owning the store
        key_arg: Name of the keyword argument carrying the key
        owner_arg: Name of a keyword argument identifying the owner
        operation: Operation tag checked against the key's tag

    Example:
        @idempotent(manager, owner_arg="user_id", operation="pay")
        def pay(user_id, amount):
            return {"payment_id": ledger.record(user_id, amount).id}

        pay(user_id="1", amount=100, idempotency_key=record.key)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: object, **kwargs: object) -> object:
            idem_key = kwargs.pop(key_arg, None)
            if not idem_key:
                raise UnknownKeyError(str(idem_key))

            owner = None
            if owner_arg is not None and kwargs.get(owner_arg) is not None:
                owner = str(kwargs[owner_arg])

            return manager.execute(
                str(idem_key),
                lambda: func(*args, **kwargs),
                owner=owner,
                operation=operation,
            )

        return wrapper  # type: ignore[return-value]

    return decorator
