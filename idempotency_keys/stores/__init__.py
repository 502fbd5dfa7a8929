"""Storage backends for idempotency key records."""

from typing import TYPE_CHECKING

from .base import KeyStore
from .file import FileStore
from .memory import MemoryStore

if TYPE_CHECKING:
    from ..config import Settings

__all__ = ["KeyStore", "MemoryStore", "FileStore", "RedisStore", "SQLStore", "create_store"]


def __getattr__(name: str) -> type:
    if name == "RedisStore":
        from .redis import RedisStore

        return RedisStore
    if name == "SQLStore":
        from .sql import SQLStore

        return SQLStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def create_store(settings: "Settings") -> KeyStore:
    """Build the store selected by ``settings.store_backend``."""
    backend = settings.store_backend

    if backend == "memory":
        return MemoryStore()
    if backend == "file":
        return FileStore(settings.file_directory)
    if backend == "redis":
        from redis import Redis

        from .redis import RedisStore

        return RedisStore(Redis.from_url(settings.redis_url), prefix=settings.redis_prefix)
    if backend == "sql":
        from .sql import SQLStore, create_sql_engine

        store = SQLStore(create_sql_engine(settings.database_url))
        store.create_schema()
        return store
    raise ValueError(f"Unknown store backend: {backend}")
