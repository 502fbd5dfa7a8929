"""Configuration loaded from IDEMPOTENCY_* environment variables."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the key lifecycle, storage backend and HTTP server.

    Durations are in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDEMPOTENCY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Key lifecycle
    key_ttl: float = Field(default=1440 * 60, gt=0, description="Reservation window")
    poll_interval: float = Field(default=0.1, gt=0, description="Wait poll interval")
    max_wait: float = Field(default=5.0, gt=0, description="Maximum wait for a sibling")

    # Storage
    store_backend: Literal["memory", "file", "redis", "sql"] = Field(default="memory")
    file_directory: str = Field(default=".idempotency")
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_prefix: str = Field(default="idempotency:")
    database_url: str = Field(default="sqlite:///./idempotency.db")

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001)
    log_level: str = Field(default="INFO")


def get_settings() -> Settings:
    return Settings()
