"""Redis connection settings for the subscription pub/sub backend."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis connection settings.

    Environment variables use REDIS_ prefix.
    Example: REDIS_URL="redis://localhost:6379/0"
    """

    url: str | None = Field(
        default=None,
        description="Redis connection URL (redis://[username:password@]host:port/db)",
    )
    socket_connect_timeout: float = Field(
        default=5.0,
        ge=0.1,
        le=60.0,
        description="Connect timeout in seconds (subscriptions block on reads, so no read timeout)",
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def is_configured(self) -> bool:
        """Check if a Redis URL is configured."""
        return bool(self.url)
