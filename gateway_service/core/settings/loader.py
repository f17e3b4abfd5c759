"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from gateway_service.core.settings.loader import get_graphql_settings

    settings = get_graphql_settings()  # First call: loads and validates
    settings = get_graphql_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    clear_all_caches()

    Or override with custom values:
    settings = GraphQLGatewaySettings(serve_stale_on_failure=False)
"""

from __future__ import annotations

from functools import lru_cache

from .graphql import GraphQLGatewaySettings
from .logs import LoggingSettings
from .redis import RedisSettings


@lru_cache(maxsize=1)
def get_graphql_settings() -> GraphQLGatewaySettings:
    """Get cached GraphQL gateway settings.

    Returns:
        Validated and frozen GraphQLGatewaySettings instance.
    """
    return GraphQLGatewaySettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    """Get cached Redis settings.

    Returns:
        Validated and frozen RedisSettings instance.
    """
    return RedisSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    In production, prefer process restarts over cache clearing.
    """
    get_graphql_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_redis_settings.cache_clear()
