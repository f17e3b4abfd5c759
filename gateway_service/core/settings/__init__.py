"""Modular Pydantic Settings v2 configuration.

Each domain has its own frozen settings model with an environment prefix
(GRAPHQL_, LOG_, REDIS_), loaded once through an LRU-cached getter:

    from gateway_service.core.settings import get_graphql_settings

    settings = get_graphql_settings()
    print(settings.path)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file (development only)
"""

from __future__ import annotations

from .graphql import GraphQLGatewaySettings
from .loader import (
    clear_all_caches,
    get_graphql_settings,
    get_logging_settings,
    get_redis_settings,
)
from .logs import LoggingSettings
from .redis import RedisSettings

__all__ = [
    "GraphQLGatewaySettings",
    "LoggingSettings",
    "RedisSettings",
    "clear_all_caches",
    "get_graphql_settings",
    "get_logging_settings",
    "get_redis_settings",
]
