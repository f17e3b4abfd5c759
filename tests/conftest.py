"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated, cache-cleared settings
    - Broker Fixtures: in-process broker and call context
    - Gateway Fixtures: gateway wired to the in-process broker
    - Application Fixtures: FastAPI app and HTTP client
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure tests run without external infrastructure
os.environ.setdefault("GRAPHQL_PUBSUB_BACKEND", "memory")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("LOG_JSON_LOGS", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from gateway_service.core.settings import GraphQLGatewaySettings, clear_all_caches  # noqa: E402
from gateway_service.features.graphql.service import GatewayOptions, GraphQLGateway  # noqa: E402
from gateway_service.infra.broker import CallContext, LocalServiceBroker  # noqa: E402


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Reload settings from the environment for every test."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def graphql_settings() -> GraphQLGatewaySettings:
    return GraphQLGatewaySettings()


# ============================================================================
# Broker Fixtures
# ============================================================================


@pytest.fixture
def broker() -> LocalServiceBroker:
    """Empty in-process broker."""
    return LocalServiceBroker()


@pytest.fixture
def call_context(broker: LocalServiceBroker) -> CallContext:
    return CallContext(broker, meta={"user": {"id": 7}, "tenant": "acme"})


# ============================================================================
# Gateway Fixtures
# ============================================================================


@pytest.fixture
async def gateway(
    broker: LocalServiceBroker,
    graphql_settings: GraphQLGatewaySettings,
) -> AsyncGenerator[GraphQLGateway]:
    """Started gateway on the in-process broker.

    Example:
        async def test_hello(broker, gateway):
            await broker.add_service(...)
            result = await gateway.execute("{ hello }")
    """
    gw = GraphQLGateway(broker, settings=graphql_settings, options=GatewayOptions())
    gw.start()
    yield gw
    await gw.stop()


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(broker: LocalServiceBroker):
    """FastAPI application serving the gateway of ``broker``."""
    from gateway_service.main import create_app

    return create_app(broker)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for the application.

    ASGITransport does not run the lifespan, so the gateway is started here.
    """
    gateway = app.state.gateway
    gateway.start()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await gateway.stop()
