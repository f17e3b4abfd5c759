"""FastAPI application factory and entry point.

Run with:
    uvicorn gateway_service.main:app
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from gateway_service import __version__
from gateway_service.core.settings import get_graphql_settings, get_logging_settings
from gateway_service.features.graphql import GatewayOptions, GraphQLGateway, create_graphql_router
from gateway_service.infra.broker import LocalServiceBroker
from gateway_service.infra.logging import setup_logging

if TYPE_CHECKING:
    from gateway_service.infra.broker import ServiceBroker

logger = logging.getLogger(__name__)


def create_app(
    broker: ServiceBroker | None = None,
    *,
    options: GatewayOptions | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        broker: Broker the gateway composes its schema from. Defaults to an
            empty in-process broker.
        options: Code-level gateway options.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_graphql_settings()
    gateway = GraphQLGateway(broker or LocalServiceBroker(), settings=settings, options=options)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(get_logging_settings())
        gateway.start()
        logger.info("Application startup complete", extra={"version": __version__})
        try:
            yield
        finally:
            await gateway.stop()
            logger.info("Application shutdown complete")

    app = FastAPI(title="GraphQL Gateway", version=__version__, lifespan=lifespan)
    app.state.gateway = gateway
    app.include_router(create_graphql_router(gateway, settings))
    return app


# Application instance for uvicorn
app = create_app()
