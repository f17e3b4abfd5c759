"""GraphQL router for FastAPI integration.

Provides:
- GraphQL endpoint at ``GRAPHQL_PATH`` (POST, JSON body)
- Apollo-style health check at ``GRAPHQL_HEALTH_PATH``
- Prometheus metrics at /metrics

Request headers become the ``connection_params`` of the GraphQL context.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from pydantic import BaseModel, ConfigDict, Field

from gateway_service.core.exceptions import CompositionError

if TYPE_CHECKING:
    from gateway_service.core.settings import GraphQLGatewaySettings
    from gateway_service.features.graphql.service import GraphQLGateway

logger = logging.getLogger(__name__)

HEALTH_MEDIA_TYPE = "application/health+json"
PROBLEM_MEDIA_TYPE = "application/problem+json"


class GraphQLRequest(BaseModel):
    """GraphQL-over-HTTP request body."""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    variables: dict[str, Any] | None = None
    operation_name: str | None = Field(default=None, alias="operationName")


def create_graphql_router(
    gateway: GraphQLGateway,
    settings: GraphQLGatewaySettings | None = None,
) -> APIRouter:
    """Create the HTTP routes of a gateway.

    Args:
        gateway: Gateway serving the operations.
        settings: Route settings; defaults to the gateway's own.

    Returns:
        APIRouter to include in the application.
    """
    settings = settings or gateway.settings
    router = APIRouter(tags=["graphql"])

    @router.post(settings.path)
    async def graphql_endpoint(body: GraphQLRequest, request: Request) -> Response:
        try:
            result = await gateway.execute(
                body.query,
                body.variables,
                operation_name=body.operation_name,
                connection_params=dict(request.headers),
            )
        except CompositionError as exc:
            logger.error("GraphQL request rejected: %s", exc.detail)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_problem_details(),
                media_type=PROBLEM_MEDIA_TYPE,
            )
        return JSONResponse(content=result)

    @router.get(settings.health_path)
    async def health() -> Response:
        probe = await gateway.probe()
        if probe["status"] == "pass":
            return JSONResponse(
                status_code=status.HTTP_200_OK,
                content={"status": "pass", "schema": True},
                media_type=HEALTH_MEDIA_TYPE,
            )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "fail", "schema": False},
            media_type=HEALTH_MEDIA_TYPE,
        )

    @router.get("/metrics", tags=["observability"])
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(
            content=generate_latest(REGISTRY),
            media_type=CONTENT_TYPE_LATEST,
            headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
        )

    return router


__all__ = ["GraphQLRequest", "create_graphql_router"]
