"""GraphQL gateway configuration settings.

Controls the endpoint paths, the broker event names the gateway listens to,
the rebuild failure policy, and the subscription pub/sub backend.
Environment variables use GRAPHQL_ prefix.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PubSubBackend = Literal["memory", "redis"]


class GraphQLGatewaySettings(BaseSettings):
    """GraphQL gateway configuration.

    Environment variables use GRAPHQL_ prefix.
    Example: GRAPHQL_PATH=/graphql, GRAPHQL_PUBSUB_BACKEND=redis
    """

    # Endpoint configuration
    path: str = Field(
        default="/graphql",
        min_length=1,
        max_length=255,
        pattern=r"^/.*$",
        description="GraphQL endpoint path",
    )
    health_path: str = Field(
        default="/.well-known/apollo/server-health",
        pattern=r"^/.*$",
        description="Schema readiness probe path",
    )

    # Gateway identity, used by only_include_current_service
    service_name: str = Field(
        default="api",
        min_length=1,
        max_length=100,
        description="Name of the service hosting the gateway",
    )
    only_include_current_service: bool = Field(
        default=False,
        description="Compose the schema from the hosting service only",
    )
    create_action: bool = Field(
        default=True,
        description="Expose a `<service_name>.graphql` action running operations over the broker",
    )

    # Broker events
    services_changed_event_name: str = Field(
        default="$services.changed",
        description="Topology-change event that invalidates the schema",
    )
    subscription_event_name: str = Field(
        default="graphql.publish",
        description="Event carrying {tag, payload} routed into subscriptions",
    )
    schema_updated_event_name: str = Field(
        default="graphql.schema.updated",
        description="Event broadcast with the printed schema after each rebuild",
    )

    # Rebuild policy
    serve_stale_on_failure: bool = Field(
        default=True,
        description=(
            "Keep serving the previous schema generation when a rebuild fails "
            "(false tears the previous generation down before rebuilding)"
        ),
    )
    log_generated_schema: bool = Field(
        default=False,
        description="Log the printed schema after each rebuild",
    )

    # Subscriptions
    pubsub_backend: PubSubBackend = Field(
        default="memory",
        description="Pub/sub transport for subscriptions: memory or redis",
    )
    pubsub_channel_prefix: str = Field(
        default="graphql:",
        max_length=100,
        description="Channel prefix applied to subscription tags on Redis",
    )

    # Errors
    mask_errors: bool = Field(
        default=False,
        description="Mask internal (non application) errors in GraphQL responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="GRAPHQL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
