"""GraphQL gateway feature.

Composes one GraphQL schema from the fragments contributed by the services
of a broker and serves it:
- Queries and mutations resolved through remote action calls
- Batched resolution of related objects through per-operation DataLoaders
- Subscriptions fed by broker events through a pub/sub bridge
- Lazy, single-flight schema rebuilds on topology changes
"""

from __future__ import annotations

from gateway_service.features.graphql.context import GraphQLContext
from gateway_service.features.graphql.lifecycle import SchemaLifecycleManager, SchemaState
from gateway_service.features.graphql.pubsub import InMemoryPubSub, PubSub, RedisPubSub
from gateway_service.features.graphql.router import create_graphql_router
from gateway_service.features.graphql.schema_composer import CompiledSchema, compose
from gateway_service.features.graphql.service import GatewayOptions, GraphQLGateway
from gateway_service.features.graphql.types import (
    ActionDescriptor,
    GraphQLDefinition,
    ServiceDescriptor,
)

__all__ = [
    "ActionDescriptor",
    "CompiledSchema",
    "GatewayOptions",
    "GraphQLContext",
    "GraphQLDefinition",
    "GraphQLGateway",
    "InMemoryPubSub",
    "PubSub",
    "RedisPubSub",
    "SchemaLifecycleManager",
    "SchemaState",
    "ServiceDescriptor",
    "compose",
    "create_graphql_router",
]
