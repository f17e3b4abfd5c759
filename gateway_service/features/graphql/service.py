"""GraphQL gateway service.

Hosts one composed GraphQL schema on top of a service broker:

- listens to topology changes (``$services.changed``) and marks the schema
  stale; the next operation rebuilds it from the current registry snapshot;
- routes published events (``graphql.publish``) into the pub/sub instance
  of the installed schema generation;
- broadcasts ``graphql.schema.updated`` with the printed schema after each
  rebuild;
- exposes a ``<service_name>.graphql`` action so other services can run
  operations over the broker.

Usage:
    gateway = GraphQLGateway(broker)
    gateway.start()
    result = await gateway.execute("{ posts { id title } }")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult

from gateway_service.core.settings import GraphQLGatewaySettings, get_graphql_settings
from gateway_service.features.graphql.context import GraphQLContext
from gateway_service.features.graphql.dataloaders import create_loaders
from gateway_service.features.graphql.error_handler import format_execution_result
from gateway_service.features.graphql.lifecycle import SchemaLifecycleManager
from gateway_service.features.graphql.pubsub import PubSub, PubSubBridge, create_pubsub
from gateway_service.features.graphql.schema_composer import DirectiveVisitor, compose
from gateway_service.features.graphql.server import GraphQLServer
from gateway_service.features.graphql.types import ActionDescriptor, ServiceDescriptor
from gateway_service.infra.broker import CallContext
from gateway_service.infra.logging import log_context

if TYPE_CHECKING:
    from gateway_service.infra.broker import ServiceBroker

logger = logging.getLogger(__name__)


@dataclass
class GatewayOptions:
    """Code-level gateway options.

    Attributes:
        type_defs: SDL placed before the service fragments.
        resolvers: Resolver map installed before service resolvers.
        schema_directives: Directive name to field visitor.
        pubsub_factory: Creates the pub/sub instance of each generation;
            defaults to the backend selected in settings.
    """

    type_defs: list[str] = field(default_factory=list)
    resolvers: dict[str, Any] = field(default_factory=dict)
    schema_directives: dict[str, DirectiveVisitor] = field(default_factory=dict)
    pubsub_factory: Callable[[], PubSub] | None = None


class GraphQLGateway:
    """GraphQL gateway composing its schema from the services of a broker."""

    def __init__(
        self,
        broker: ServiceBroker,
        *,
        settings: GraphQLGatewaySettings | None = None,
        options: GatewayOptions | None = None,
    ) -> None:
        self.broker = broker
        self.settings = settings or get_graphql_settings()
        self.options = options or GatewayOptions()
        self.bridge = PubSubBridge()
        self.lifecycle = SchemaLifecycleManager(
            self._build_server,
            serve_stale_on_failure=self.settings.serve_stale_on_failure,
            on_installed=self._on_installed,
        )
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to broker events. The schema is built on first demand."""
        if self._started:
            return
        self.broker.on(self.settings.services_changed_event_name, self.handle_services_changed)
        self.broker.on(self.settings.subscription_event_name, self.handle_publish)
        if self.settings.create_action:
            self.broker.add_action(
                self.settings.service_name,
                ActionDescriptor(name=f"{self.settings.service_name}.graphql", handler=self.handle_action),
            )
        self._started = True
        logger.info(
            "GraphQL gateway started",
            extra={"path": self.settings.path, "service_name": self.settings.service_name},
        )

    async def stop(self) -> None:
        await self.lifecycle.stop()
        self.bridge.attach(None)
        logger.info("GraphQL gateway stopped")

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_services_changed(self, payload: Any = None) -> None:
        self.lifecycle.invalidate()

    async def handle_publish(self, event: Any) -> None:
        await self.bridge.route(event)

    async def handle_action(self, params: Mapping[str, Any], meta: Mapping[str, Any]) -> dict[str, Any]:
        """Handler of the `graphql` action: `{query, variables}` params."""
        return await self.execute(
            params["query"],
            params.get("variables"),
            CallContext(self.broker, meta=dict(meta)),
            params.get("operationName"),
        )

    # ------------------------------------------------------------------
    # Schema generation
    # ------------------------------------------------------------------

    def _snapshot(self) -> list[ServiceDescriptor]:
        services = list(self.broker.get_service_list())
        if self.settings.only_include_current_service:
            services = [s for s in services if s.name == self.settings.service_name]
        return services

    def _create_pubsub(self) -> PubSub:
        if self.options.pubsub_factory is not None:
            return self.options.pubsub_factory()
        return create_pubsub(self.settings)

    async def _build_server(self, generation: int) -> GraphQLServer:
        if self.lifecycle.current is None:
            self.bridge.attach(None)

        services = self._snapshot()
        pubsub = self._create_pubsub()
        try:
            compiled = compose(
                services,
                pubsub=pubsub,
                generation=generation,
                type_defs=self.options.type_defs,
                resolvers=self.options.resolvers,
                schema_directives=self.options.schema_directives,
            )
        except Exception:
            await pubsub.close()
            raise

        if self.settings.log_generated_schema:
            logger.info("Generated GraphQL schema:\n%s", compiled.sdl)
        return GraphQLServer(compiled, pubsub)

    async def _on_installed(self, server: GraphQLServer) -> None:
        self.bridge.attach(server.pubsub)
        try:
            await self.broker.broadcast(
                self.settings.schema_updated_event_name,
                {"schema": server.compiled.sdl},
            )
        except Exception:
            logger.exception(
                "Failed to broadcast %s", self.settings.schema_updated_event_name
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_context(
        self,
        server: GraphQLServer,
        ctx: CallContext | None = None,
        *,
        connection_params: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> GraphQLContext:
        """Create the operation context, with fresh loaders for ``server``."""
        call_context = ctx or CallContext(self.broker)
        return GraphQLContext(
            ctx=call_context,
            loaders=create_loaders(call_context, server.compiled.batched),
            params=dict(params or {}),
            connection_params=dict(connection_params or {}),
        )

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        ctx: CallContext | None = None,
        operation_name: str | None = None,
        *,
        connection_params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute a query or mutation.

        Returns:
            ``{"data": ..., "errors": [...]}``, errors only when present.

        Raises:
            CompositionError: If no schema can be served.
        """
        server = await self.lifecycle.get_server()
        context = self.create_context(
            server,
            ctx,
            connection_params=connection_params,
            params={"query": query, "variables": variables, "operationName": operation_name},
        )
        with log_context(operation_name=operation_name, schema_generation=server.generation):
            result = await server.execute(
                query,
                context=context,
                variables=variables,
                operation_name=operation_name,
            )
            return format_execution_result(
                result,
                mask_errors=self.settings.mask_errors,
                operation_name=operation_name,
            )

    async def subscribe(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        ctx: CallContext | None = None,
        operation_name: str | None = None,
        *,
        connection_params: Mapping[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Start a subscription.

        The subscription is registered when this returns, so events published
        afterwards are delivered.

        Returns:
            Async iterator of formatted results.
        """
        server = await self.lifecycle.get_server()
        context = self.create_context(
            server,
            ctx,
            connection_params=connection_params,
            params={"query": query, "variables": variables, "operationName": operation_name},
        )
        with log_context(operation_name=operation_name, schema_generation=server.generation):
            result = await server.subscribe(
                query,
                context=context,
                variables=variables,
                operation_name=operation_name,
            )

        if isinstance(result, ExecutionResult):
            return self._single(result, operation_name)
        return self._stream(result, operation_name)

    async def _single(
        self, result: ExecutionResult, operation_name: str | None
    ) -> AsyncIterator[dict[str, Any]]:
        yield format_execution_result(
            result, mask_errors=self.settings.mask_errors, operation_name=operation_name
        )

    async def _stream(
        self, results: AsyncIterator[ExecutionResult], operation_name: str | None
    ) -> AsyncIterator[dict[str, Any]]:
        try:
            async for result in results:
                yield format_execution_result(
                    result, mask_errors=self.settings.mask_errors, operation_name=operation_name
                )
        finally:
            aclose = getattr(results, "aclose", None)
            if aclose is not None:
                await aclose()

    async def probe(self) -> dict[str, Any]:
        """Health probe; see :meth:`SchemaLifecycleManager.probe`."""
        return await self.lifecycle.probe()


__all__ = ["GatewayOptions", "GraphQLGateway"]
