"""Executable server instance of one schema generation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from graphql import ExecutionResult, GraphQLError, graphql, parse, subscribe, validate

if TYPE_CHECKING:
    from graphql import GraphQLSchema

    from gateway_service.features.graphql.context import GraphQLContext
    from gateway_service.features.graphql.pubsub import PubSub
    from gateway_service.features.graphql.schema_composer import CompiledSchema

logger = logging.getLogger(__name__)


class GraphQLServer:
    """Executes operations against one compiled schema.

    Owns the pub/sub instance of its generation; ``stop()`` closes it, ending
    any subscription still reading from it.
    """

    def __init__(self, compiled: CompiledSchema, pubsub: PubSub) -> None:
        self.compiled = compiled
        self.pubsub = pubsub
        self._stopped = False

    @property
    def generation(self) -> int:
        return self.compiled.generation

    @property
    def schema(self) -> GraphQLSchema:
        return self.compiled.schema

    async def execute(
        self,
        query: str,
        *,
        context: GraphQLContext,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> ExecutionResult:
        return await graphql(
            self.compiled.schema,
            query,
            context_value=context,
            variable_values=variables,
            operation_name=operation_name,
        )

    async def subscribe(
        self,
        query: str,
        *,
        context: GraphQLContext,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> AsyncIterator[ExecutionResult] | ExecutionResult:
        """Start a subscription.

        Returns:
            An async iterator of results, or a single result carrying the
            errors that prevented the subscription from starting.
        """
        try:
            document = parse(query)
        except GraphQLError as error:
            return ExecutionResult(data=None, errors=[error])

        errors = validate(self.compiled.schema, document)
        if errors:
            return ExecutionResult(data=None, errors=errors)

        result = subscribe(
            self.compiled.schema,
            document,
            context_value=context,
            variable_values=variables,
            operation_name=operation_name,
        )
        if isawaitable(result):
            result = await result
        return result

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        await self.pubsub.close()
        logger.debug("Stopped GraphQL server generation %d", self.generation)


__all__ = ["GraphQLServer"]
