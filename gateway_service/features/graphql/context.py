"""GraphQL context for operation-scoped dependencies.

The context is created fresh for each GraphQL operation and provides:
- Call context (remote calls carrying the operation's ``meta``)
- Loader registry (one batching unit per batched action)
- Connection params (transport headers or websocket init payload)

Resolvers reach it as ``info.context``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gateway_service.features.graphql.dataloaders import LoaderRegistry
    from gateway_service.infra.broker import CallContext


@dataclass
class GraphQLContext:
    """Operation context for gateway resolvers.

    Example usage in a hand-written resolver:
        async def resolve_me(root, info):
            return await info.context.call("users.me", {})
    """

    ctx: CallContext
    loaders: LoaderRegistry
    params: dict[str, Any] = field(default_factory=dict)
    connection_params: dict[str, Any] = field(default_factory=dict)

    @property
    def meta(self) -> dict[str, Any]:
        return self.ctx.meta

    async def call(self, action: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.ctx.call(action, params)


__all__ = ["GraphQLContext"]
