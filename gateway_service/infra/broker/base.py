"""Broker boundary consumed by the gateway.

The gateway never talks to a transport directly. It needs a registry
snapshot, a way to call remote actions, and a way to broadcast and listen to
events; any RPC framework adapter implementing :class:`ServiceBroker`
can host it.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gateway_service.features.graphql.types import ActionDescriptor, ServiceDescriptor

EventHandler = Callable[[Any], Awaitable[None] | None]


@runtime_checkable
class ServiceBroker(Protocol):
    """Remote call, registry and event capability of the hosting node."""

    def get_service_list(self) -> list[ServiceDescriptor]:
        """Return the current registry snapshot, actions included."""
        ...

    async def call(
        self,
        action: str,
        params: Mapping[str, Any] | None = None,
        *,
        meta: Mapping[str, Any] | None = None,
    ) -> Any:
        """Call a remote action and return its result."""
        ...

    async def broadcast(self, event: str, payload: Any = None) -> None:
        """Deliver an event to every listener."""
        ...

    def on(self, event: str, handler: EventHandler) -> None:
        """Register an event listener."""
        ...

    def add_action(self, service_name: str, action: ActionDescriptor) -> None:
        """Expose an action on the service named ``service_name``."""
        ...


@dataclass
class CallContext:
    """Per-operation call context.

    Carries the ambient ``meta`` bag of the operation (auth, tenant, locale,
    ...) and dispatches remote calls with it.
    """

    broker: ServiceBroker
    meta: dict[str, Any] = field(default_factory=dict)

    async def call(self, action: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.broker.call(action, params or {}, meta=self.meta)
