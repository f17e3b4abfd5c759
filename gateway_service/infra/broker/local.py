"""In-process service broker.

Hosts services and their action handlers in the current process. Used to
run the gateway without an RPC transport (local development, tests) and as
the reference implementation of :class:`ServiceBroker`.

Usage:
    broker = LocalServiceBroker()
    await broker.add_service(
        ServiceDescriptor(
            name="greeter",
            actions={
                "hello": ActionDescriptor(
                    name="greeter.hello",
                    handler=lambda params, meta: "hi",
                    graphql={"query": "hello: String"},
                ),
            },
        )
    )
    await broker.call("greeter.hello", {})
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from gateway_service.core.exceptions import ActionNotFoundError

if TYPE_CHECKING:
    from gateway_service.features.graphql.types import ActionDescriptor, ServiceDescriptor
    from gateway_service.infra.broker.base import EventHandler

logger = logging.getLogger(__name__)

SERVICES_CHANGED = "$services.changed"


class LocalServiceBroker:
    """Service registry, action dispatcher and event bus in one process."""

    def __init__(self, *, services_changed_event: str = SERVICES_CHANGED) -> None:
        self._services: list[ServiceDescriptor] = []
        self._listeners: dict[str, list[EventHandler]] = defaultdict(list)
        self._services_changed_event = services_changed_event

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get_service_list(self) -> list[ServiceDescriptor]:
        return list(self._services)

    async def add_service(self, service: ServiceDescriptor) -> None:
        """Register a service instance and signal the topology change."""
        self._services.append(service)
        logger.info("Service registered: %s", service.composed_name)
        await self.emit(self._services_changed_event)

    async def remove_service(self, composed_name: str) -> None:
        """Remove every instance of a service and signal the topology change."""
        before = len(self._services)
        self._services = [s for s in self._services if s.composed_name != composed_name]
        if len(self._services) != before:
            logger.info("Service removed: %s", composed_name)
            await self.emit(self._services_changed_event)

    def add_action(self, service_name: str, action: ActionDescriptor) -> None:
        """Attach an action to every instance of a service, registering it if absent.

        The action carries no GraphQL contribution, so no topology change is
        signalled.
        """
        key = action.name.rsplit(".", 1)[-1]
        found = False
        for index, service in enumerate(self._services):
            if service.name == service_name:
                self._services[index] = service.model_copy(
                    update={"actions": {**service.actions, key: action}}
                )
                found = True
        if not found:
            from gateway_service.features.graphql.types import ServiceDescriptor

            self._services.append(ServiceDescriptor(name=service_name, actions={key: action}))
        logger.info("Action registered: %s", action.name)

    def _find_action(self, action: str) -> ActionDescriptor:
        for service in self._services:
            for descriptor in service.actions.values():
                if descriptor.name == action and descriptor.handler is not None:
                    return descriptor
        raise ActionNotFoundError(action)

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def call(
        self,
        action: str,
        params: Mapping[str, Any] | None = None,
        *,
        meta: Mapping[str, Any] | None = None,
    ) -> Any:
        """Dispatch to the first registered handler of ``action``.

        Handlers receive ``(params, meta)`` and may be sync or async.
        """
        descriptor = self._find_action(action)
        result = descriptor.handler(dict(params or {}), dict(meta or {}))  # type: ignore[misc]
        if inspect.isawaitable(result):
            result = await result
        return result

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, handler: EventHandler) -> None:
        self._listeners[event].append(handler)

    async def emit(self, event: str, payload: Any = None) -> None:
        """Deliver an event to local listeners, in registration order."""
        for handler in list(self._listeners.get(event, ())):
            result = handler(payload)
            if inspect.isawaitable(result):
                await result

    async def broadcast(self, event: str, payload: Any = None) -> None:
        # A single node: broadcast and emit reach the same listeners
        await self.emit(event, payload)
