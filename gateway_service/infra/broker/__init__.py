"""Service broker boundary and the in-process implementation."""

from gateway_service.infra.broker.base import CallContext, EventHandler, ServiceBroker
from gateway_service.infra.broker.local import SERVICES_CHANGED, LocalServiceBroker

__all__ = [
    "SERVICES_CHANGED",
    "CallContext",
    "EventHandler",
    "LocalServiceBroker",
    "ServiceBroker",
]
