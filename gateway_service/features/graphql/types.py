"""Service descriptors and resolver bindings.

Descriptors are the read-only registry snapshot a composition pass works on.
They are pydantic models so that a registry may hand over plain dictionaries:

    service = ServiceDescriptor.model_validate(
        {
            "name": "posts",
            "version": 2,
            "actions": {
                "find": {
                    "name": "v2.posts.find",
                    "graphql": {"query": "posts(limit: Int): [Post]"},
                },
            },
        }
    )

Bindings are the tagged variant every resolver map entry is classified into
once, at composition time.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, model_validator

Fragments: TypeAlias = str | list[str] | None

TYPE_SYSTEM_KINDS: tuple[str, ...] = ("type", "interface", "union", "enum", "input")


class GraphQLDefinition(BaseModel):
    """GraphQL contribution of a service or of a single action."""

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    query: Fragments = None
    mutation: Fragments = None
    subscription: Fragments = None
    type: Fragments = None
    interface: Fragments = None
    union: Fragments = None
    enum: Fragments = None
    input: Fragments = None

    # Service level: {type name: {field name: declaration}}, or a type-level
    # value such as a GraphQLScalarType
    resolvers: dict[str, Any] = Field(default_factory=dict)

    # Action level subscriptions
    tags: list[str] = Field(default_factory=list)
    filter: str | None = None

    def fragments(self, kind: str) -> list[str]:
        """Return the fragments of one kind as a list."""
        value = getattr(self, kind)
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return list(value)


class ActionDescriptor(BaseModel):
    """A remote action exposed by a service."""

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    # Fully qualified, version included: "v2.posts.find"
    name: str
    graphql: GraphQLDefinition | None = None
    # Only used by the in-process broker
    handler: Callable[..., Any] | None = Field(default=None, exclude=True, repr=False)


class ServiceDescriptor(BaseModel):
    """A backend service as seen in one registry snapshot."""

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    name: str
    version: int | str | None = None
    full_name: str | None = None
    actions: dict[str, ActionDescriptor] = Field(default_factory=dict)
    graphql: GraphQLDefinition | None = None
    settings: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _lift_settings_graphql(cls, data: Any) -> Any:
        """Accept the GraphQL bundle nested under ``settings.graphql``."""
        if isinstance(data, dict) and data.get("graphql") is None:
            nested = (data.get("settings") or {}).get("graphql")
            if isinstance(nested, (dict, GraphQLDefinition)):
                data = {**data, "graphql": nested}
        return data

    @property
    def composed_name(self) -> str:
        """Version-qualified service name, the dedup key of a composition pass."""
        if self.full_name:
            return self.full_name
        if self.version is not None:
            if isinstance(self.version, int):
                return f"v{self.version}.{self.name}"
            return f"{self.version}.{self.name}"
        return self.name


def qualify_action_name(service_name: str, action: str) -> str:
    """Prefix a relative action name with its service name."""
    if "." in action:
        return action
    return f"{service_name}.{action}"


# ============================================================================
# Resolver bindings
# ============================================================================


@dataclass(frozen=True)
class DirectCall:
    """Dispatch one remote call per field resolution."""

    action: str
    params: Mapping[str, Any] = field(default_factory=dict)
    arg_params: Mapping[str, str] = field(default_factory=dict)
    root_params: Mapping[str, str] = field(default_factory=dict)
    meta_params: Mapping[str, str] = field(default_factory=dict)
    null_on_error: bool = False


@dataclass(frozen=True)
class BatchedCall:
    """Resolve through the per-context batching unit of ``action``.

    ``root_key`` is read from the parent object; the collected keys are sent
    to the action under ``root_param``.
    """

    action: str
    root_key: str
    root_param: str
    params: Mapping[str, Any] = field(default_factory=dict)
    meta_params: Mapping[str, str] = field(default_factory=dict)
    null_on_error: bool = False


@dataclass(frozen=True)
class SubscriptionCall:
    """Stream pub/sub events for ``tags``, resolving each through ``action``."""

    action: str
    tags: tuple[str, ...] = ()
    filter_action: str | None = None


@dataclass(frozen=True)
class Passthrough:
    """A resolver map value installed as-is (enum values, scalars, callables)."""

    value: Any


ResolverBinding: TypeAlias = DirectCall | BatchedCall | SubscriptionCall | Passthrough
# A type maps to its field bindings, or to one type-level Passthrough
BindingMap: TypeAlias = dict[str, dict[str, ResolverBinding] | Passthrough]

FieldResolver: TypeAlias = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class SubscriptionResolver:
    """Realized subscription field: event source plus per-event resolver."""

    subscribe: Callable[..., Any]
    resolve: FieldResolver


ResolverMap: TypeAlias = dict[str, Any]


__all__ = [
    "TYPE_SYSTEM_KINDS",
    "ActionDescriptor",
    "BatchedCall",
    "BindingMap",
    "DirectCall",
    "FieldResolver",
    "GraphQLDefinition",
    "Passthrough",
    "ResolverBinding",
    "ResolverMap",
    "ServiceDescriptor",
    "SubscriptionCall",
    "SubscriptionResolver",
    "qualify_action_name",
]
