"""Fragment extraction from service descriptors.

Walks one registry snapshot and collects every GraphQL fragment the services
contribute, together with the resolver bindings declared for them:

- service-level bundles contribute fragments of all kinds plus a resolver
  declaration map, folded field by field into the global binding map;
- actions contribute Query/Mutation fields bound to themselves and
  Subscription fields bound to their pub/sub tags.

Services are deduplicated by composed name; the first occurrence wins and
later duplicates are dropped without merging. Nothing is validated here:
malformed fragment text only surfaces when the schema is composed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from gateway_service.features.graphql.types import (
    TYPE_SYSTEM_KINDS,
    BatchedCall,
    BindingMap,
    DirectCall,
    Passthrough,
    ResolverBinding,
    ServiceDescriptor,
    SubscriptionCall,
    qualify_action_name,
)

logger = logging.getLogger(__name__)

_QUOTED = re.compile(r'"([\s\S]*?)"')
_LINE_COMMENT = re.compile(r"^[\s]*?#.*\n?", re.MULTILINE)
_NAME_END = re.compile(r"[(:]")

ROOT_TYPES = {"query": "Query", "mutation": "Mutation", "subscription": "Subscription"}


def get_field_name(declaration: str) -> str:
    """Return the field name of a Query, Mutation or Subscription declaration.

    Quoted descriptions (block strings included) and ``#`` comment lines are
    removed first, so ``'"desc" field(arg: Int): String'`` yields ``field``.
    """
    cleaned = _LINE_COMMENT.sub("", _QUOTED.sub("", declaration)).strip()
    return _NAME_END.split(cleaned, maxsplit=1)[0].strip()


@dataclass
class ExtractedFragments:
    """Output of one extraction pass."""

    queries: list[str] = field(default_factory=list)
    mutations: list[str] = field(default_factory=list)
    subscriptions: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    interfaces: list[str] = field(default_factory=list)
    unions: list[str] = field(default_factory=list)
    enums: list[str] = field(default_factory=list)
    inputs: list[str] = field(default_factory=list)
    bindings: BindingMap = field(default_factory=dict)
    services: list[str] = field(default_factory=list)

    def fragment_list(self, kind: str) -> list[str]:
        """Accumulator for a fragment kind ("query", "type", ...)."""
        return getattr(self, _PLURALS[kind])

    def bind(self, type_name: str, field_name: str, binding: ResolverBinding) -> None:
        """Register a binding, replacing any earlier one for the same field."""
        fields = self.bindings.get(type_name)
        if not isinstance(fields, dict):
            fields = self.bindings[type_name] = {}
        fields[field_name] = binding

    def bind_type(self, type_name: str, value: Any) -> None:
        """Register a type-level value, replacing earlier bindings of the type."""
        self.bindings[type_name] = Passthrough(value)

    @property
    def is_empty(self) -> bool:
        return not any(self.fragment_list(kind) for kind in _PLURALS)

    def batched_bindings(self) -> dict[str, BatchedCall]:
        """First batched binding per target action across the final map."""
        batched: dict[str, BatchedCall] = {}
        for fields in self.bindings.values():
            if isinstance(fields, Passthrough):
                continue
            for binding in fields.values():
                if isinstance(binding, BatchedCall):
                    batched.setdefault(binding.action, binding)
        return batched


_PLURALS = {
    "query": "queries",
    "mutation": "mutations",
    "subscription": "subscriptions",
    "type": "types",
    "interface": "interfaces",
    "union": "unions",
    "enum": "enums",
    "input": "inputs",
}


def _option(declaration: Mapping[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in declaration:
        return declaration[camel]
    return declaration.get(snake, default)


def classify_resolver(service_name: str, declaration: Any) -> ResolverBinding:
    """Turn one service-level resolver declaration into a binding.

    Declarations are mappings with an ``action`` key (camelCase or snake_case
    options: ``params``, ``argParams``, ``rootParams``, ``metaParams``,
    ``nullIfError``, ``dataLoader``). Anything else is passed through.
    """
    if not isinstance(declaration, Mapping) or declaration.get("action") is None:
        return Passthrough(declaration)

    action = qualify_action_name(service_name, str(declaration["action"]))
    params = dict(declaration.get("params") or {})
    root_params = dict(_option(declaration, "rootParams", "root_params") or {})
    meta_params = dict(_option(declaration, "metaParams", "meta_params") or {})
    null_on_error = bool(_option(declaration, "nullIfError", "null_on_error", False))

    if _option(declaration, "dataLoader", "data_loader", False):
        if root_params:
            # The first root mapping feeds the batch
            root_key, root_param = next(iter(root_params.items()))
            return BatchedCall(
                action=action,
                root_key=root_key,
                root_param=root_param,
                params=params,
                meta_params=meta_params,
                null_on_error=null_on_error,
            )
        logger.warning(
            "Batched resolver for '%s' declares no rootParams; dispatching per call",
            action,
        )

    return DirectCall(
        action=action,
        params=params,
        arg_params=dict(_option(declaration, "argParams", "arg_params") or {}),
        root_params=root_params,
        meta_params=meta_params,
        null_on_error=null_on_error,
    )


def extract_fragments(
    services: Iterable[ServiceDescriptor],
    *,
    seed_resolvers: Mapping[str, Any] | None = None,
) -> ExtractedFragments:
    """Collect fragments and resolver bindings from a service snapshot.

    Args:
        services: Ordered registry snapshot.
        seed_resolvers: Gateway-level resolvers installed before any service
            contribution, as passthrough values. A non-mapping value binds
            the whole type (a GraphQLScalarType, for instance).

    Returns:
        ExtractedFragments with the flat fragment lists and binding map.
    """
    extracted = ExtractedFragments()
    for type_name, fields in (seed_resolvers or {}).items():
        if not isinstance(fields, Mapping):
            extracted.bind_type(type_name, fields)
            continue
        for field_name, value in fields.items():
            extracted.bind(type_name, field_name, Passthrough(value))

    processed: set[str] = set()
    for service in services:
        service_name = service.composed_name
        if service_name in processed:
            logger.debug("Skipping duplicate service instance: %s", service_name)
            continue
        processed.add(service_name)
        extracted.services.append(service_name)

        bundle = service.graphql
        if bundle is not None:
            for kind in _PLURALS:
                extracted.fragment_list(kind).extend(bundle.fragments(kind))
            for type_name, declarations in bundle.resolvers.items():
                if not isinstance(declarations, Mapping):
                    extracted.bind_type(type_name, declarations)
                    continue
                for field_name, declaration in declarations.items():
                    extracted.bind(
                        type_name,
                        field_name,
                        classify_resolver(service_name, declaration),
                    )

        for action in service.actions.values():
            definition = action.graphql
            if definition is None:
                continue

            for kind in ("query", "mutation"):
                for declaration in definition.fragments(kind):
                    extracted.fragment_list(kind).append(declaration)
                    extracted.bind(
                        ROOT_TYPES[kind],
                        get_field_name(declaration),
                        DirectCall(action=action.name),
                    )

            for declaration in definition.fragments("subscription"):
                extracted.subscriptions.append(declaration)
                extracted.bind(
                    "Subscription",
                    get_field_name(declaration),
                    SubscriptionCall(
                        action=action.name,
                        tags=tuple(definition.tags),
                        filter_action=definition.filter,
                    ),
                )

            for kind in TYPE_SYSTEM_KINDS:
                extracted.fragment_list(kind).extend(definition.fragments(kind))

    logger.debug(
        "Extracted GraphQL fragments from %d services",
        len(extracted.services),
        extra={"services": extracted.services},
    )
    return extracted


__all__ = [
    "ExtractedFragments",
    "classify_resolver",
    "extract_fragments",
    "get_field_name",
]
