"""Dynamic GraphQL schema composer.

Builds one executable schema from the fragments contributed by a registry
snapshot:

1. fragments are extracted and resolver bindings classified
   (:mod:`~gateway_service.features.graphql.fragments`);
2. root fragments are wrapped into ``type Query``, ``type Mutation`` and
   ``type Subscription`` blocks and appended, with the type-system fragments,
   to the gateway's own type definitions;
3. the document is built with graphql-core and validated;
4. synthesized resolvers are bound onto the schema, and schema directive
   visitors run over every field carrying their directive.

Any failure is raised as :class:`~gateway_service.core.exceptions.CompositionError`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from graphql import (
    GraphQLEnumType,
    GraphQLInterfaceType,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    GraphQLUnionType,
    build_schema,
    get_directive_values,
    print_schema,
    validate_schema,
)

from gateway_service.core.exceptions import CompositionError
from gateway_service.features.graphql.fragments import ExtractedFragments, extract_fragments
from gateway_service.features.graphql.resolvers import synthesize_resolvers
from gateway_service.features.graphql.types import (
    TYPE_SYSTEM_KINDS,
    BatchedCall,
    ResolverMap,
    ServiceDescriptor,
    SubscriptionResolver,
)

if TYPE_CHECKING:
    from gateway_service.features.graphql.pubsub import PubSub

logger = logging.getLogger(__name__)

__all__ = [
    "CompiledSchema",
    "DirectiveVisitor",
    "apply_schema_directives",
    "bind_resolvers",
    "build_type_defs",
    "compose",
]

DirectiveVisitor = Callable[..., Any]

_SCALAR_HOOKS = {
    "serialize": "serialize",
    "parse_value": "parse_value",
    "parseValue": "parse_value",
    "parse_literal": "parse_literal",
    "parseLiteral": "parse_literal",
}


@dataclass(frozen=True)
class CompiledSchema:
    """One installed schema generation."""

    schema: GraphQLSchema
    resolvers: ResolverMap
    batched: Mapping[str, BatchedCall]
    generation: int
    services: list[str] = field(default_factory=list)
    sdl: str = ""


def build_type_defs(extracted: ExtractedFragments, type_defs: Iterable[str] = ()) -> str:
    """Assemble the SDL document for one composition pass.

    Example:
        >>> extracted = ExtractedFragments(queries=["hello: String"])
        >>> print(build_type_defs(extracted))
        type Query {
        hello: String
        }
    """
    parts = [definition for definition in type_defs if definition.strip()]
    for kind, root in (("query", "Query"), ("mutation", "Mutation"), ("subscription", "Subscription")):
        fragments = extracted.fragment_list(kind)
        if fragments:
            body = "\n".join(fragments)
            parts.append(f"type {root} {{\n{body}\n}}")
    for kind in TYPE_SYSTEM_KINDS:
        fragments = extracted.fragment_list(kind)
        if fragments:
            parts.append("\n".join(fragments))
    return "\n\n".join(parts)


def _bind_fields(
    type_: GraphQLObjectType | GraphQLInterfaceType,
    fields: Mapping[str, Any],
) -> None:
    for field_name, value in fields.items():
        if field_name == "__resolveType" and isinstance(type_, GraphQLInterfaceType):
            type_.resolve_type = value
            continue
        if field_name == "__isTypeOf" and isinstance(type_, GraphQLObjectType):
            type_.is_type_of = value
            continue

        graphql_field = type_.fields.get(field_name)
        if graphql_field is None:
            msg = f"{type_.name}.{field_name} defined in resolvers, but not in schema"
            raise ValueError(msg)

        if isinstance(value, SubscriptionResolver):
            graphql_field.subscribe = value.subscribe
            graphql_field.resolve = value.resolve
        elif isinstance(value, Mapping):
            if "subscribe" in value:
                graphql_field.subscribe = value["subscribe"]
            if "resolve" in value:
                graphql_field.resolve = value["resolve"]
        elif callable(value):
            graphql_field.resolve = value
        else:
            msg = f"Resolver for {type_.name}.{field_name} must be callable, got {type(value).__name__}"
            raise TypeError(msg)


def _bind_enum(type_: GraphQLEnumType, values: Mapping[str, Any]) -> None:
    for name, internal in values.items():
        enum_value = type_.values.get(name)
        if enum_value is None:
            msg = f"{type_.name}.{name} defined in resolvers, but not in schema"
            raise ValueError(msg)
        enum_value.value = internal
    # Serialization looks values up through a cached reverse map
    vars(type_).pop("_value_lookup", None)


def _bind_scalar(type_: GraphQLScalarType, hooks: Any) -> None:
    if isinstance(hooks, GraphQLScalarType):
        type_.serialize = hooks.serialize  # type: ignore[method-assign]
        type_.parse_value = hooks.parse_value  # type: ignore[method-assign]
        type_.parse_literal = hooks.parse_literal  # type: ignore[method-assign]
        return
    if not isinstance(hooks, Mapping):
        msg = f"Scalar {type_.name} expects a GraphQLScalarType or a hook mapping"
        raise ValueError(msg)
    for key, value in hooks.items():
        attribute = _SCALAR_HOOKS.get(key)
        if attribute is None:
            msg = f"Unknown scalar hook '{key}' for {type_.name}"
            raise ValueError(msg)
        setattr(type_, attribute, value)


def bind_resolvers(schema: GraphQLSchema, resolvers: ResolverMap) -> None:
    """Install a resolver map onto a built schema, in place."""
    for type_name, fields in resolvers.items():
        type_ = schema.get_type(type_name)
        if type_ is None:
            msg = f'"{type_name}" defined in resolvers, but not in schema'
            raise ValueError(msg)

        if isinstance(type_, GraphQLScalarType):
            _bind_scalar(type_, fields)
            continue
        if not isinstance(fields, Mapping):
            msg = f"Resolvers for {type_name} must be a mapping, got {type(fields).__name__}"
            raise ValueError(msg)

        if isinstance(type_, (GraphQLObjectType, GraphQLInterfaceType)):
            _bind_fields(type_, fields)
        elif isinstance(type_, GraphQLUnionType):
            for key, value in fields.items():
                if key != "__resolveType":
                    msg = f"Union {type_name} only accepts __resolveType, got '{key}'"
                    raise ValueError(msg)
                type_.resolve_type = value
        elif isinstance(type_, GraphQLEnumType):
            _bind_enum(type_, fields)
        else:
            msg = f"Cannot bind resolvers to {type_name}"
            raise ValueError(msg)


def apply_schema_directives(
    schema: GraphQLSchema,
    schema_directives: Mapping[str, DirectiveVisitor],
) -> None:
    """Run each directive visitor over the fields annotated with its directive.

    Visitors are called as ``visitor(field, args, type_name=..., field_name=...)``
    and may replace ``field.resolve``.
    """
    for directive_name, visitor in schema_directives.items():
        directive = schema.get_directive(directive_name)
        if directive is None:
            msg = f"Schema directive @{directive_name} is not declared"
            raise ValueError(msg)

        for type_name, type_ in schema.type_map.items():
            if type_name.startswith("__"):
                continue
            if not isinstance(type_, (GraphQLObjectType, GraphQLInterfaceType)):
                continue
            for field_name, graphql_field in type_.fields.items():
                if graphql_field.ast_node is None:
                    continue
                args = get_directive_values(directive, graphql_field.ast_node)
                if args is not None:
                    visitor(graphql_field, args, type_name=type_name, field_name=field_name)


def compose(
    services: Iterable[ServiceDescriptor],
    *,
    pubsub: PubSub,
    generation: int = 0,
    type_defs: Sequence[str] = (),
    resolvers: Mapping[str, Any] | None = None,
    schema_directives: Mapping[str, DirectiveVisitor] | None = None,
) -> CompiledSchema:
    """Compose an executable schema from a registry snapshot.

    Args:
        services: Ordered registry snapshot.
        pubsub: Pub/sub instance subscription fields of this generation read from.
        generation: Generation number stamped on the result.
        type_defs: Gateway-level SDL, placed before service fragments.
        resolvers: Gateway-level resolver map, installed before service ones.
        schema_directives: Directive name to visitor callable.

    Returns:
        CompiledSchema ready to be served.

    Raises:
        CompositionError: If the fragments do not form a valid schema or the
            resolver map does not fit it.
    """
    try:
        extracted = extract_fragments(services, seed_resolvers=resolvers)
        sdl = build_type_defs(extracted, type_defs)
        schema = build_schema(sdl)

        errors = validate_schema(schema)
        if errors:
            raise CompositionError(
                cause=errors[0],
                extra={"errors": [error.message for error in errors]},
            )

        realized = synthesize_resolvers(extracted.bindings, pubsub=pubsub)
        bind_resolvers(schema, realized)
        if schema_directives:
            apply_schema_directives(schema, schema_directives)
    except CompositionError:
        raise
    except Exception as exc:
        raise CompositionError(cause=exc) from exc

    logger.info(
        "Composed GraphQL schema generation %d from %d services",
        generation,
        len(extracted.services),
        extra={"generation": generation, "services": extracted.services},
    )
    return CompiledSchema(
        schema=schema,
        resolvers=realized,
        batched=extracted.batched_bindings(),
        generation=generation,
        services=list(extracted.services),
        sdl=print_schema(schema),
    )
