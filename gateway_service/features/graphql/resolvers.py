"""Resolver synthesis.

Turns the binding map produced by fragment extraction into graphql-core
resolver callables. Every resolver has the graphql-core signature
``resolve(root, info, **args)`` and reaches the operation context as
``info.context`` (:class:`~gateway_service.features.graphql.context.GraphQLContext`).

Direct call parameters are assembled from override layers, highest first:

    remaining args > argParams > rootParams > metaParams > static params
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any

from gateway_service.core.exceptions import (
    AppException,
    FilterDispatchError,
    RemoteDispatchError,
    scrub_call_context,
)
from gateway_service.features.graphql.metrics import GATEWAY_METRICS
from gateway_service.features.graphql.params import (
    ParamLayer,
    get_path,
    map_values,
    merge_layers,
    pop_path,
    set_path,
)
from gateway_service.features.graphql.types import (
    BatchedCall,
    BindingMap,
    DirectCall,
    FieldResolver,
    Passthrough,
    ResolverMap,
    SubscriptionCall,
    SubscriptionResolver,
)

if TYPE_CHECKING:
    from graphql import GraphQLResolveInfo

    from gateway_service.features.graphql.pubsub import PubSub

logger = logging.getLogger(__name__)

_ABSENT = object()


def _record(action: str, kind: str, outcome: str) -> None:
    GATEWAY_METRICS.remote_dispatch_total.labels(action=action, kind=kind, outcome=outcome).inc()


def _dispatch_failure(action: str, exc: Exception) -> AppException:
    scrub_call_context(exc)
    if isinstance(exc, AppException):
        return exc
    return RemoteDispatchError(action, cause=exc)


async def _guarded(
    action: str,
    kind: str,
    null_on_error: bool,
    call: Callable[[], Awaitable[Any]],
) -> Any:
    try:
        result = await call()
    except Exception as exc:
        if null_on_error:
            logger.debug("Resolving null for failed call to '%s': %s", action, exc)
            _record(action, kind, "null")
            return None
        _record(action, kind, "error")
        error = _dispatch_failure(action, exc)
        if error is exc:
            raise
        raise error from exc
    _record(action, kind, "success")
    return result


def create_action_resolver(binding: DirectCall) -> FieldResolver:
    """Resolver issuing one remote call per field resolution."""

    async def resolve(root: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        context = info.context
        remaining = merge_layers(ParamLayer("args", args))
        arg_layer: dict[str, Any] = {}
        for arg_path, param_path in binding.arg_params.items():
            value = pop_path(remaining, arg_path, _ABSENT)
            if value is not _ABSENT:
                set_path(arg_layer, param_path, value)

        params = merge_layers(
            ParamLayer("args", remaining),
            ParamLayer("argParams", arg_layer),
            ParamLayer("rootParams", map_values(root, binding.root_params)),
            ParamLayer("metaParams", map_values(context.meta, binding.meta_params)),
            ParamLayer("params", binding.params),
        )
        return await _guarded(
            binding.action,
            "direct",
            binding.null_on_error,
            lambda: context.call(binding.action, params),
        )

    resolve.__name__ = f"resolve_{binding.action.replace('.', '_')}"
    return resolve


def create_batched_resolver(binding: BatchedCall) -> FieldResolver:
    """Resolver loading through the operation's batching unit for the action."""

    async def resolve(root: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        value = get_path(root, binding.root_key)
        if value is None:
            return None
        loader = info.context.loaders[binding.action]

        async def load() -> Any:
            if isinstance(value, (list, tuple)):
                return list(await asyncio.gather(*(loader.load(item) for item in value)))
            return await loader.load(value)

        return await _guarded(binding.action, "batched", binding.null_on_error, load)

    resolve.__name__ = f"load_{binding.action.replace('.', '_')}"
    return resolve


async def _filter_events(
    source: AsyncIterator[Any],
    accept: Callable[[Any], Awaitable[bool]],
) -> AsyncIterator[Any]:
    try:
        async for payload in source:
            if await accept(payload):
                yield payload
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()


def create_subscription_resolver(binding: SubscriptionCall, pubsub: PubSub) -> SubscriptionResolver:
    """Subscription field reading ``binding.tags`` from ``pubsub``.

    With a filter action, an event is forwarded only when its payload is not
    None and the predicate returns a truthy value. Predicate failures are
    logged and exclude the event.
    """

    def subscribe(root: Any, info: GraphQLResolveInfo, **args: Any) -> AsyncIterator[Any]:
        source = pubsub.async_iterator(list(binding.tags))
        if binding.filter_action is None:
            return source
        filter_action = binding.filter_action
        context = info.context

        async def accept(payload: Any) -> bool:
            if payload is None:
                return False
            try:
                accepted = bool(await context.call(filter_action, {**args, "payload": payload}))
            except Exception as exc:
                scrub_call_context(exc)
                error = FilterDispatchError(filter_action, cause=exc)
                logger.warning(
                    "Subscription filter failed; excluding event: %s",
                    error.detail,
                    extra={"action": filter_action, "error_code": error.code},
                )
                accepted = False
            if not accepted:
                GATEWAY_METRICS.subscription_events_filtered_total.labels(
                    action=filter_action
                ).inc()
            return accepted

        return _filter_events(source, accept)

    async def resolve(payload: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        context = info.context
        return await _guarded(
            binding.action,
            "subscription",
            False,
            lambda: context.call(binding.action, {**args, "payload": payload}),
        )

    return SubscriptionResolver(subscribe=subscribe, resolve=resolve)


def synthesize_resolvers(bindings: BindingMap, *, pubsub: PubSub) -> ResolverMap:
    """Realize every binding of the map.

    Args:
        bindings: ``{type name: {field name: binding}}``; a type-level
            Passthrough is installed as the type's value.
        pubsub: Pub/sub instance of the generation being built.

    Returns:
        ``{type name: {field name: resolver}}`` ready for schema binding.
    """
    resolvers: ResolverMap = {}
    for type_name, fields in bindings.items():
        if isinstance(fields, Passthrough):
            resolvers[type_name] = fields.value
            continue
        realized = resolvers.setdefault(type_name, {})
        for field_name, binding in fields.items():
            if isinstance(binding, DirectCall):
                realized[field_name] = create_action_resolver(binding)
            elif isinstance(binding, BatchedCall):
                realized[field_name] = create_batched_resolver(binding)
            elif isinstance(binding, SubscriptionCall):
                realized[field_name] = create_subscription_resolver(binding, pubsub)
            elif isinstance(binding, Passthrough):
                realized[field_name] = binding.value
            else:
                msg = f"Unsupported resolver binding for {type_name}.{field_name}: {binding!r}"
                raise TypeError(msg)
    return resolvers


__all__ = [
    "create_action_resolver",
    "create_batched_resolver",
    "create_subscription_resolver",
    "synthesize_resolvers",
]
