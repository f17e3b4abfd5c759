"""Unit tests for resolver synthesis."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from gateway_service.core.exceptions import ActionNotFoundError, RemoteDispatchError
from gateway_service.features.graphql.context import GraphQLContext
from gateway_service.features.graphql.dataloaders import create_loaders
from gateway_service.features.graphql.pubsub import InMemoryPubSub
from gateway_service.features.graphql.resolvers import (
    create_action_resolver,
    create_batched_resolver,
    create_subscription_resolver,
    synthesize_resolvers,
)
from gateway_service.features.graphql.types import (
    BatchedCall,
    DirectCall,
    Passthrough,
    SubscriptionCall,
    SubscriptionResolver,
)
from gateway_service.infra.broker import CallContext


def _info(handler, *, meta=None, batched=None) -> SimpleNamespace:
    broker = AsyncMock()
    broker.call.side_effect = handler
    ctx = CallContext(broker, meta=meta if meta is not None else {"user": {"id": 7}})
    context = GraphQLContext(ctx=ctx, loaders=create_loaders(ctx, batched or {}))
    return SimpleNamespace(context=context)


async def _echo(action, params, *, meta=None):
    return {"action": action, "params": params}


class RemoteError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.ctx = object()


@pytest.mark.unit
class TestActionResolver:
    """Tests for DirectCall resolvers."""

    async def test_args_become_params(self):
        resolve = create_action_resolver(DirectCall(action="posts.find"))
        result = await resolve(None, _info(_echo), limit=5)
        assert result == {"action": "posts.find", "params": {"limit": 5}}

    async def test_layer_precedence(self):
        binding = DirectCall(
            action="posts.find",
            params={"limit": 100, "sort": "-date", "owner": "static", "author": "static"},
            arg_params={"max": "limit"},
            root_params={"id": "author"},
            meta_params={"user.id": "owner"},
        )
        resolve = create_action_resolver(binding)
        info = _info(_echo)

        result = await resolve({"id": 3}, info, max=5, sort="title")

        assert result["params"] == {
            "sort": "title",
            "limit": 5,
            "author": 3,
            "owner": 7,
        }

    async def test_remaining_args_override_mapped_values(self):
        binding = DirectCall(action="posts.find", arg_params={"max": "limit"}, root_params={"id": "limit"})
        resolve = create_action_resolver(binding)

        result = await resolve({"id": 3}, _info(_echo), max=5, limit=9)

        assert result["params"] == {"limit": 9}

    async def test_arg_params_remove_source_arg(self):
        binding = DirectCall(action="posts.find", arg_params={"input.id": "query.id"})
        resolve = create_action_resolver(binding)

        result = await resolve(None, _info(_echo), input={"id": 4, "title": "x"})

        assert result["params"] == {"input": {"title": "x"}, "query": {"id": 4}}

    async def test_meta_params_skip_missing(self):
        binding = DirectCall(action="posts.find", params={"owner": 1}, meta_params={"tenant": "owner"})
        resolve = create_action_resolver(binding)

        result = await resolve(None, _info(_echo, meta={}))

        assert result["params"] == {"owner": 1}

    async def test_null_on_error(self):
        resolve = create_action_resolver(DirectCall(action="posts.find", null_on_error=True))
        assert await resolve(None, _info(RemoteError("down"))) is None

    async def test_failure_wrapped_and_scrubbed(self):
        error = RemoteError("down")
        resolve = create_action_resolver(DirectCall(action="posts.find"))

        with pytest.raises(RemoteDispatchError) as info:
            await resolve(None, _info(error))

        assert info.value.action == "posts.find"
        assert info.value.__cause__ is error
        assert error.ctx is None

    async def test_app_exceptions_propagate_unchanged(self):
        resolve = create_action_resolver(DirectCall(action="posts.find"))
        with pytest.raises(ActionNotFoundError):
            await resolve(None, _info(ActionNotFoundError("posts.find")))


@pytest.mark.unit
class TestBatchedResolver:
    """Tests for BatchedCall resolvers."""

    BINDING = BatchedCall(action="users.resolve", root_key="author_id", root_param="id")

    @staticmethod
    async def _users(action, params, *, meta=None):
        return [{"id": key} for key in params["id"]]

    async def test_scalar_root_value(self):
        info = _info(self._users, batched={"users.resolve": self.BINDING})
        resolve = create_batched_resolver(self.BINDING)

        assert await resolve({"author_id": 4}, info) == {"id": 4}

    async def test_list_root_value_preserves_order(self):
        binding = BatchedCall(action="users.resolve", root_key="reviewer_ids", root_param="id")
        info = _info(self._users, batched={"users.resolve": binding})
        resolve = create_batched_resolver(binding)

        assert await resolve({"reviewer_ids": [3, 1, 3]}, info) == [{"id": 3}, {"id": 1}, {"id": 3}]
        info.context.ctx.broker.call.assert_awaited_once()

    async def test_missing_root_value_resolves_null(self):
        info = _info(self._users, batched={"users.resolve": self.BINDING})
        resolve = create_batched_resolver(self.BINDING)

        assert await resolve({"author_id": None}, info) is None
        assert await resolve({}, info) is None
        info.context.ctx.broker.call.assert_not_awaited()

    async def test_siblings_share_one_call(self):
        info = _info(self._users, batched={"users.resolve": self.BINDING})
        resolve = create_batched_resolver(self.BINDING)

        results = await asyncio.gather(*(resolve({"author_id": 2}, info) for _ in range(5)))

        assert results == [{"id": 2}] * 5
        info.context.ctx.broker.call.assert_awaited_once()

    async def test_batch_failure_with_null_on_error(self):
        binding = BatchedCall(
            action="users.resolve", root_key="author_id", root_param="id", null_on_error=True
        )
        info = _info(RuntimeError("down"), batched={"users.resolve": binding})
        resolve = create_batched_resolver(binding)

        assert await resolve({"author_id": 1}, info) is None


@pytest.mark.unit
class TestSubscriptionResolver:
    """Tests for SubscriptionCall resolvers."""

    async def test_events_resolved_through_action(self):
        pubsub = InMemoryPubSub()
        realized = create_subscription_resolver(
            SubscriptionCall(action="posts.created", tags=("POST_CREATED",)), pubsub
        )
        info = _info(_echo)

        stream = realized.subscribe(None, info)
        await pubsub.publish("POST_CREATED", {"id": 1})
        payload = await stream.__anext__()
        result = await realized.resolve(payload, info, author_id=2)

        assert payload == {"id": 1}
        assert result == {"action": "posts.created", "params": {"author_id": 2, "payload": {"id": 1}}}

    async def test_filter_excludes_events(self):
        async def handler(action, params, *, meta=None):
            if action == "posts.filter":
                if params["payload"]["id"] == 2:
                    raise RuntimeError("filter down")
                return params["payload"]["author_id"] == params["author_id"]
            return params["payload"]

        pubsub = InMemoryPubSub()
        realized = create_subscription_resolver(
            SubscriptionCall(action="posts.created", tags=("POST_CREATED",), filter_action="posts.filter"),
            pubsub,
        )
        info = _info(handler)
        stream = realized.subscribe(None, info, author_id=5)

        await pubsub.publish("POST_CREATED", {"id": 1, "author_id": 9})
        await pubsub.publish("POST_CREATED", None)
        await pubsub.publish("POST_CREATED", {"id": 2, "author_id": 5})
        await pubsub.publish("POST_CREATED", {"id": 3, "author_id": 5})

        assert await stream.__anext__() == {"id": 3, "author_id": 5}
        filter_calls = [
            call.args[1] for call in info.context.ctx.broker.call.await_args_list if call.args[0] == "posts.filter"
        ]
        assert [c["payload"]["id"] for c in filter_calls] == [1, 2, 3]
        assert all(c["author_id"] == 5 for c in filter_calls)
        await stream.aclose()
        assert pubsub.subscriber_count("POST_CREATED") == 0


@pytest.mark.unit
class TestSynthesizeResolvers:
    """Tests for synthesize_resolvers."""

    def test_realizes_every_binding(self):
        marker = object()
        resolvers = synthesize_resolvers(
            {
                "Query": {"posts": DirectCall(action="posts.find")},
                "Post": {"author": BatchedCall(action="users.resolve", root_key="a", root_param="id")},
                "Subscription": {"postCreated": SubscriptionCall(action="posts.created", tags=("A",))},
                "Visibility": {"PUBLIC": Passthrough(marker)},
                "Date": Passthrough(marker),
            },
            pubsub=InMemoryPubSub(),
        )

        assert callable(resolvers["Query"]["posts"])
        assert callable(resolvers["Post"]["author"])
        assert isinstance(resolvers["Subscription"]["postCreated"], SubscriptionResolver)
        assert resolvers["Visibility"]["PUBLIC"] is marker
        assert resolvers["Date"] is marker

    def test_unknown_binding_rejected(self):
        with pytest.raises(TypeError):
            synthesize_resolvers({"Query": {"x": object()}}, pubsub=InMemoryPubSub())  # type: ignore[dict-item]
