"""Pub/sub transport for GraphQL subscriptions.

Subscription fields read from a :class:`PubSub` stream keyed by tag. Each
schema generation owns its own pub/sub instance; the :class:`PubSubBridge`
routes broker events (``{"tag": ..., "payload": ...}``) into whichever
instance is currently installed.

Two transports are provided:
- InMemoryPubSub: asyncio queues, single process
- RedisPubSub: Redis PUBLISH/SUBSCRIBE with JSON payloads, across instances
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from redis.asyncio import Redis

if TYPE_CHECKING:
    from gateway_service.core.settings import GraphQLGatewaySettings, RedisSettings

logger = logging.getLogger(__name__)

_END = object()


@runtime_checkable
class PubSub(Protocol):
    """Topic stream used by subscription resolvers."""

    async def publish(self, tag: str, payload: Any) -> None: ...

    def async_iterator(self, tags: str | Sequence[str]) -> AsyncIterator[Any]: ...

    async def close(self) -> None: ...


def _normalize_tags(tags: str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(tags, str):
        return (tags,)
    return tuple(tags)


class PubSubIterator:
    """Async iterator over the payloads published to a set of tags.

    Registered with its pub/sub on creation, so events published before the
    first ``__anext__`` are not lost.
    """

    def __init__(self, pubsub: InMemoryPubSub, tags: tuple[str, ...]) -> None:
        self.tags = tags
        self._pubsub = pubsub
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._done = False

    def __aiter__(self) -> PubSubIterator:
        return self

    async def __anext__(self) -> Any:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._done = True
            raise StopAsyncIteration
        return item

    def push(self, payload: Any) -> None:
        if not self._done:
            self._queue.put_nowait(payload)

    def end(self) -> None:
        self._queue.put_nowait(_END)

    async def aclose(self) -> None:
        """Stop the iterator and unregister it."""
        if not self._done:
            self._done = True
            self._pubsub.unsubscribe(self)


class InMemoryPubSub:
    """In-process pub/sub backed by one asyncio queue per iterator."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[PubSubIterator]] = defaultdict(set)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def publish(self, tag: str, payload: Any) -> None:
        if self._closed:
            logger.debug("Dropping event for tag '%s': pub/sub closed", tag)
            return
        for iterator in list(self._subscribers.get(tag, ())):
            iterator.push(payload)

    def async_iterator(self, tags: str | Sequence[str]) -> PubSubIterator:
        iterator = PubSubIterator(self, _normalize_tags(tags))
        if self._closed:
            iterator.end()
            return iterator
        for tag in iterator.tags:
            self._subscribers[tag].add(iterator)
        return iterator

    def unsubscribe(self, iterator: PubSubIterator) -> None:
        for tag in iterator.tags:
            subscribers = self._subscribers.get(tag)
            if subscribers is not None:
                subscribers.discard(iterator)
                if not subscribers:
                    del self._subscribers[tag]

    def subscriber_count(self, tag: str) -> int:
        return len(self._subscribers.get(tag, ()))

    async def close(self) -> None:
        """End every open iterator; later publishes are dropped."""
        self._closed = True
        iterators = {it for subscribers in self._subscribers.values() for it in subscribers}
        self._subscribers.clear()
        for iterator in iterators:
            iterator.end()


class RedisPubSub:
    """Pub/sub over Redis channels named ``{channel_prefix}{tag}``.

    Payloads must be JSON-serializable. Each iterator uses a dedicated Redis
    pubsub connection (subscriptions block, so pooled commands can't share it).
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        channel_prefix: str = "graphql:",
        client: Redis | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        if client is None:
            if not url:
                msg = "RedisPubSub requires a Redis URL or client"
                raise ValueError(msg)
            client = Redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=connect_timeout,
            )
        self._redis = client
        self._prefix = channel_prefix

    def channel(self, tag: str) -> str:
        return f"{self._prefix}{tag}"

    async def publish(self, tag: str, payload: Any) -> None:
        await self._redis.publish(self.channel(tag), json.dumps(payload, default=str))
        logger.debug("Published event to %s", self.channel(tag))

    def async_iterator(self, tags: str | Sequence[str]) -> AsyncIterator[Any]:
        return self._listen(_normalize_tags(tags))

    async def _listen(self, tags: tuple[str, ...]) -> AsyncIterator[Any]:
        channels = [self.channel(tag) for tag in tags]
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(*channels)
        logger.info("Subscribed to channels: %s", ", ".join(channels))
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except json.JSONDecodeError as e:
                    logger.warning("Invalid JSON in subscription message: %s", e)
        finally:
            await pubsub.unsubscribe(*channels)
            await pubsub.aclose()
            logger.info("Unsubscribed from channels: %s", ", ".join(channels))

    async def close(self) -> None:
        """Close the client; open iterators are closed by their consumers."""
        await self._redis.aclose()


def create_pubsub(
    settings: GraphQLGatewaySettings,
    redis_settings: RedisSettings | None = None,
) -> PubSub:
    """Create the pub/sub transport selected by ``GRAPHQL_PUBSUB_BACKEND``."""
    if settings.pubsub_backend == "redis":
        if redis_settings is None:
            from gateway_service.core.settings import get_redis_settings

            redis_settings = get_redis_settings()
        if not redis_settings.is_configured:
            msg = "GRAPHQL_PUBSUB_BACKEND=redis requires REDIS_URL"
            raise ValueError(msg)
        return RedisPubSub(
            redis_settings.url,
            channel_prefix=settings.pubsub_channel_prefix,
            connect_timeout=redis_settings.socket_connect_timeout,
        )
    return InMemoryPubSub()


class PubSubBridge:
    """Routes published broker events into the installed generation's pub/sub."""

    def __init__(self) -> None:
        self._pubsub: PubSub | None = None

    @property
    def pubsub(self) -> PubSub | None:
        return self._pubsub

    def attach(self, pubsub: PubSub | None) -> None:
        self._pubsub = pubsub

    async def route(self, event: Any) -> bool:
        """Publish ``event.payload`` under ``event.tag``.

        Returns:
            True if the event was handed to a pub/sub instance.
        """
        if isinstance(event, Mapping):
            tag, payload = event.get("tag"), event.get("payload")
        else:
            tag, payload = getattr(event, "tag", None), getattr(event, "payload", None)

        if not tag:
            logger.warning("Ignoring published event without a tag")
            return False
        if self._pubsub is None:
            logger.debug("No schema installed; dropping event for tag '%s'", tag)
            return False

        await self._pubsub.publish(tag, payload)
        return True


__all__ = [
    "InMemoryPubSub",
    "PubSub",
    "PubSubBridge",
    "PubSubIterator",
    "RedisPubSub",
    "create_pubsub",
]
