"""DataLoader for batch-calling a remote action.

Prevents N+1 remote calls when a field of every item in a list resolves
through the same action: keys requested within one event loop tick are
collected and sent to the action in a single call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Hashable, Sequence
from typing import TYPE_CHECKING, Any

from strawberry.dataloader import DataLoader

from gateway_service.core.exceptions import BatchDispatchError, scrub_call_context
from gateway_service.features.graphql.metrics import GATEWAY_METRICS
from gateway_service.features.graphql.params import ParamLayer, map_values, merge_layers, set_path

if TYPE_CHECKING:
    from gateway_service.features.graphql.types import BatchedCall
    from gateway_service.infra.broker import CallContext

logger = logging.getLogger(__name__)


def _cache_key(key: Any) -> Hashable:
    """Cache unhashable keys (dicts, lists) by their canonical JSON form."""
    if isinstance(key, Hashable):
        return key
    return json.dumps(key, sort_keys=True, default=str)


class ActionDataLoader:
    """DataLoader bound to one batched action.

    Each operation context gets its own loader instance, so results are
    cached for the lifetime of one operation only.

    Usage:
        loader = ActionDataLoader(ctx, binding)
        author = await loader.load(5)  # Batched with other loads
        authors = await loader.load_many([1, 2, 3])
    """

    def __init__(self, ctx: CallContext, binding: BatchedCall) -> None:
        """Initialize with a call context and the action's binding.

        Args:
            ctx: Call context of the current operation
            binding: First batched binding declared for the action
        """
        self._ctx = ctx
        self.binding = binding
        self._loader: DataLoader[Any, Any] = DataLoader(
            load_fn=self._batch_load,
            cache_key_fn=_cache_key,
        )

    @property
    def action(self) -> str:
        return self.binding.action

    async def _batch_load(self, keys: list[Any]) -> Sequence[Any]:
        """Call the action once for every key collected in this tick.

        Returns results in the same order as the keys. A failed call fails
        every pending key.
        """
        binding = self.binding
        params = merge_layers(
            ParamLayer("keys", set_path({}, binding.root_param, list(keys))),
            ParamLayer("params", binding.params),
            ParamLayer("metaParams", map_values(self._ctx.meta, binding.meta_params)),
        )
        GATEWAY_METRICS.dataloader_batch_size.labels(action=binding.action).observe(len(keys))
        logger.debug("Dispatching batch of %d keys to '%s'", len(keys), binding.action)

        try:
            results = await self._ctx.call(binding.action, params)
        except Exception as exc:
            scrub_call_context(exc)
            raise BatchDispatchError(binding.action, cause=exc, keys=keys) from exc

        if isinstance(results, (str, bytes)) or not isinstance(results, Sequence):
            msg = f"Expected a list of results, got {type(results).__name__}"
            raise BatchDispatchError(binding.action, msg, keys=keys)
        if len(results) != len(keys):
            msg = f"Expected {len(keys)} results, got {len(results)}"
            raise BatchDispatchError(binding.action, msg, keys=keys)
        return list(results)

    async def load(self, key: Any) -> Any:
        """Load the result for a single key.

        This call will be batched with other load() calls made
        in the same event loop tick.
        """
        return await self._loader.load(key)

    async def load_many(self, keys: Sequence[Any]) -> list[Any]:
        """Load results for several keys, in order."""
        return list(await self._loader.load_many(keys))


__all__ = ["ActionDataLoader"]
