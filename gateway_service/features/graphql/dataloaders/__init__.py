"""Loader registry and factory.

Batched fields fan out to one remote call per action per event loop tick
instead of one call per parent object.

Each GraphQL operation gets its own registry to ensure proper batching
boundaries and cache isolation.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING

from gateway_service.core.exceptions import LoaderNotFoundError
from gateway_service.features.graphql.dataloaders.actions import ActionDataLoader

if TYPE_CHECKING:
    from gateway_service.features.graphql.types import BatchedCall
    from gateway_service.infra.broker import CallContext


class LoaderRegistry(Mapping[str, ActionDataLoader]):
    """Loaders of one operation, keyed by action name.

    Usage in resolver:
        loader = info.context.loaders["authors.resolve"]
        author = await loader.load(root["author_id"])
    """

    def __init__(self, loaders: Mapping[str, ActionDataLoader] | None = None) -> None:
        self._loaders = dict(loaders or {})

    def __getitem__(self, action: str) -> ActionDataLoader:
        try:
            return self._loaders[action]
        except KeyError:
            raise LoaderNotFoundError(action) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._loaders)

    def __len__(self) -> int:
        return len(self._loaders)


def create_loaders(ctx: CallContext, batched: Mapping[str, BatchedCall]) -> LoaderRegistry:
    """Factory for operation-scoped loaders.

    Args:
        ctx: Call context of the current operation
        batched: First batched binding per action of the installed schema

    Returns:
        LoaderRegistry with one loader per batched action
    """
    return LoaderRegistry(
        {action: ActionDataLoader(ctx, binding) for action, binding in batched.items()}
    )


__all__ = ["ActionDataLoader", "LoaderRegistry", "create_loaders"]
