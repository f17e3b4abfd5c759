"""Schema lifecycle: lazy, single-flight rebuilds.

The gateway's schema is either READY (the installed generation matches the
last known service topology) or STALE. A topology change only marks it
stale; the rebuild happens on the next demand:

    STALE --get_server()--> rebuilding --installed--> READY
    READY --invalidate()--> STALE

Concurrent demanders while a rebuild is in flight share it. A topology
change arriving during a rebuild keeps the state STALE after that rebuild
installs, so the next demand rebuilds again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from gateway_service.core.exceptions import CompositionError
from gateway_service.features.graphql.metrics import GATEWAY_METRICS
from gateway_service.infra.logging import log_context

if TYPE_CHECKING:
    from gateway_service.features.graphql.server import GraphQLServer

logger = logging.getLogger(__name__)

BuildServer = Callable[[int], Awaitable["GraphQLServer"]]
InstallHook = Callable[["GraphQLServer"], Awaitable[None]]


class SchemaState(str, Enum):
    READY = "ready"
    STALE = "stale"


class SchemaLifecycleManager:
    """Owns the installed server instance and the rebuild protocol.

    Args:
        build: Coroutine function building a server for a generation number.
            Must raise CompositionError on failure.
        serve_stale_on_failure: Keep the previous generation installed until
            a new one is built, and serve it when a rebuild fails. When False
            the previous generation is torn down before building and a
            failure propagates to every demander.
        on_installed: Awaited after each successful install.
    """

    def __init__(
        self,
        build: BuildServer,
        *,
        serve_stale_on_failure: bool = True,
        on_installed: InstallHook | None = None,
    ) -> None:
        self._build = build
        self._serve_stale = serve_stale_on_failure
        self._on_installed = on_installed
        self._state = SchemaState.STALE
        self._current: GraphQLServer | None = None
        self._generation = 0
        self._epoch = 0
        self._rebuild_task: asyncio.Task[GraphQLServer] | None = None
        self._last_error: CompositionError | None = None

    @property
    def state(self) -> SchemaState:
        return self._state

    @property
    def current(self) -> GraphQLServer | None:
        return self._current

    @property
    def generation(self) -> int:
        """Generation number of the last installed schema (0 before the first)."""
        return self._generation

    @property
    def last_error(self) -> CompositionError | None:
        return self._last_error

    def invalidate(self) -> None:
        """Mark the installed schema stale; never rebuilds eagerly."""
        self._epoch += 1
        if self._state is SchemaState.READY:
            logger.info("Service topology changed; GraphQL schema marked stale")
        self._state = SchemaState.STALE

    async def get_server(self) -> GraphQLServer:
        """Return the server for the current topology, rebuilding if stale.

        Raises:
            CompositionError: If the rebuild fails and no previous generation
                can be served.
        """
        if self._state is SchemaState.READY and self._current is not None:
            return self._current

        task = self._rebuild_task
        if task is None or task.done():
            task = asyncio.create_task(self._rebuild(), name="graphql-schema-rebuild")
            task.add_done_callback(self._rebuild_done)
            self._rebuild_task = task

        # A cancelled demander must not cancel the rebuild shared with others
        return await asyncio.shield(task)

    def _rebuild_done(self, task: asyncio.Task[GraphQLServer]) -> None:
        if self._rebuild_task is task:
            self._rebuild_task = None
        if not task.cancelled():
            task.exception()

    async def _rebuild(self) -> GraphQLServer:
        epoch = self._epoch
        generation = self._generation + 1
        previous = self._current

        if not self._serve_stale and previous is not None:
            self._current = None
            await previous.stop()

        with log_context(schema_generation=generation):
            logger.info("Rebuilding GraphQL schema")
            started = time.perf_counter()
            try:
                server = await self._build(generation)
            except Exception as exc:
                error = exc if isinstance(exc, CompositionError) else CompositionError(cause=exc)
                self._last_error = error
                GATEWAY_METRICS.schema_rebuilds_total.labels(outcome="failure").inc()
                logger.error(
                    "GraphQL schema rebuild failed: %s",
                    error.extra.get("reason", error.detail),
                    exc_info=error,
                    extra={"error_code": error.code},
                )
                if self._serve_stale and self._current is not None:
                    logger.warning(
                        "Serving previous schema generation %d",
                        self._current.generation,
                    )
                    return self._current
                if error is exc:
                    raise
                raise error from exc
            finally:
                GATEWAY_METRICS.schema_rebuild_duration_seconds.observe(
                    time.perf_counter() - started
                )

            self._generation = generation
            self._current = server
            self._last_error = None
            if epoch == self._epoch:
                self._state = SchemaState.READY
            else:
                logger.info("Service topology changed during rebuild; schema stays stale")
            GATEWAY_METRICS.schema_rebuilds_total.labels(outcome="success").inc()
            GATEWAY_METRICS.schema_generation.set(generation)

            if previous is not None and previous is not server and self._serve_stale:
                await previous.stop()
            if self._on_installed is not None:
                await self._on_installed(server)

            logger.info("GraphQL schema generation %d installed", generation)
            return server

    async def probe(self) -> dict[str, Any]:
        """Health check: rebuild if stale and report whether a schema is served.

        Returns:
            ``{"status": "pass" | "fail", "schema": bool, "generation": int}``
        """
        if self._state is SchemaState.STALE:
            try:
                await self.get_server()
            except CompositionError as exc:
                logger.debug("Health probe rebuild failed: %s", exc.detail)

        passed = self._last_error is None and self._current is not None
        return {
            "status": "pass" if passed else "fail",
            "schema": self._current is not None,
            "generation": self._generation,
        }

    async def stop(self) -> None:
        """Cancel any rebuild in flight and tear down the installed server."""
        task = self._rebuild_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, CompositionError):
                logger.debug("Abandoned GraphQL schema rebuild on stop")
        self._rebuild_task = None

        current, self._current = self._current, None
        self._state = SchemaState.STALE
        if current is not None:
            await current.stop()


__all__ = ["SchemaLifecycleManager", "SchemaState"]
