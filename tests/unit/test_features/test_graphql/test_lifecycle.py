"""Unit tests for the schema lifecycle manager."""

from __future__ import annotations

import asyncio

import pytest

from gateway_service.core.exceptions import CompositionError
from gateway_service.features.graphql.lifecycle import SchemaLifecycleManager, SchemaState


class FakeServer:
    def __init__(self, generation: int) -> None:
        self.generation = generation
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class Builder:
    """Build callable recording calls, optionally gated or failing."""

    def __init__(self) -> None:
        self.calls: list[int] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def __call__(self, generation: int) -> FakeServer:
        self.calls.append(generation)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return FakeServer(generation)


@pytest.fixture
def builder():
    return Builder()


@pytest.mark.unit
class TestGetServer:
    """Tests for lazy rebuilds."""

    async def test_starts_stale(self, builder):
        manager = SchemaLifecycleManager(builder)
        assert manager.state is SchemaState.STALE
        assert manager.current is None
        assert manager.generation == 0
        assert builder.calls == []

    async def test_first_demand_builds(self, builder):
        manager = SchemaLifecycleManager(builder)

        server = await manager.get_server()

        assert server.generation == 1
        assert manager.state is SchemaState.READY
        assert manager.current is server

    async def test_ready_returns_installed_server(self, builder):
        manager = SchemaLifecycleManager(builder)
        first = await manager.get_server()

        assert await manager.get_server() is first
        assert builder.calls == [1]

    async def test_concurrent_demanders_share_one_rebuild(self, builder):
        builder.gate = asyncio.Event()
        manager = SchemaLifecycleManager(builder)

        pending = asyncio.gather(*(manager.get_server() for _ in range(5)))
        await asyncio.sleep(0)
        builder.gate.set()
        servers = await pending

        assert builder.calls == [1]
        assert all(server is servers[0] for server in servers)

    async def test_invalidate_triggers_rebuild_on_next_demand(self, builder):
        manager = SchemaLifecycleManager(builder)
        first = await manager.get_server()

        manager.invalidate()
        assert manager.state is SchemaState.STALE
        assert builder.calls == [1]

        second = await manager.get_server()
        assert second.generation == 2
        assert first.stopped is True
        assert manager.state is SchemaState.READY

    async def test_repeated_invalidation_builds_once(self, builder):
        manager = SchemaLifecycleManager(builder)
        await manager.get_server()
        for _ in range(4):
            manager.invalidate()

        await manager.get_server()
        assert builder.calls == [1, 2]

    async def test_invalidation_during_rebuild_keeps_stale(self, builder):
        builder.gate = asyncio.Event()
        manager = SchemaLifecycleManager(builder)

        pending = asyncio.ensure_future(manager.get_server())
        while not builder.calls:
            await asyncio.sleep(0)
        manager.invalidate()
        builder.gate.set()
        server = await pending

        assert manager.current is server
        assert manager.state is SchemaState.STALE

        await manager.get_server()
        assert builder.calls == [1, 2]
        assert manager.state is SchemaState.READY

    async def test_cancelled_demander_does_not_cancel_rebuild(self, builder):
        builder.gate = asyncio.Event()
        manager = SchemaLifecycleManager(builder)

        first = asyncio.ensure_future(manager.get_server())
        second = asyncio.ensure_future(manager.get_server())
        await asyncio.sleep(0)
        first.cancel()
        builder.gate.set()

        server = await second
        assert server.generation == 1
        assert first.cancelled()

    async def test_on_installed_hook(self, builder):
        installed = []

        async def hook(server):
            installed.append(server.generation)

        manager = SchemaLifecycleManager(builder, on_installed=hook)
        await manager.get_server()
        manager.invalidate()
        await manager.get_server()

        assert installed == [1, 2]


@pytest.mark.unit
class TestRebuildFailures:
    """Tests for failure policies."""

    async def test_first_failure_propagates(self, builder):
        builder.error = CompositionError(cause=ValueError("bad fragment"))
        manager = SchemaLifecycleManager(builder)

        with pytest.raises(CompositionError):
            await manager.get_server()
        assert manager.current is None
        assert manager.last_error is builder.error

    async def test_non_composition_errors_are_wrapped(self, builder):
        builder.error = RuntimeError("boom")
        manager = SchemaLifecycleManager(builder)

        with pytest.raises(CompositionError) as info:
            await manager.get_server()
        assert info.value.cause is builder.error

    async def test_serve_stale_keeps_previous_generation(self, builder):
        manager = SchemaLifecycleManager(builder)
        first = await manager.get_server()
        manager.invalidate()
        builder.error = CompositionError(cause=ValueError("bad fragment"))

        served = await manager.get_server()

        assert served is first
        assert first.stopped is False
        assert manager.state is SchemaState.STALE
        assert manager.last_error is builder.error

    async def test_recovery_clears_last_error(self, builder):
        manager = SchemaLifecycleManager(builder)
        await manager.get_server()
        manager.invalidate()
        builder.error = CompositionError()
        await manager.get_server()

        builder.error = None
        server = await manager.get_server()

        assert server.generation == 2
        assert manager.last_error is None
        assert manager.state is SchemaState.READY

    async def test_teardown_policy_propagates(self, builder):
        manager = SchemaLifecycleManager(builder, serve_stale_on_failure=False)
        first = await manager.get_server()
        manager.invalidate()
        builder.error = CompositionError()

        with pytest.raises(CompositionError):
            await manager.get_server()

        assert first.stopped is True
        assert manager.current is None

    async def test_every_concurrent_demander_sees_failure(self, builder):
        builder.gate = asyncio.Event()
        builder.error = CompositionError()
        manager = SchemaLifecycleManager(builder)

        pending = asyncio.gather(*(manager.get_server() for _ in range(3)), return_exceptions=True)
        await asyncio.sleep(0)
        builder.gate.set()
        results = await pending

        assert builder.calls == [1]
        assert all(isinstance(result, CompositionError) for result in results)


@pytest.mark.unit
class TestProbeAndStop:
    """Tests for probe and stop."""

    async def test_probe_builds_when_stale(self, builder):
        manager = SchemaLifecycleManager(builder)

        assert await manager.probe() == {"status": "pass", "schema": True, "generation": 1}

    async def test_probe_reports_failure_without_schema(self, builder):
        builder.error = CompositionError()
        manager = SchemaLifecycleManager(builder)

        assert await manager.probe() == {"status": "fail", "schema": False, "generation": 0}

    async def test_probe_fails_while_serving_stale(self, builder):
        manager = SchemaLifecycleManager(builder)
        await manager.get_server()
        manager.invalidate()
        builder.error = CompositionError()

        result = await manager.probe()

        assert result["status"] == "fail"
        assert result["schema"] is True

    async def test_stop_tears_down_current(self, builder):
        manager = SchemaLifecycleManager(builder)
        server = await manager.get_server()

        await manager.stop()

        assert server.stopped is True
        assert manager.current is None
        assert manager.state is SchemaState.STALE

    async def test_stop_cancels_rebuild_in_flight(self, builder):
        builder.gate = asyncio.Event()
        manager = SchemaLifecycleManager(builder)
        pending = asyncio.ensure_future(manager.get_server())
        await asyncio.sleep(0)

        await manager.stop()

        assert manager.current is None
        with pytest.raises(asyncio.CancelledError):
            await pending
