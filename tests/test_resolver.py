"""Tests for TargetResolver."""

import asyncio

import pytest

from tests.fakes import EngineError, FakeApplication, FakeDevice, FakeSpawn, RecordingDelegate, drain
from ya_frida_tool.core.errors import SpawnGatingDisabledError, TargetNotFoundError
from ya_frida_tool.core.operation import OperationScheduler
from ya_frida_tool.core.resolver import Process, TargetResolver
from ya_frida_tool.core.targets import (
    AllByName,
    AnyByName,
    ByFrontmost,
    ByGating,
    ByIds,
    ByName,
    Spawn,
)


def make_resolver(device: FakeDevice, delegate: RecordingDelegate | None = None) -> TargetResolver:
    return TargetResolver(device, OperationScheduler("application", delegate or RecordingDelegate()))


class TestSimpleSelectors:
    @pytest.mark.asyncio
    async def test_spawn_returns_paused_process(self, device):
        resolver = make_resolver(device)
        [process] = await resolver.resolve(Spawn("calc"))
        assert process.pid == 100
        assert process.name == "calc"
        assert device.steps("spawn") == ["calc"]
        assert device.steps("resume") == []

    @pytest.mark.asyncio
    async def test_by_name(self, device):
        [process] = await make_resolver(device).resolve(ByName("Calculator"))
        assert process.pid == 42

    @pytest.mark.asyncio
    async def test_by_name_missing_fails(self, device):
        with pytest.raises(EngineError, match="unable to find process"):
            await make_resolver(device).resolve(ByName("Nope"))

    @pytest.mark.asyncio
    async def test_all_by_name_skips_tracked(self, device):
        processes = await make_resolver(device).resolve(AllByName("worker"), tracked={50})
        assert [p.pid for p in processes] == [51]

    @pytest.mark.asyncio
    async def test_all_by_name_with_no_match_is_empty(self, device):
        assert await make_resolver(device).resolve(AllByName("ghost")) == []

    @pytest.mark.asyncio
    async def test_any_by_name_returns_first(self, device):
        processes = await make_resolver(device).resolve(AnyByName("worker"))
        assert [p.pid for p in processes] == [50]

    @pytest.mark.asyncio
    async def test_any_by_name_fails_without_match(self, device):
        with pytest.raises(TargetNotFoundError, match='Failed to find process "ghost"'):
            await make_resolver(device).resolve(AnyByName("ghost"))

    @pytest.mark.asyncio
    async def test_frontmost(self, device):
        device.frontmost = FakeApplication(42, "Calculator")
        [process] = await make_resolver(device).resolve(ByFrontmost())
        assert process.pid == 42

    @pytest.mark.asyncio
    async def test_frontmost_missing_fails(self, device):
        with pytest.raises(TargetNotFoundError, match="No frontmost application"):
            await make_resolver(device).resolve(ByFrontmost())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "selector",
        [ByName("Calculator"), ByIds((42, 50)), AllByName("worker"), AnyByName("worker")],
    )
    async def test_results_are_disjoint_from_tracked(self, device, selector):
        tracked = {42, 50}
        processes = await make_resolver(device).resolve(selector, tracked=tracked)
        assert not {p.pid for p in processes} & tracked

    @pytest.mark.asyncio
    async def test_resolution_is_reported_as_progress(self, device):
        delegate = RecordingDelegate()
        await make_resolver(device, delegate).resolve(ByName("Calculator"))
        assert delegate.descriptions() == ['Resolving "Calculator"']


class TestByIds:
    @pytest.mark.asyncio
    async def test_all_found(self, device):
        processes = await make_resolver(device).resolve(ByIds((42, 1)))
        assert [p.pid for p in processes] == [42, 1]

    @pytest.mark.asyncio
    async def test_empty_list_never_fails(self, device):
        assert await make_resolver(device).resolve(ByIds(())) == []

    @pytest.mark.asyncio
    async def test_error_lists_every_missing_id(self, device):
        with pytest.raises(TargetNotFoundError) as excinfo:
            await make_resolver(device).resolve(ByIds((42, 43, 44)))
        message = str(excinfo.value)
        assert "43" in message
        assert "44" in message
        assert "42" not in message


class TestGating:
    @pytest.mark.asyncio
    async def test_non_matching_spawns_are_released(self, device):
        resolver = make_resolver(device)
        wait = asyncio.ensure_future(resolver.resolve(ByGating("target")))
        await drain()
        assert device.steps("enable_spawn_gating") == [None]
        assert resolver.gating_enabled

        device.processes[200] = Process(200, "other")
        device.signals.emit("spawn-added", FakeSpawn(200))
        await drain()
        assert device.steps("resume") == [200]
        assert not wait.done()

        device.processes[201] = Process(201, "target")
        device.signals.emit("spawn-added", FakeSpawn(201))
        [process] = await asyncio.wait_for(wait, 1)

        assert process.pid == 201
        # The match is left paused for the caller to resume after instrumenting.
        assert device.steps("resume") == [200]

    @pytest.mark.asyncio
    async def test_spawns_after_a_match_are_still_released(self, device):
        resolver = make_resolver(device)
        wait = asyncio.ensure_future(resolver.resolve(ByGating("target")))
        await drain()
        device.processes[700] = Process(700, "target")
        device.signals.emit("spawn-added", FakeSpawn(700))
        await asyncio.wait_for(wait, 1)

        device.processes[701] = Process(701, "other")
        device.signals.emit("spawn-added", FakeSpawn(701))
        await drain()

        assert resolver.gating_enabled
        assert device.steps("resume") == [701]

        await resolver.disable_spawn_gating()
        assert device.signals.handlers["spawn-added"] == []

    @pytest.mark.asyncio
    async def test_concurrent_waits_share_gating(self, device):
        resolver = make_resolver(device)
        first = asyncio.ensure_future(resolver.resolve(ByGating("alpha")))
        second = asyncio.ensure_future(resolver.resolve(ByGating("beta")))
        await drain()
        assert len(device.signals.handlers["spawn-added"]) == 1

        device.processes[800] = Process(800, "beta")
        device.signals.emit("spawn-added", FakeSpawn(800))
        [process] = await asyncio.wait_for(second, 1)
        assert process.pid == 800
        assert not first.done()

        await resolver.disable_spawn_gating()
        with pytest.raises(SpawnGatingDisabledError):
            await first

    @pytest.mark.asyncio
    async def test_matches_on_identifier(self, device):
        resolver = make_resolver(device)
        wait = asyncio.ensure_future(resolver.resolve(ByGating("com.example.app")))
        await drain()
        device.processes[300] = Process(300, "Example")
        device.signals.emit("spawn-added", FakeSpawn(300, identifier="com.example.app"))
        [process] = await asyncio.wait_for(wait, 1)
        assert process.pid == 300

    @pytest.mark.asyncio
    async def test_disable_fails_pending_wait_and_releases(self, device):
        resolver = make_resolver(device)
        wait = asyncio.ensure_future(resolver.resolve(ByGating("target")))
        await drain()
        device.pending_spawn = [FakeSpawn(400), FakeSpawn(401)]

        await resolver.disable_spawn_gating()

        with pytest.raises(SpawnGatingDisabledError, match="Spawn gating disabled"):
            await wait
        assert device.steps("disable_spawn_gating") == [None]
        assert device.steps("resume") == [400, 401]
        assert not resolver.gating_enabled

    @pytest.mark.asyncio
    async def test_cancelled_wait_still_cleans_up(self, device):
        resolver = make_resolver(device)
        wait = asyncio.ensure_future(resolver.resolve(ByGating("target")))
        await drain()
        device.pending_spawn = [FakeSpawn(500)]

        wait.cancel()
        with pytest.raises(asyncio.CancelledError):
            await wait

        assert device.steps("disable_spawn_gating") == [None]
        assert device.steps("resume") == [500]

    @pytest.mark.asyncio
    async def test_disable_without_gating_is_a_no_op(self, device):
        await make_resolver(device).disable_spawn_gating()
        assert device.calls == []

    @pytest.mark.asyncio
    async def test_teardown_errors_are_swallowed(self, device):
        resolver = make_resolver(device)
        wait = asyncio.ensure_future(resolver.resolve(ByGating("target")))
        await drain()
        device.failures.add(("disable_spawn_gating", None))
        device.failures.add(("resume", 600))
        device.pending_spawn = [FakeSpawn(600), FakeSpawn(601)]

        await resolver.disable_spawn_gating()

        with pytest.raises(SpawnGatingDisabledError):
            await wait
        assert device.steps("resume") == [600, 601]
