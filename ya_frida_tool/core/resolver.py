"""Turn declarative process selectors into concrete processes on a device."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ya_frida_tool.core.base import BaseFridaDevice
from ya_frida_tool.core.errors import SpawnGatingDisabledError, TargetNotFoundError, best_effort
from ya_frida_tool.core.operation import OperationScheduler
from ya_frida_tool.core.targets import (
    AllByName,
    AnyByName,
    ByFrontmost,
    ByGating,
    ByIds,
    ByName,
    Spawn,
    TargetProcess,
)

if TYPE_CHECKING:
    import frida

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Process:
    """A (pid, name) pair for processes the device has not listed yet."""

    pid: int
    name: str


class TargetResolver:
    """Resolves selectors against one device and owns its spawn gating state."""

    def __init__(
        self,
        device: BaseFridaDevice,
        scheduler: OperationScheduler,
        cancellable: "frida.Cancellable | None" = None,
    ) -> None:
        self._device = device
        self._scheduler = scheduler
        self._cancellable = cancellable
        self._gating_enabled = False
        self._gating_waiters: list[tuple[str, asyncio.Future]] = []
        self._spawn_checks: set[asyncio.Task] = set()

    @property
    def gating_enabled(self) -> bool:
        return self._gating_enabled

    async def resolve(self, selector: TargetProcess, tracked: Collection[int] = ()) -> list[Any]:
        """Return the processes *selector* matches, minus those already *tracked*.

        ``Spawn`` and ``ByGating`` results are left paused; resuming them is up
        to the caller once they have been instrumented.
        """
        processes = await self._resolve(selector, tracked)
        return [p for p in processes if p.pid not in tracked]

    async def _resolve(self, selector: TargetProcess, tracked: Collection[int]) -> list[Any]:
        device = self._device
        perform = self._scheduler.perform

        if isinstance(selector, Spawn):
            pid = await perform(f'Spawning "{selector.program}"', lambda: device.spawn(selector.program))
            return [await self._lookup(pid, selector.program)]

        if isinstance(selector, ByIds):
            return await perform(f'Resolving "{selector.label}"', lambda: self._find_numbered(selector.ids))

        if isinstance(selector, ByName):
            async def by_name() -> list[Any]:
                return [await device.get_process(selector.name, cancellable=self._cancellable)]
            return await perform(f'Resolving "{selector.name}"', by_name)

        if isinstance(selector, AllByName):
            return await perform(
                f'Resolving "{selector.name}"', lambda: self.find_named(selector.name, tracked),
            )

        if isinstance(selector, AnyByName):
            async def any_by_name() -> list[Any]:
                matches = await self.find_named(selector.name, tracked)
                if not matches:
                    msg = f'Failed to find process "{selector.name}" on host "{device.name}"'
                    raise TargetNotFoundError(msg)
                return matches[:1]
            return await perform(f'Resolving "{selector.name}"', any_by_name)

        if isinstance(selector, ByGating):
            return await perform(f'Waiting for "{selector.name}"', lambda: self._wait_for_spawn(selector.name))

        if isinstance(selector, ByFrontmost):
            async def frontmost() -> list[Any]:
                app = await device.get_frontmost_application(cancellable=self._cancellable)
                if app is None:
                    msg = f"No frontmost application on {device.name}"
                    raise TargetNotFoundError(msg)
                return [await self._lookup(app.pid, app.name)]
            return await perform("Resolving frontmost application", frontmost)

        msg = f"Invalid target process: {selector!r}"
        raise ValueError(msg)

    async def find_named(self, name: str, tracked: Collection[int] = ()) -> list[Any]:
        """Every live process called *name* that is not already *tracked*."""
        processes = await self._device.enumerate_processes(cancellable=self._cancellable)
        return [p for p in processes if p.pid not in tracked and p.name == name]

    async def _find_numbered(self, ids: Collection[int]) -> list[Any]:
        processes = await self._device.enumerate_processes(cancellable=self._cancellable)
        by_pid = {p.pid: p for p in processes}
        missing = [pid for pid in ids if pid not in by_pid]
        if missing:
            msg = f"Failed to find PIDs: {', '.join(str(pid) for pid in missing)}"
            raise TargetNotFoundError(msg)
        return [by_pid[pid] for pid in ids]

    async def _lookup(self, pid: int, fallback_name: str) -> Any:
        processes = await self._device.enumerate_processes(cancellable=self._cancellable)
        match = next((p for p in processes if p.pid == pid), None)
        return match if match is not None else Process(pid, fallback_name)

    # --- spawn gating ---

    async def _wait_for_spawn(self, name: str) -> list[Any]:
        waiter: asyncio.Future = asyncio.get_running_loop().create_future()
        entry = (name, waiter)
        self._gating_waiters.append(entry)
        try:
            if not self._gating_enabled:
                await self._enable_spawn_gating()
            return [await waiter]
        except asyncio.CancelledError:
            await self.disable_spawn_gating()
            raise
        finally:
            if entry in self._gating_waiters:
                self._gating_waiters.remove(entry)

    async def _enable_spawn_gating(self) -> None:
        # The handler stays connected for as long as gating is on, so spawns
        # nobody is waiting for keep being released.
        device = self._device
        self._gating_enabled = True
        device.on("spawn-added", self._on_spawn_added)
        try:
            await device.enable_spawn_gating()
        except BaseException:
            self._gating_enabled = False
            device.off("spawn-added", self._on_spawn_added)
            raise

    def _on_spawn_added(self, spawn: Any) -> None:
        task = asyncio.ensure_future(self._check_spawn(spawn))
        self._spawn_checks.add(task)
        task.add_done_callback(self._spawn_checks.discard)

    async def _check_spawn(self, spawn: Any) -> None:
        device = self._device
        pid = spawn.pid
        identifier = getattr(spawn, "identifier", None)

        proc = None
        try:
            processes = await device.enumerate_processes(cancellable=self._cancellable)
            proc = next((p for p in processes if p.pid == pid), None)
        except Exception:
            logger.debug("Failed to look up spawned PID %d", pid, exc_info=True)

        for name, waiter in list(self._gating_waiters):
            if waiter.done():
                continue
            if identifier == name or (proc is not None and proc.name == name):
                waiter.set_result(proc if proc is not None else Process(pid, identifier or name))
                return

        await best_effort(f"Resuming spawned PID {pid}", device.resume(pid))

    async def disable_spawn_gating(self) -> None:
        """Fail pending gating waits, turn gating off and release paused spawns."""
        for _, waiter in self._gating_waiters:
            if not waiter.done():
                waiter.set_exception(SpawnGatingDisabledError())

        if not self._gating_enabled:
            return
        self._gating_enabled = False
        self._device.off("spawn-added", self._on_spawn_added)

        await self._scheduler.perform("Disabling spawn gating", self._release_pending)

    async def _release_pending(self) -> None:
        device = self._device
        await best_effort("Disabling spawn gating", device.disable_spawn_gating())
        try:
            pending = await device.enumerate_pending_spawn()
        except Exception:
            logger.debug("Failed to enumerate pending spawns", exc_info=True)
            return
        for spawn in pending:
            await best_effort(f"Resuming pending PID {spawn.pid}", device.resume(spawn.pid))
