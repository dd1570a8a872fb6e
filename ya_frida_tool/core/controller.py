"""Per-device orchestration: which processes are instrumented, and when we are done."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ya_frida_tool.core.agent import Agent
from ya_frida_tool.core.base import BaseFridaDevice
from ya_frida_tool.core.delegate import Delegate
from ya_frida_tool.core.errors import SessionLostError, best_effort
from ya_frida_tool.core.operation import OperationScheduler
from ya_frida_tool.core.resolver import Process, TargetResolver
from ya_frida_tool.core.targets import RESUMABLE_KINDS, AllByName, TargetProcess

if TYPE_CHECKING:
    import frida

logger = logging.getLogger(__name__)

FATAL_DETACH_REASONS = frozenset({"connection-terminated", "device-lost"})


class DeviceController:
    """Owns every agent and tracked process on one device.

    The controller settles a single terminal result: success once nothing is
    tracked and no ``all-by-name`` enlistment is running, failure as soon as
    any session is lost with a fatal reason.
    """

    def __init__(
        self,
        device: BaseFridaDevice,
        delegate: Delegate,
        scheduler: OperationScheduler,
        cancellable: "frida.Cancellable | None" = None,
        *,
        source: str,
        runtime: str | None = None,
        poll_interval: float = 0.5,
    ) -> None:
        self.device = device
        self._delegate = delegate
        self._scheduler = scheduler
        self._cancellable = cancellable
        self._source = source
        self._runtime = runtime
        self._poll_interval = poll_interval

        self._resolver = TargetResolver(device, scheduler, cancellable)
        self._processes: dict[int, Any] = {}
        self._agents: dict[int, Agent] = {}

        self._done: asyncio.Future = asyncio.get_running_loop().create_future()
        # join() normally retrieves the outcome; keep asyncio quiet when nobody does.
        self._done.add_done_callback(lambda f: f.cancelled() or f.exception())

        self._enlist_targets: list[AllByName] = []
        self._enlist_task: asyncio.Task | None = None
        self._child_tasks: set[asyncio.Task] = set()
        self._disposed = False
        self._dispose_task: asyncio.Task | None = None

        device.on("child-added", self._on_child_added)

    # --- public surface ---

    @property
    def tracked_pids(self) -> frozenset[int]:
        return frozenset(self._processes)

    @property
    def agents(self) -> dict[int, Agent]:
        return dict(self._agents)

    @property
    def is_enlisting(self) -> bool:
        return self._enlist_task is not None

    @property
    def is_settled(self) -> bool:
        return self._done.done()

    async def add(self, selectors: Iterable[TargetProcess]) -> None:
        """Resolve each selector and instrument every process not yet tracked."""
        device = self.device

        for selector in selectors:
            if isinstance(selector, AllByName) and selector not in self._enlist_targets:
                self._enlist_targets.append(selector)

            resumable = selector.kind in RESUMABLE_KINDS
            for process in await self._resolver.resolve(selector, self._processes):
                pid = process.pid
                if not self._accepting:
                    if resumable:
                        await best_effort(f"Resuming PID {pid}", device.resume(pid))
                    continue
                if not self._claim(process):
                    continue

                try:
                    agent = await self._instrument(pid, process.name)
                except BaseException:
                    if resumable:
                        await best_effort(f"Resuming PID {pid}", device.resume(pid))
                    raise

                if resumable:
                    await agent.scheduler.perform("Resuming", lambda: device.resume(pid))

        if self._enlist_targets and self._enlist_task is None and self._accepting:
            self._enlist_task = asyncio.ensure_future(self._enlist_new_processes())

        self._check_finished()

    async def join(self) -> None:
        """Wait for the terminal result; raises if it settled as a failure."""
        await asyncio.shield(self._done)

    async def dispose(self) -> None:
        """Tear everything down. Safe to call repeatedly and concurrently."""
        if self._dispose_task is None:
            self._dispose_task = asyncio.ensure_future(self._dispose())
        await asyncio.shield(self._dispose_task)

    # --- bookkeeping ---

    @property
    def _accepting(self) -> bool:
        return not self._disposed and not self._done.done()

    def _claim(self, process: Any) -> bool:
        # No await between check and insert: add(), the child handler and the
        # enlistment loop all race to instrument the same pids.
        if process.pid in self._processes:
            return False
        self._processes[process.pid] = process
        return True

    def _settle(self, error: BaseException | None = None) -> None:
        if self._done.done():
            return
        if error is None:
            self._done.set_result(None)
        else:
            self._done.set_exception(error)

    def _check_finished(self) -> None:
        if not self._processes and self._enlist_task is None:
            self._settle()

    async def _instrument(self, pid: int, name: str) -> Agent:
        device = self.device
        try:
            agent = await Agent.inject(
                device, pid, name, self._delegate, self._source, runtime=self._runtime,
            )
        except BaseException:
            self._processes.pop(pid, None)
            raise

        if self._disposed:
            self._processes.pop(pid, None)
            await agent.dispose()
            return agent

        self._agents[pid] = agent
        self._delegate.on_console_message(
            "application", "info", f"Attached PID: {name}:{pid}@{device.name}",
        )
        agent.once_uninjected(lambda reason: self._on_uninjected(pid, reason))
        return agent

    def _on_uninjected(self, pid: int, reason: str) -> None:
        self._agents.pop(pid, None)

        process = self._processes.pop(pid, None)
        if process is not None:
            if reason == "process-replaced":
                return
            if reason == "process-terminated":
                remaining = len(self._processes)
                self._delegate.on_console_message(
                    "application", "warning",
                    f"Detached PID: {process.name}:{pid}@{self.device.name}, {remaining} remaining",
                )
                if remaining == 0:
                    self._delegate.on_console_message(
                        "application", "warning", f"All processes lost on host: {self.device.name}",
                    )
            elif reason in FATAL_DETACH_REASONS:
                self._settle(SessionLostError(reason))
                return

        self._check_finished()

    # --- continuous enlistment ---

    def _is_cancelled(self) -> bool:
        return self._cancellable is not None and self._cancellable.is_cancelled

    async def _enlist_new_processes(self) -> None:
        while not self._is_cancelled():
            for target in list(self._enlist_targets):
                try:
                    for process in await self._resolver.find_named(target.name, self._processes):
                        if self._accepting and self._claim(process):
                            await self._instrument(process.pid, process.name)
                except Exception as exc:
                    self._delegate.on_console_message(target.name, "warning", str(exc))
            await asyncio.sleep(self._poll_interval)

    # --- child gating ---

    def _on_child_added(self, child: Any) -> None:
        task = asyncio.ensure_future(self._handle_child(child))
        self._child_tasks.add(task)
        task.add_done_callback(self._child_tasks.discard)

    def _child_name(self, child: Any) -> str:
        name = getattr(child, "path", None) or getattr(child, "identifier", None)
        origin = getattr(child, "origin", "unknown")
        if not name and origin == "fork":
            parent = self._agents.get(getattr(child, "parent_pid", -1))
            if parent is not None:
                name = parent.name
        return f"{name or '<unknown>'} from {origin}"

    async def _handle_child(self, child: Any) -> None:
        device = self.device
        pid = child.pid
        try:
            name = self._child_name(child)
            if self._accepting and self._claim(Process(pid, name)):
                agent = await self._instrument(pid, name)
                await agent.scheduler.perform("Resuming", lambda: device.resume(pid))
                return
        except Exception as exc:
            logger.warning("Failed to instrument child PID %d", pid, exc_info=True)
            self._delegate.on_console_message(
                "application", "error", f"Failed to instrument child PID {pid}: {exc}",
            )
        # Whatever happened above, the child must not stay suspended.
        await best_effort(f"Resuming child PID {pid}", device.resume(pid))

    # --- teardown ---

    async def _dispose(self) -> None:
        self._disposed = True
        self.device.off("child-added", self._on_child_added)

        task, self._enlist_task = self._enlist_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if self._child_tasks:
            await asyncio.gather(*self._child_tasks, return_exceptions=True)

        agents = list(self._agents.values())
        self._agents.clear()
        self._processes.clear()
        results = await asyncio.gather(*(a.dispose() for a in agents), return_exceptions=True)
        for agent, result in zip(agents, results):
            if isinstance(result, Exception):
                logger.debug("Disposing %s failed: %r", agent.scope, result)

        await self._resolver.disable_spawn_gating()
        self._settle()
        logger.debug("Controller for %s disposed", self.device.name)
