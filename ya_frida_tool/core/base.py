"""Abstract capability interfaces over the Frida engine."""

import asyncio
import contextlib
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import frida


class BaseFridaManager(ABC):
    """Abstract base for all Frida resource managers."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the manager's resources."""

    @abstractmethod
    async def cleanup(self) -> None:
        """Release all managed resources."""

    @staticmethod
    async def run_sync(func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run a synchronous Frida call in a thread pool."""
        return await asyncio.to_thread(func, *args, **kwargs)

    @staticmethod
    async def run_cancellable(
        cancellable: "frida.Cancellable | None",
        func: Any,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Like :meth:`run_sync`, with *cancellable* pushed as current in the worker thread."""
        if cancellable is None:
            return await asyncio.to_thread(func, *args, **kwargs)

        def call() -> Any:
            with cancellable:
                return func(*args, **kwargs)

        return await asyncio.to_thread(call)


class SignalRelay:
    """Forward signals of a frida object onto the subscribing asyncio loop.

    Frida emits signals on its own thread. Each callback registered through
    :meth:`on` is invoked with ``loop.call_soon_threadsafe`` on the loop that
    was running when it subscribed, so handlers may touch loop-owned state.
    """

    def __init__(self, target: Any) -> None:
        self._target = target
        self._handlers: dict[tuple[str, Callable[..., Any]], Callable[..., Any]] = {}

    @staticmethod
    def bind(callback: Callable[..., Any]) -> Callable[..., Any]:
        loop = asyncio.get_running_loop()

        def handler(*args: Any) -> None:
            # The loop may already be closed when frida delivers a late signal.
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(callback, *args)

        return handler

    def on(self, signal: str, callback: Callable[..., Any]) -> None:
        handler = self.bind(callback)
        self._handlers[(signal, callback)] = handler
        self._target.on(signal, handler)

    def off(self, signal: str, callback: Callable[..., Any]) -> None:
        handler = self._handlers.pop((signal, callback), None)
        if handler is not None:
            self._target.off(signal, handler)


class BaseFridaScript(ABC):
    """Abstract interface for a script created inside a session."""

    @abstractmethod
    async def load(self) -> None:
        ...

    @abstractmethod
    async def unload(self) -> None:
        ...

    @abstractmethod
    async def exports_call(self, method: str, *args: Any) -> Any:
        ...

    @abstractmethod
    def set_log_handler(self, callback: Callable[[str, str], None]) -> None:
        ...

    @abstractmethod
    def on(self, signal: str, callback: Callable[..., Any]) -> None:
        ...

    @abstractmethod
    def off(self, signal: str, callback: Callable[..., Any]) -> None:
        ...


class BaseFridaSession(ABC):
    """Abstract interface for a session attached to one process."""

    @abstractmethod
    async def enable_child_gating(self) -> None:
        ...

    @abstractmethod
    async def create_script(self, source: str, runtime: str | None = None) -> BaseFridaScript:
        ...

    @abstractmethod
    async def detach(self) -> None:
        ...

    @abstractmethod
    def on(self, signal: str, callback: Callable[..., Any]) -> None:
        ...

    @abstractmethod
    def off(self, signal: str, callback: Callable[..., Any]) -> None:
        ...


class BaseFridaDevice(ABC):
    """Abstract interface for Frida device operations."""

    @property
    @abstractmethod
    def id(self) -> str:
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def enumerate_processes(
        self, cancellable: "frida.Cancellable | None" = None,
    ) -> "list[frida.core.Process]":
        ...

    @abstractmethod
    async def get_process(
        self, name: str, cancellable: "frida.Cancellable | None" = None,
    ) -> "frida.core.Process":
        ...

    @abstractmethod
    async def get_frontmost_application(
        self, cancellable: "frida.Cancellable | None" = None,
    ) -> "frida.core.Application | None":
        ...

    @abstractmethod
    async def spawn(self, program: str) -> int:
        ...

    @abstractmethod
    async def resume(self, pid: int) -> None:
        ...

    @abstractmethod
    async def enable_spawn_gating(self) -> None:
        ...

    @abstractmethod
    async def disable_spawn_gating(self) -> None:
        ...

    @abstractmethod
    async def enumerate_pending_spawn(self) -> list:
        ...

    @abstractmethod
    async def attach(self, pid: int) -> BaseFridaSession:
        ...

    @abstractmethod
    def on(self, signal: str, callback: Callable[..., Any]) -> None:
        ...

    @abstractmethod
    def off(self, signal: str, callback: Callable[..., Any]) -> None:
        ...
