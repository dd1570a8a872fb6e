"""Async wrappers around frida sessions and scripts."""

from collections.abc import Callable
from typing import Any

import frida

from ya_frida_tool.core.base import BaseFridaManager, BaseFridaScript, BaseFridaSession, SignalRelay


class ScriptHandle(BaseFridaScript):
    """Wrapper around a Frida script whose signals land on the asyncio loop."""

    def __init__(self, script: "frida.core.Script") -> None:
        self._script = script
        self._signals = SignalRelay(script)

    async def load(self) -> None:
        await BaseFridaManager.run_sync(self._script.load)

    async def unload(self) -> None:
        await BaseFridaManager.run_sync(self._script.unload)

    async def exports_call(self, method: str, *args: Any) -> Any:
        fn = getattr(self._script.exports_sync, method)
        return await BaseFridaManager.run_sync(fn, *args)

    def set_log_handler(self, callback: Callable[[str, str], None]) -> None:
        self._script.set_log_handler(SignalRelay.bind(callback))

    def on(self, signal: str, callback: Callable[..., Any]) -> None:
        self._signals.on(signal, callback)

    def off(self, signal: str, callback: Callable[..., Any]) -> None:
        self._signals.off(signal, callback)


class FridaSessionWrapper(BaseFridaSession):
    """Async wrapper around a single frida.core.Session."""

    def __init__(self, session: "frida.core.Session") -> None:
        self._session = session
        self._signals = SignalRelay(session)

    async def enable_child_gating(self) -> None:
        await BaseFridaManager.run_sync(self._session.enable_child_gating)

    async def create_script(self, source: str, runtime: str | None = None) -> ScriptHandle:
        kwargs: dict[str, object] = {}
        if runtime is not None:
            kwargs["runtime"] = runtime
        script = await BaseFridaManager.run_sync(self._session.create_script, source, **kwargs)
        return ScriptHandle(script)

    async def detach(self) -> None:
        await BaseFridaManager.run_sync(self._session.detach)

    # --- signals: "detached" (reason, crash) ---

    def on(self, signal: str, callback: Callable[..., Any]) -> None:
        self._signals.on(signal, callback)

    def off(self, signal: str, callback: Callable[..., Any]) -> None:
        self._signals.off(signal, callback)
