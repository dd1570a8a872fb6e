"""Per-process agent: one session, one script, and their lifecycle."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from ya_frida_tool.core.base import BaseFridaDevice, BaseFridaScript, BaseFridaSession
from ya_frida_tool.core.delegate import Delegate
from ya_frida_tool.core.errors import best_effort
from ya_frida_tool.core.operation import OperationScheduler

logger = logging.getLogger(__name__)

DEFAULT_AGENT_PATH = Path(__file__).resolve().parent.parent / "scripts" / "agent.js"

DetachReason = Literal[
    "application-requested",
    "process-replaced",
    "process-terminated",
    "connection-terminated",
    "device-lost",
]

AgentState = Literal[
    "created",
    "attaching",
    "injecting",
    "loading",
    "initializing",
    "running",
    "detached",
    "disposed",
]

UninjectedCallback = Callable[[str], None]


def load_agent_source(path: str | Path | None = None) -> str:
    """Read the agent payload, defaulting to the bundled ``agent.js``."""
    return Path(path or DEFAULT_AGENT_PATH).read_text(encoding="utf-8")


class Agent:
    """The live binding between one process and one loaded script."""

    def __init__(self, device: str, pid: int, name: str, delegate: Delegate) -> None:
        self.device = device
        self.pid = pid
        self.name = name
        self.scope = f"{name}:{pid}@{device}"
        self.scheduler = OperationScheduler(self.scope, delegate)
        self.state: AgentState = "created"
        self._delegate = delegate
        self._session: BaseFridaSession | None = None
        self._script: BaseFridaScript | None = None
        self._on_uninjected: list[UninjectedCallback] = []
        self.detach_reason: str | None = None

    @classmethod
    async def inject(
        cls,
        device: BaseFridaDevice,
        pid: int,
        name: str,
        delegate: Delegate,
        source: str,
        runtime: str | None = None,
    ) -> Agent:
        """Attach to *pid*, load *source* into it and call its ``init`` export.

        If any step fails everything created so far is disposed before the
        error propagates.
        """
        agent = cls(device.name, pid, name, delegate)
        try:
            await agent._inject(device, source, runtime)
        except BaseException:
            await agent.dispose()
            raise
        return agent

    async def _inject(self, device: BaseFridaDevice, source: str, runtime: str | None) -> None:
        scheduler = self.scheduler

        self.state = "attaching"
        session = await scheduler.perform(
            f"Attaching to PID {self.scope}", lambda: device.attach(self.pid),
        )
        self._session = session
        session.on("detached", self._on_detached)

        await scheduler.perform("Enabling child gating", session.enable_child_gating)

        self.state = "injecting"
        script = await scheduler.perform(
            "Creating script", lambda: session.create_script(source, runtime=runtime),
        )
        self._script = script
        script.set_log_handler(self._on_console_message)
        script.on("message", self._on_message)

        self.state = "loading"
        await scheduler.perform("Loading script", script.load)

        self.state = "initializing"
        await scheduler.perform("Initializing", lambda: script.exports_call("init"))
        self.state = "running"

    async def dispose(self) -> None:
        """Unload the script, then detach the session; both best-effort."""
        script, self._script = self._script, None
        if script is not None:
            script.off("message", self._on_message)
            await self.scheduler.perform(
                "Unloading script", lambda: best_effort("Unloading script", script.unload()),
            )

        session, self._session = self._session, None
        if session is not None:
            session.off("detached", self._on_detached)
            await self.scheduler.perform(
                "Detaching", lambda: best_effort("Detaching", session.detach()),
            )

        if self.state != "detached":
            self.state = "disposed"

    def once_uninjected(self, callback: UninjectedCallback) -> None:
        """Register *callback* to receive the detach reason when the session ends."""
        if self.detach_reason is not None:
            callback(self.detach_reason)
            return
        self._on_uninjected.append(callback)

    @property
    def is_attached(self) -> bool:
        return self._session is not None

    def _on_detached(self, reason: str, crash: Any = None) -> None:
        logger.debug("%s detached: %s", self.scope, reason)
        self.detach_reason = reason
        # The session is already gone; drop it so dispose() has nothing left to do.
        script, self._script = self._script, None
        if script is not None:
            script.off("message", self._on_message)
        session, self._session = self._session, None
        if session is not None:
            session.off("detached", self._on_detached)
        self.state = "detached"

        if crash is not None:
            summary = getattr(crash, "summary", None) or str(crash)
            self._delegate.on_console_message(self.scope, "error", summary)

        callbacks, self._on_uninjected = self._on_uninjected, []
        for callback in callbacks:
            callback(reason)

    def _on_console_message(self, level: str, text: str) -> None:
        self._delegate.on_console_message(self.scope, level, text)

    def _on_message(self, message: dict[str, Any], data: Any) -> None:
        kind = message.get("type")
        if kind == "send":
            payload = message.get("payload")
            text = payload if isinstance(payload, str) else json.dumps(payload)
            self._delegate.on_console_message(f"PID={self.pid}", "info", text)
        elif kind == "error":
            text = message.get("stack") or message.get("description") or "Unknown error"
            self._delegate.on_console_message(f"PID={self.pid}", "error", text)

    def __repr__(self) -> str:
        return f"Agent({self.scope!r}, state={self.state!r})"
