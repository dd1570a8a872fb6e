"""Timed, observable units of work and the scheduler that reports them."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from ya_frida_tool.core.delegate import Delegate

T = TypeVar("T")

CompletionCallback = Callable[[BaseException | None], None]


class Operation:
    """One step shown to the user: scope, description, duration and outcome."""

    def __init__(self, scope: str, description: str) -> None:
        self.scope = scope
        self.description = description
        self.error: BaseException | None = None
        self._start = time.perf_counter()
        self._duration: float | None = None
        self._callbacks: list[CompletionCallback] = []

    @property
    def elapsed(self) -> float:
        """Seconds since start, frozen once the operation completes."""
        if self._duration is None:
            return time.perf_counter() - self._start
        return self._duration

    @property
    def is_complete(self) -> bool:
        return self._duration is not None

    def once_complete(self, callback: CompletionCallback) -> None:
        if self.is_complete:
            callback(self.error)
            return
        self._callbacks.append(callback)

    def complete(self, error: BaseException | None = None) -> None:
        if self.is_complete:
            return
        self._duration = time.perf_counter() - self._start
        self.error = error
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(error)

    def __repr__(self) -> str:
        return f"Operation({self.scope!r}, {self.description!r})"


class OperationScheduler:
    """Wrap awaitable steps so every one of them is announced and timed."""

    def __init__(self, scope: str, delegate: Delegate) -> None:
        self.scope = scope
        self._delegate = delegate

    async def perform(self, description: str, work: Callable[[], Awaitable[T]]) -> T:
        operation = Operation(self.scope, description)
        self._delegate.on_progress(operation)
        try:
            result = await work()
        except BaseException as exc:
            operation.complete(exc)
            raise
        operation.complete()
        return result
