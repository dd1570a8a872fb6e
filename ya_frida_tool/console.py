"""Terminal rendering of progress and console output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO

import click

from ya_frida_tool.core.delegate import Delegate
from ya_frida_tool.core.operation import Operation

_LEVEL_COLORS = {
    "info": "bright_white",
    "warning": "bright_yellow",
    "error": "bright_red",
}


def format_elapsed(seconds: float) -> str:
    """Human-friendly duration, e.g. ``850 us``, ``12 ms``, ``1.25 s``."""
    if seconds < 1e-3:
        return f"{seconds * 1e6:.0f} us"
    if seconds < 1:
        return f"{seconds * 1e3:.0f} ms"
    if seconds < 60:
        return f"{seconds:.2f} s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)} m {rest:.0f} s"


@dataclass
class _PendingOperation:
    operation: Operation
    log_message_count: int = 0


class ConsoleUI(Delegate):
    """Prints ``[scope] description (elapsed)`` lines and colored log output."""

    def __init__(self, file: IO[str] | None = None, color: bool | None = None) -> None:
        self._file = file
        self._color = color
        self._pending: _PendingOperation | None = None

    def _write(self, text: str) -> None:
        click.echo(text, file=self._file, nl=False, color=self._color)

    def on_progress(self, operation: Operation) -> None:
        self._write(f"[{operation.scope}] {click.style(operation.description, fg='cyan')} ")

        pending = _PendingOperation(operation)
        self._pending = pending

        def on_complete(error: BaseException | None) -> None:
            if pending.log_message_count > 0:
                completed = click.style(f"{operation.description} completed", fg="cyan")
                self._write(f"[{operation.scope}] {completed} ")
            if error is not None:
                self._write(click.style("failed ", fg="red"))
            self._write(click.style(f"({format_elapsed(operation.elapsed)})", fg="bright_black") + "\n")
            if self._pending is pending:
                self._pending = None

        operation.once_complete(on_complete)

    def on_console_message(self, scope: str, level: str, text: str) -> None:
        pending = self._pending
        if pending is not None:
            if pending.log_message_count == 0:
                self._write(click.style("...", fg="bright_black") + "\n")
            pending.log_message_count += 1

        color = _LEVEL_COLORS.get(level, "bright_black")
        self._write(f"[{scope}] {click.style(text, fg=color)}\n")
