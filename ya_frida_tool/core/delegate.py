"""Callbacks through which the orchestrator reports to its user interface."""

from abc import ABC, abstractmethod
from typing import Literal

from ya_frida_tool.core.operation import Operation

# Levels used by frida script log handlers.
LogLevel = Literal["info", "warning", "error"]


class Delegate(ABC):
    """Receives progress and console output from the application."""

    @abstractmethod
    def on_progress(self, operation: Operation) -> None:
        """Called once when *operation* starts; use ``once_complete`` for the end."""

    @abstractmethod
    def on_console_message(self, scope: str, level: LogLevel, text: str) -> None:
        """Called for each log line or notification."""
