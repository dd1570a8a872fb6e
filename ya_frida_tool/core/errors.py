"""Error types raised by the orchestration layer."""

from __future__ import annotations

import logging
from collections.abc import Awaitable

logger = logging.getLogger(__name__)


class TargetNotFoundError(ValueError):
    """A process selector did not match anything on the device."""


class SpawnGatingDisabledError(RuntimeError):
    """Spawn gating was torn down while a gating wait was still pending."""

    def __init__(self) -> None:
        super().__init__("Spawn gating disabled")


class SessionLostError(RuntimeError):
    """A session detached for a reason that ends the whole device run."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(humanize_reason(reason))


def humanize_reason(reason: str) -> str:
    """``"device-lost"`` -> ``"Device lost"``."""
    if not reason:
        return reason
    return reason[0].upper() + reason[1:].replace("-", " ")


async def best_effort(description: str, aw: Awaitable[object]) -> None:
    """Await a teardown step; log and swallow whatever it raises."""
    try:
        await aw
    except Exception:
        logger.debug("%s failed", description, exc_info=True)
