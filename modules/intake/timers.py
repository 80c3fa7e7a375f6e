"""Clock and one-shot timer abstraction used by the intake lifecycle."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Protocol

__all__ = ["LoopTimers", "TimerHandle", "Timers", "utc_now"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    """Source of wall-clock time and delayed callbacks."""

    def now(self) -> datetime: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopTimers:
    """``Timers`` backed by the running asyncio event loop."""

    def now(self) -> datetime:
        return utc_now()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, float(delay)), callback)
