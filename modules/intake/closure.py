"""One-shot delayed closure actions keyed by channel id."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .timers import LoopTimers, TimerHandle, Timers

__all__ = ["ClosureScheduler"]

log = logging.getLogger("intake.closure")

ClosureAction = Callable[[], Awaitable[None]]


@dataclass(slots=True)
class _Entry:
    handle: Optional[TimerHandle]
    action: ClosureAction
    due_at: datetime


class ClosureScheduler:
    """Run at most one delayed action per channel.

    The entry is popped before its action starts, so ``cancel`` after the
    timer fired finds nothing and the in-flight action runs to completion.
    """

    def __init__(self, timers: Optional[Timers] = None) -> None:
        self._timers = timers or LoopTimers()
        self._entries: dict[int, _Entry] = {}
        self._inflight: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def is_scheduled(self, channel_id: int) -> bool:
        return channel_id in self._entries

    def due_at(self, channel_id: int) -> Optional[datetime]:
        entry = self._entries.get(channel_id)
        return entry.due_at if entry is not None else None

    def schedule(self, channel_id: int, delay: float, action: ClosureAction) -> bool:
        """Arm ``action`` to run after ``delay`` seconds.

        Returns ``False`` without touching the existing timer when one is
        already outstanding for the channel.
        """

        if channel_id in self._entries:
            log.debug("closure already scheduled", extra={"channel_id": channel_id})
            return False
        delay = max(0.0, float(delay))
        entry = _Entry(
            handle=None,
            action=action,
            due_at=self._timers.now() + timedelta(seconds=delay),
        )
        self._entries[channel_id] = entry
        entry.handle = self._timers.call_later(delay, lambda: self._fire(channel_id, entry))
        return True

    def cancel(self, channel_id: int) -> bool:
        entry = self._entries.pop(channel_id, None)
        if entry is None:
            return False
        if entry.handle is not None:
            entry.handle.cancel()
        log.debug("closure canceled", extra={"channel_id": channel_id})
        return True

    def _fire(self, channel_id: int, entry: _Entry) -> None:
        if self._entries.get(channel_id) is not entry:
            return
        del self._entries[channel_id]
        task = asyncio.get_running_loop().create_task(
            self._run(channel_id, entry.action), name=f"intake_close_{channel_id}"
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run(self, channel_id: int, action: ClosureAction) -> None:
        try:
            await action()
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("closure action failed", extra={"channel_id": channel_id})

    async def shutdown(self) -> None:
        for channel_id in list(self._entries):
            self.cancel(channel_id)
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
