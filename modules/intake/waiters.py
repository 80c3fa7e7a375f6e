"""Cancellable one-shot wait for the first message in a new ticket channel."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from .events import MessageCreated
from .timers import LoopTimers, Timers

__all__ = ["FirstMessageWaiter"]

log = logging.getLogger("intake.waiters")


class FirstMessageWaiter:
    """Track at most one pending first-message wait per channel."""

    def __init__(self, timers: Optional[Timers] = None) -> None:
        self._timers = timers or LoopTimers()
        self._pending: dict[int, asyncio.Future[Optional[MessageCreated]]] = {}
        self._started: dict[int, datetime] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_waiting(self, channel_id: int) -> bool:
        return channel_id in self._pending

    def pending(self) -> dict[int, datetime]:
        """Channels still waiting for a first message, with their start times."""

        return {cid: self._started[cid] for cid in self._pending if cid in self._started}

    async def wait(self, channel_id: int, timeout: float) -> Optional[MessageCreated]:
        """Return the first message offered for ``channel_id`` or ``None``.

        ``None`` means the wait timed out or was canceled. Raises
        :class:`RuntimeError` if a wait is already pending for the channel.
        """

        if channel_id in self._pending:
            raise RuntimeError(f"first-message wait already pending for {channel_id}")
        future: asyncio.Future[Optional[MessageCreated]] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending[channel_id] = future
        self._started[channel_id] = self._timers.now()
        handle = self._timers.call_later(timeout, lambda: self._resolve(channel_id, future, None))
        try:
            return await future
        finally:
            handle.cancel()
            if self._pending.get(channel_id) is future:
                del self._pending[channel_id]
                self._started.pop(channel_id, None)

    def _resolve(
        self,
        channel_id: int,
        future: asyncio.Future[Optional[MessageCreated]],
        message: Optional[MessageCreated],
    ) -> bool:
        # A stale callback for an already-settled wait must not touch a newer one.
        if self._pending.get(channel_id) is not future:
            return False
        del self._pending[channel_id]
        self._started.pop(channel_id, None)
        if future.done():
            return False
        future.set_result(message)
        return True

    def offer(self, message: MessageCreated) -> bool:
        """Hand ``message`` to a pending wait; return ``True`` if it was consumed."""

        future = self._pending.get(message.channel_id)
        if future is None:
            return False
        return self._resolve(message.channel_id, future, message)

    def cancel(self, channel_id: int) -> bool:
        future = self._pending.get(channel_id)
        if future is None:
            return False
        return self._resolve(channel_id, future, None)

    def cancel_all(self) -> None:
        for channel_id in list(self._pending):
            self.cancel(channel_id)
