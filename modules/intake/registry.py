"""In-memory ticket registry with per-channel serialized mutation."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

__all__ = [
    "Ticket",
    "TicketExists",
    "TicketNotFound",
    "TicketRegistry",
    "TicketState",
]

log = logging.getLogger("intake.registry")

T = TypeVar("T")


class TicketState(str, Enum):
    """Lifecycle states of an intake ticket."""

    AWAITING_FIRST_MESSAGE = "awaiting_first_message"
    AWAITING_EVIDENCE = "awaiting_evidence"
    COMPLETED = "completed"
    CLOSURE_SCHEDULED = "closure_scheduled"
    CLOSED = "closed"


class TicketExists(Exception):
    """Raised when a live ticket is already registered for a channel."""

    def __init__(self, channel_id: int) -> None:
        super().__init__(f"ticket already exists for channel {channel_id}")
        self.channel_id = channel_id


class TicketNotFound(LookupError):
    def __init__(self, channel_id: int) -> None:
        super().__init__(f"no ticket for channel {channel_id}")
        self.channel_id = channel_id


@dataclass(slots=True)
class Ticket:
    channel_id: int
    requester_tag: str
    created_at: datetime
    state: TicketState = TicketState.AWAITING_EVIDENCE
    has_address: bool = False
    has_image: bool = False
    addresses: tuple[str, ...] = ()
    completed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    greeting_message_id: Optional[int] = None
    notice_message_id: Optional[int] = None

    @property
    def evidence_complete(self) -> bool:
        return self.has_address and self.has_image

    def merge_evidence(
        self, *, address: bool = False, image: bool = False, addresses: tuple[str, ...] = ()
    ) -> tuple[bool, bool]:
        """Set newly-found evidence flags and return which ones flipped to true.

        Flags are monotone: a message without evidence never clears them.
        """

        new_address = address and not self.has_address
        new_image = image and not self.has_image
        if address:
            self.has_address = True
        if image:
            self.has_image = True
        if addresses:
            known = dict.fromkeys(self.addresses)
            known.update(dict.fromkeys(addresses))
            self.addresses = tuple(known)
        return new_address, new_image


Mutator = Callable[[Ticket], Union[T, Awaitable[T]]]


class TicketRegistry:
    """Mapping of channel id to :class:`Ticket`.

    All writes for one channel are serialized through that channel's
    :class:`asyncio.Lock`; channels never share a lock, so a mutation that
    suspends (for example while sending a message) only delays later work on
    the same channel.
    """

    def __init__(self) -> None:
        self._tickets: dict[int, Ticket] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._tickets)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._tickets

    @contextlib.asynccontextmanager
    async def _hold(self, channel_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = self._locks[channel_id] = asyncio.Lock()
        self._holders[channel_id] = self._holders.get(channel_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[channel_id] - 1
            if remaining:
                self._holders[channel_id] = remaining
            else:
                self._holders.pop(channel_id, None)
                if channel_id not in self._tickets:
                    self._locks.pop(channel_id, None)

    async def create(self, channel_id: int, ticket: Ticket) -> Ticket:
        async with self._hold(channel_id):
            return self.insert(channel_id, ticket)

    def insert(self, channel_id: int, ticket: Ticket) -> Ticket:
        """Register ``ticket`` without awaiting.

        The record is visible to the next handler the loop runs, so a message
        arriving right after the first one is never mistaken for an untracked
        channel. Raises :class:`TicketExists` if a live record is present.
        """

        if channel_id in self._tickets:
            raise TicketExists(channel_id)
        self._tickets[channel_id] = ticket
        log.debug("ticket registered", extra={"channel_id": channel_id})
        return ticket

    def get(self, channel_id: int) -> Optional[Ticket]:
        return self._tickets.get(channel_id)

    async def update(self, channel_id: int, mutator: Mutator[T]) -> T:
        """Apply ``mutator`` to the live ticket while holding its channel lock.

        ``mutator`` may be a plain callable or a coroutine function. Raises
        :class:`TicketNotFound` if the ticket is absent once the lock is held.
        """

        async with self._hold(channel_id):
            ticket = self._tickets.get(channel_id)
            if ticket is None:
                raise TicketNotFound(channel_id)
            result: Any = mutator(ticket)
            if inspect.isawaitable(result):
                result = await result
            return result

    async def remove(self, channel_id: int) -> Optional[Ticket]:
        async with self._hold(channel_id):
            ticket = self._tickets.pop(channel_id, None)
        if ticket is not None:
            log.debug("ticket removed", extra={"channel_id": channel_id})
        return ticket

    def discard(self, channel_id: int) -> Optional[Ticket]:
        """Drop a ticket without taking its lock.

        Used from inside a held mutation (the closure path) where awaiting the
        same lock again would deadlock.
        """

        ticket = self._tickets.pop(channel_id, None)
        if channel_id not in self._holders:
            self._locks.pop(channel_id, None)
        return ticket

    def snapshot(self) -> list[Ticket]:
        return [replace(ticket) for ticket in self._tickets.values()]
