"""Periodic, read-only status snapshots of the intake lifecycle."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from .registry import TicketState

if TYPE_CHECKING:  # pragma: no cover
    from modules.common.runtime import Scheduler

    from .controller import IntakeController

__all__ = ["IntakeStats", "StatusReporter", "StatusSnapshot", "TicketInfo", "ticket_infos"]

log = logging.getLogger("intake.status")


@dataclass
class IntakeStats:
    """Counters owned by the controller."""

    channels_seen: int = 0
    tickets_created: int = 0
    tickets_completed: int = 0
    tickets_closed: int = 0
    closure_fallbacks: int = 0
    first_message_timeouts: int = 0
    errors: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_mono: float = field(default_factory=time.monotonic)

    def uptime_seconds(self) -> float:
        return max(0.0, time.monotonic() - self.started_mono)


@dataclass(frozen=True)
class TicketInfo:
    channel_id: int
    requester_tag: str
    state: str
    age_seconds: float
    has_address: bool
    has_image: bool
    closure_due_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StatusSnapshot:
    channels_seen: int
    tickets_created: int
    tickets_completed: int
    tickets_closed: int
    closure_fallbacks: int
    first_message_timeouts: int
    errors: int
    uptime_seconds: float
    started_at: str
    active_tickets: int
    pending_closures: int
    awaiting_first_message: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def ticket_infos(controller: "IntakeController") -> list[TicketInfo]:
    """Per-ticket introspection rows, oldest first.

    Channels still waiting for their first message are listed as
    ``awaiting_first_message`` rows; they are not registered tickets yet.
    """

    now = controller.now()
    infos: list[TicketInfo] = []
    for channel_id, started in controller.waiter.pending().items():
        infos.append(
            TicketInfo(
                channel_id=channel_id,
                requester_tag="-",
                state=TicketState.AWAITING_FIRST_MESSAGE.value,
                age_seconds=round(max(0.0, (now - started).total_seconds()), 3),
                has_address=False,
                has_image=False,
            )
        )
    for ticket in controller.registry.snapshot():
        due = controller.closures.due_at(ticket.channel_id)
        infos.append(
            TicketInfo(
                channel_id=ticket.channel_id,
                requester_tag=ticket.requester_tag,
                state=ticket.state.value,
                age_seconds=round(max(0.0, (now - ticket.created_at).total_seconds()), 3),
                has_address=ticket.has_address,
                has_image=ticket.has_image,
                closure_due_at=due.isoformat() if due is not None else None,
            )
        )
    infos.sort(key=lambda info: info.age_seconds, reverse=True)
    return infos


StatusSink = Callable[[StatusSnapshot], Awaitable[None]]


class StatusReporter:
    """Build and emit status snapshots without mutating controller state."""

    def __init__(
        self,
        controller: "IntakeController",
        *,
        interval_sec: float = 1800.0,
        sink: Optional[StatusSink] = None,
    ) -> None:
        self.controller = controller
        self.interval_sec = max(1.0, float(interval_sec))
        self._sink = sink
        self._task: Optional[asyncio.Task] = None

    def snapshot(self) -> StatusSnapshot:
        stats = self.controller.stats
        return StatusSnapshot(
            channels_seen=stats.channels_seen,
            tickets_created=stats.tickets_created,
            tickets_completed=stats.tickets_completed,
            tickets_closed=stats.tickets_closed,
            closure_fallbacks=stats.closure_fallbacks,
            first_message_timeouts=stats.first_message_timeouts,
            errors=stats.errors,
            uptime_seconds=round(stats.uptime_seconds(), 3),
            started_at=stats.started_at.isoformat(),
            active_tickets=len(self.controller.registry),
            pending_closures=len(self.controller.closures),
            awaiting_first_message=len(self.controller.waiter),
        )

    def tickets(self) -> list[TicketInfo]:
        return ticket_infos(self.controller)

    async def report(self) -> Optional[StatusSnapshot]:
        """Log one status report; failures are logged and never raised."""

        try:
            snapshot = self.snapshot()
            log.info("📊 status report", extra=snapshot.to_dict())
            if log.isEnabledFor(logging.DEBUG):
                for info in self.tickets():
                    log.debug("active ticket", extra=info.to_dict())
            if self._sink is not None:
                await self._sink(snapshot)
            return snapshot
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("status report failed")
            return None

    def start(self, scheduler: "Scheduler") -> asyncio.Task:
        if self._task is not None and not self._task.done():
            return self._task
        job = scheduler.every(seconds=self.interval_sec, tag="intake", name="intake_status")
        self._task = job.do(self.report)
        log.info("status reporter started", extra={"interval_sec": self.interval_sec})
        return self._task
