"""Ticket intake lifecycle: greet, collect evidence, schedule closure."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from shared.logfmt import human_reason
from shared.logging import channel_context
from shared.logs import log_ticket_event

from .closure import ClosureScheduler
from .evidence import scan_message
from .events import ChannelCreated, MessageCreated
from .messages import render_greeting
from .platform import DeliveryError, IntakePlatform
from .registry import Ticket, TicketExists, TicketNotFound, TicketRegistry, TicketState
from .reporter import IntakeStats, TicketInfo, ticket_infos
from .settings import IntakeSettings
from .timers import LoopTimers, Timers
from .waiters import FirstMessageWaiter

__all__ = ["IntakeController", "requester_tag"]

log = logging.getLogger("intake.controller")


def requester_tag(message: MessageCreated) -> str:
    """Prefer the first explicit mention; fall back to the message author."""

    if message.mention_ids:
        return f"<@{message.mention_ids[0]}>"
    return f"<@{message.author_id}>"


class IntakeController:
    """Drive ticket channels through the intake state machine.

    Channel-created and message-created events may be handled concurrently;
    per-channel ordering comes from :class:`TicketRegistry` locks.
    """

    def __init__(
        self,
        platform: IntakePlatform,
        settings: IntakeSettings,
        *,
        timers: Optional[Timers] = None,
        registry: Optional[TicketRegistry] = None,
    ) -> None:
        self.platform = platform
        self.settings = settings
        self.timers = timers or LoopTimers()
        self.registry = registry or TicketRegistry()
        self.waiter = FirstMessageWaiter(self.timers)
        self.closures = ClosureScheduler(self.timers)
        self.stats = IntakeStats()

    def now(self) -> datetime:
        return self.timers.now()

    def _record_error(self, event: str, exc: BaseException, **fields: object) -> None:
        self.stats.errors += 1
        transient = getattr(exc, "transient", None)
        log_ticket_event(
            log,
            event,
            level=logging.WARNING,
            emoji="❌",
            error=human_reason(exc),
            transient=transient,
            **fields,
        )

    # ------------------------------------------------------------------
    # channel created
    # ------------------------------------------------------------------
    async def handle_channel_created(self, event: ChannelCreated) -> Optional[Ticket]:
        if event.parent_id != self.settings.category_id:
            log.debug(
                "channel not in ticket category",
                extra={"channel_id": event.channel_id, "parent_id": event.parent_id},
            )
            return None
        channel_id = event.channel_id
        if channel_id in self.registry or self.waiter.is_waiting(channel_id):
            log.debug("duplicate channel event ignored", extra={"channel_id": channel_id})
            return None

        with channel_context(channel_id):
            self.stats.channels_seen += 1
            log_ticket_event(
                log,
                "ticket_detected",
                channel_id=channel_id,
                channel_name=event.name,
                parent_id=event.parent_id,
            )

            first = await self.waiter.wait(channel_id, self.settings.first_message_timeout)
            if first is None:
                self.stats.first_message_timeouts += 1
                log_ticket_event(
                    log,
                    "first_message_timeout",
                    channel_id=channel_id,
                    timeout_sec=self.settings.first_message_timeout,
                )
                return None
            # The message handler that consumed ``first`` registered the ticket.
            return self.registry.get(channel_id)

    async def _register(self, first: MessageCreated) -> Optional[TicketState]:
        channel_id = first.channel_id
        ticket = Ticket(
            channel_id=channel_id, requester_tag=requester_tag(first), created_at=self.now()
        )
        # No await between consuming the first message and inserting the ticket.
        try:
            self.registry.insert(channel_id, ticket)
        except TicketExists:
            log.debug("ticket registered concurrently", extra={"channel_id": channel_id})
            return None
        self.stats.tickets_created += 1

        try:
            await self.registry.update(channel_id, self._greet)
        except TicketNotFound:
            return None
        return ticket.state

    async def _greet(self, ticket: Ticket) -> None:
        text = render_greeting(ticket.requester_tag, self.settings.greeting_template)
        try:
            ticket.greeting_message_id = await self.platform.send(ticket.channel_id, text)
        except DeliveryError as exc:
            self._record_error("greeting_failed", exc, channel_id=ticket.channel_id)
            return
        log_ticket_event(
            log,
            "greeting_sent",
            channel_id=ticket.channel_id,
            message_id=ticket.greeting_message_id,
            user_tag=ticket.requester_tag,
        )

    # ------------------------------------------------------------------
    # message created
    # ------------------------------------------------------------------
    async def handle_message(self, message: MessageCreated) -> Optional[TicketState]:
        """Process a message; return the ticket state afterwards when tracked."""

        own_id = self.platform.bot_user_id
        if own_id is not None and message.author_id == own_id:
            return None

        if self.waiter.offer(message):
            log.debug(
                "first message received",
                extra={"channel_id": message.channel_id, "message_id": message.message_id},
            )
            with channel_context(message.channel_id):
                return await self._register(message)

        if message.author_is_bot:
            log.debug("automated message ignored", extra={"message_id": message.message_id})
            return None
        if message.channel_id not in self.registry:
            return None

        with channel_context(message.channel_id):
            try:
                return await self.registry.update(
                    message.channel_id, lambda ticket: self._apply_message(ticket, message)
                )
            except TicketNotFound:
                return None

    async def _apply_message(self, ticket: Ticket, message: MessageCreated) -> TicketState:
        if ticket.state is not TicketState.AWAITING_EVIDENCE:
            log.debug(
                "ticket not awaiting evidence",
                extra={"channel_id": ticket.channel_id, "state": ticket.state.value},
            )
            return ticket.state

        if ticket.greeting_message_id is None:
            await self._greet(ticket)

        scan = scan_message(message.content, message.content_types)
        new_address, new_image = ticket.merge_evidence(
            address=scan.has_address, image=scan.has_image, addresses=scan.addresses
        )
        if new_address or new_image:
            log_ticket_event(
                log,
                "evidence_found",
                channel_id=ticket.channel_id,
                message_id=message.message_id,
                addresses=", ".join(scan.addresses),
                images=", ".join(scan.image_types),
                has_address=ticket.has_address,
                has_image=ticket.has_image,
            )
        else:
            log.debug(
                "no new evidence",
                extra={
                    "channel_id": ticket.channel_id,
                    "missing_address": not ticket.has_address,
                    "missing_image": not ticket.has_image,
                },
            )

        if ticket.evidence_complete:
            await self._complete(ticket)
        return ticket.state

    async def _complete(self, ticket: Ticket) -> None:
        try:
            notice_id = await self.platform.send(ticket.channel_id, self.settings.notice_message)
        except DeliveryError as exc:
            # Stay in AWAITING_EVIDENCE so the next message retries the notice.
            self._record_error("notice_failed", exc, channel_id=ticket.channel_id)
            return

        ticket.notice_message_id = notice_id
        ticket.state = TicketState.COMPLETED
        ticket.completed_at = self.now()
        self.stats.tickets_completed += 1
        log_ticket_event(log, "notice_sent", channel_id=ticket.channel_id, message_id=notice_id)

        channel_id = ticket.channel_id
        delay = self.settings.close_delay
        if self.closures.schedule(channel_id, delay, lambda: self.close_ticket(channel_id)):
            ticket.state = TicketState.CLOSURE_SCHEDULED
            due = self.closures.due_at(channel_id)
            log_ticket_event(
                log,
                "closure_scheduled",
                channel_id=channel_id,
                close_in_sec=delay,
                due_at=due.isoformat() if due is not None else None,
            )

    # ------------------------------------------------------------------
    # closure
    # ------------------------------------------------------------------
    async def close_ticket(self, channel_id: int) -> bool:
        """Post the close command and retire the ticket.

        Returns ``True`` when the close command was delivered. The ticket is
        removed from the registry in every case; closure is never retried.
        """

        with channel_context(channel_id):
            try:
                return await self.registry.update(channel_id, self._close)
            except TicketNotFound:
                log.debug("closure for unknown ticket", extra={"channel_id": channel_id})
                return False

    async def _close(self, ticket: Ticket) -> bool:
        channel_id = ticket.channel_id
        delivered = False
        try:
            channel = await self.platform.resolve(channel_id)
        except DeliveryError as exc:
            self._record_error("closure_resolve_failed", exc, channel_id=channel_id)
            channel = None
        else:
            if channel is None:
                self.stats.errors += 1
                log_ticket_event(
                    log, "closure_channel_missing", level=logging.WARNING, channel_id=channel_id
                )

        if channel is not None:
            try:
                await self.platform.send(channel_id, self.settings.close_command)
            except DeliveryError as exc:
                self._record_error("closure_failed", exc, channel_id=channel_id)
                await self._post_fallback(channel_id)
            else:
                delivered = True
                self.stats.tickets_closed += 1
                log_ticket_event(
                    log, "closure_sent", channel_id=channel_id, command=self.settings.close_command
                )

        ticket.state = TicketState.CLOSED
        ticket.closed_at = self.now()
        self.registry.discard(channel_id)
        return delivered

    async def _post_fallback(self, channel_id: int) -> None:
        try:
            await self.platform.send(channel_id, self.settings.fallback_message)
        except DeliveryError as exc:
            self._record_error("closure_fallback_failed", exc, channel_id=channel_id)
            return
        self.stats.closure_fallbacks += 1
        log_ticket_event(log, "closure_fallback", channel_id=channel_id)

    # ------------------------------------------------------------------
    # out-of-band removal and introspection
    # ------------------------------------------------------------------
    async def discard(self, channel_id: int) -> Optional[Ticket]:
        """Forget a channel: cancel its waits and timers and drop the ticket."""

        waiting = self.waiter.cancel(channel_id)
        canceled = self.closures.cancel(channel_id)
        ticket = await self.registry.remove(channel_id)
        if ticket is not None or waiting or canceled:
            log_ticket_event(
                log,
                "ticket_discarded",
                channel_id=channel_id,
                closure_canceled=canceled,
                wait_canceled=waiting,
            )
        return ticket

    def tickets(self) -> list[TicketInfo]:
        return ticket_infos(self)

    async def shutdown(self) -> None:
        self.waiter.cancel_all()
        await self.closures.shutdown()
