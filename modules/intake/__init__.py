"""Ticket intake automation: greet requesters, collect evidence, auto-close."""

from .controller import IntakeController, requester_tag
from .events import Attachment, ChannelCreated, MessageCreated
from .registry import Ticket, TicketExists, TicketNotFound, TicketRegistry, TicketState
from .reporter import IntakeStats, StatusReporter, StatusSnapshot, TicketInfo
from .settings import IntakeConfigError, IntakeSettings

__all__ = [
    "Attachment",
    "ChannelCreated",
    "IntakeConfigError",
    "IntakeController",
    "IntakeSettings",
    "IntakeStats",
    "MessageCreated",
    "StatusReporter",
    "StatusSnapshot",
    "Ticket",
    "TicketExists",
    "TicketInfo",
    "TicketNotFound",
    "TicketRegistry",
    "TicketState",
    "requester_tag",
]
