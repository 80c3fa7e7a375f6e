"""Shared logging helpers for ticket lifecycle events."""

from __future__ import annotations

import logging
from typing import Any

__all__ = ["fmt_kvs", "log_ticket_event"]


_RESERVED_RECORD_KEYS = frozenset(
    {
        "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName",
        "levelname", "levelno", "lineno", "message", "module", "msecs", "msg", "name",
        "pathname", "process", "processName", "relativeCreated", "stack_info",
        "taskName", "thread", "threadName",
    }
)

_EVENT_EMOJI = {
    "ticket_detected": "🎫",
    "first_message_timeout": "⏰",
    "greeting_sent": "📤",
    "evidence_found": "📋",
    "notice_sent": "✅",
    "closure_scheduled": "⏰",
    "closure_sent": "🔒",
    "closure_fallback": "🔄",
    "closure_channel_missing": "⚠️",
    "ticket_discarded": "🧹",
}


def fmt_kvs(kvs: dict[str, Any]) -> str:
    parts: list[str] = []
    for key, value in kvs.items():
        if value in (None, "", "-", {}, [], ()):
            continue
        parts.append(f"{key}={value}")
    return " • ".join(parts)


def log_ticket_event(
    logger: Any,
    event: str,
    *,
    level: int = logging.INFO,
    emoji: str | None = None,
    **fields: Any,
) -> str:
    """Log a human-readable ticket lifecycle line.

    Parameters
    ----------
    logger:
        Logger-like object exposing ``log``.
    event:
        Lifecycle event name (e.g. ``"greeting_sent"``).
    **fields:
        Key/value pairs rendered into the line and attached as structured
        ``extra`` fields. Blank values (``None``, empty strings, ``-``, empty
        containers) are omitted from the rendered text.
    """

    prefix = emoji or _EVENT_EMOJI.get(event, "📘")
    kv_text = fmt_kvs(fields)
    line = f"{prefix} Ticket — event={event}" + (f" • {kv_text}" if kv_text else "")
    extra = {"event": event}
    for key, value in fields.items():
        if key in _RESERVED_RECORD_KEYS:
            continue
        if isinstance(value, (str, int, float, bool)) or value is None:
            extra.setdefault(key, value)
    try:
        logger.log(level, line, extra=extra)
    except Exception:
        # Logging should never raise upstream.
        pass

    return line
