"""Structured logging utilities for JSON-formatted runtime output."""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import time
import uuid
from typing import Any, Iterator, Mapping, Optional

# Context variables carrying the current trace and ticket channel.
_trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")
_channel_id_var: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar(
    "channel_id", default=None
)


def set_trace_id(value: str | None = None) -> str:
    """Assign a trace identifier for the current context.

    When ``value`` is ``None`` a new UUIDv4 hex string is generated. The
    identifier is returned so callers can reuse it in responses.
    """

    trace = value or uuid.uuid4().hex[:16]
    _trace_id_var.set(trace)
    return trace


def get_trace_id() -> str:
    return _trace_id_var.get()


def get_channel_id() -> Optional[int]:
    return _channel_id_var.get()


@contextlib.contextmanager
def channel_context(channel_id: int, *, trace: str | None = None) -> Iterator[str]:
    """Tag every log record emitted inside the block with ``channel_id``.

    A fresh trace id is assigned for the block and both values are restored on
    exit, so concurrent handlers (each in its own task) never mix context.
    """

    channel_token = _channel_id_var.set(channel_id)
    trace_value = trace or uuid.uuid4().hex[:16]
    trace_token = _trace_id_var.set(trace_value)
    try:
        yield trace_value
    finally:
        _trace_id_var.reset(trace_token)
        _channel_id_var.reset(channel_token)


class JsonFormatter(logging.Formatter):
    """Formatter that renders log records as JSON objects."""

    def __init__(self, static: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._static = dict(static or {})

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - docstring inherited
        payload: dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "trace": getattr(record, "trace", "") or get_trace_id(),
        }
        channel_id = get_channel_id()
        if channel_id is not None:
            payload["channel_id"] = channel_id

        payload.update(self._static)

        for key, value in record.__dict__.items():
            if key.startswith("_") or key in payload or key in _RECORD_ATTRS:
                continue
            if isinstance(value, (str, int, float, bool)) or value is None:
                payload[key] = value

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}
