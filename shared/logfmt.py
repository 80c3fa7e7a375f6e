"""Human-friendly logging helpers and templates for Discord posts."""

from __future__ import annotations

from typing import Optional, Sequence

import discord

__all__ = [
    "LOG_EMOJI",
    "fmt_duration",
    "fmt_count",
    "human_reason",
    "LogTemplates",
]

LOG_EMOJI = {
    "success": "✅",
    "info": "📋",
    "status": "📊",
    "ticket": "🎫",
    "closure": "🔒",
    "warning": "⚠️",
    "error": "❌",
}


def _format_unit(value: float, unit: str) -> str:
    if abs(value - round(value)) < 0.05:
        return f"{int(round(value))}{unit}"
    return f"{value:.1f}{unit}"


def fmt_duration(seconds: float | int) -> str:
    """Format a duration in seconds as ``45s``, ``12m`` or ``3.5h``."""

    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return "0s"
    if value < 0:
        value = 0.0
    if value < 60:
        return _format_unit(value, "s")
    minutes = value / 60.0
    if minutes < 60:
        return _format_unit(minutes, "m")
    hours = minutes / 60.0
    return _format_unit(hours, "h")


def fmt_count(value: Optional[int]) -> str:
    if value is None:
        return "-"
    try:
        return f"{int(value):,}"
    except (TypeError, ValueError):
        return "-"


_HTTP_ERROR_CODES = {
    10003: "Unknown Channel",
    50001: "Missing Access",
    50013: "Missing Permissions",
    50035: "Invalid Form Body",
}


def human_reason(exc_or_msg: object) -> str:
    """Normalize Discord HTTP errors to human-friendly text."""

    if exc_or_msg is None:
        return "-"
    if isinstance(exc_or_msg, str):
        text = " ".join(exc_or_msg.split())
        return text or "-"
    if isinstance(exc_or_msg, discord.HTTPException):
        status = getattr(exc_or_msg, "status", None)
        code = getattr(exc_or_msg, "code", None)
        base = _HTTP_ERROR_CODES.get(code, exc_or_msg.__class__.__name__)
        suffix = ""
        if status or code:
            suffix = f" ({status or '?'}" + (f"/{code}" if code else "") + ")"
        detail = " ".join(str(getattr(exc_or_msg, "text", "")).split())
        if detail:
            return f"{base}{suffix}: {detail}"
        return f"{base}{suffix}".strip()
    if isinstance(exc_or_msg, Exception):
        text = " ".join(str(exc_or_msg).split())
        label = exc_or_msg.__class__.__name__
        return f"{label}: {text}" if text else label
    return "-"


class LogTemplates:
    """Factory helpers for humanized log-channel posts."""

    @staticmethod
    def status(
        *,
        uptime_s: float,
        active: int,
        pending_closures: int,
        created: int,
        completed: int,
        closed: int,
        errors: int,
    ) -> str:
        head = (
            f"{LOG_EMOJI['status']} **Ticket intake** — uptime={fmt_duration(uptime_s)}"
            f" • active={fmt_count(active)} • pending_closures={fmt_count(pending_closures)}"
        )
        counts = (
            f"• created={fmt_count(created)} • completed={fmt_count(completed)}"
            f" • closed={fmt_count(closed)} • errors={fmt_count(errors)}"
        )
        return f"{head}\n{counts}"

    @staticmethod
    def ticket_rows(rows: Sequence[tuple[int, str, str, float, bool, bool]]) -> str:
        """Render ``(channel_id, tag, state, age_s, has_address, has_image)`` rows."""

        if not rows:
            return f"{LOG_EMOJI['info']} No active tickets."
        lines = [f"{LOG_EMOJI['ticket']} **Active tickets** ({len(rows)})"]
        for channel_id, tag, state, age_s, has_address, has_image in rows:
            address = "✅" if has_address else "—"
            image = "✅" if has_image else "—"
            lines.append(
                f"• <#{channel_id}> {tag} • state={state} • age={fmt_duration(age_s)}"
                f" • address={address} • image={image}"
            )
        return "\n".join(lines)

    @staticmethod
    def startup(*, category_id: int, close_delay_s: float, first_wait_s: float, debug: bool) -> str:
        return (
            f"{LOG_EMOJI['success']} **Ticket intake** online — category={category_id}"
            f" • close_after={fmt_duration(close_delay_s)}"
            f" • first_message_wait={fmt_duration(first_wait_s)}"
            f" • debug={'on' if debug else 'off'}"
        )
