"""Runtime configuration helpers for the ticket intake bot."""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, Optional

from config import runtime as _runtime

__all__ = [
    "reload_config",
    "get_config_snapshot",
    "get_env_name",
    "get_bot_name",
    "get_bot_version",
    "get_port",
    "get_discord_token",
    "get_ticket_category_id",
    "get_first_message_timeout_sec",
    "get_close_delay_sec",
    "get_close_command",
    "get_status_interval_sec",
    "get_debug_mode",
    "get_log_level",
    "get_log_channel_id",
    "redact_token",
    "redact_value",
]

log = logging.getLogger("intake.config")

# ===== Config Schema (authoritative) =====
_REQUIRED_ENV = (
    "DISCORD_TOKEN",
    "TICKET_CAT",
)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or str(value).strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


for _name in _REQUIRED_ENV:
    _require_env(_name)

_MISSING_VALUE = "—"
_INT_RE = re.compile(r"\d+")

_CONFIG: Dict[str, object] = {}

_SECRET_KEYS = {"DISCORD_TOKEN"}


def redact_token(token: Optional[str]) -> str:
    if not token:
        return _MISSING_VALUE
    text = str(token).strip()
    if len(text) <= 8:
        return "***"
    return f"{text[:4]}…{text[-4:]}"


def redact_value(key: str, value: object) -> str:
    """Best-effort redaction for snapshot logging."""

    key_upper = str(key).upper()
    if value in (None, "", [], (), {}):
        return _MISSING_VALUE
    if key_upper in _SECRET_KEYS or "TOKEN" in key_upper or key_upper.endswith("_SECRET"):
        return redact_token(str(value))
    return str(value)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _first_int(raw: str | None) -> Optional[int]:
    if not raw:
        return None
    for match in _INT_RE.finditer(raw):
        try:
            return int(match.group(0))
        except (TypeError, ValueError):
            continue
    return None


def _float_env(
    key: str,
    default: float,
    *,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """Parse an optional float environment variable defensively."""

    raw = os.getenv(key)
    if raw is None:
        return default

    text = str(raw).strip()
    if not text:
        return default

    try:
        value = float(text)
    except ValueError:
        log.warning("config: %s='%s' invalid; using default %s", key, text, default)
        return default

    if min_value is not None and value < min_value:
        log.warning("config: %s=%s < min %s; clamping", key, value, min_value)
        value = min_value

    if max_value is not None and value > max_value:
        log.warning("config: %s=%s > max %s; clamping", key, value, max_value)
        value = max_value

    return value


def _log_snapshot(snapshot: Dict[str, object]) -> None:
    redacted = {key: redact_value(key, value) for key, value in snapshot.items()}
    log.info("config loaded", extra={"config": str(redacted)})


def _load_config() -> Dict[str, object]:
    category_raw = (os.getenv("TICKET_CAT") or "").strip()
    category_id = int(category_raw) if category_raw.isdigit() else None
    if category_id is None:
        log.error("config: TICKET_CAT='%s' is not a numeric category id", category_raw)

    close_hours = _float_env("CLOSE_HOURS", 1.0, min_value=0.0, max_value=24.0 * 30)

    config: Dict[str, object] = {
        "PORT": _runtime.get_port(),
        "BOT_NAME": _runtime.get_bot_name(),
        "BOT_VERSION": _runtime.get_bot_version(),
        "ENV_NAME": _runtime.get_env_name(),
        "DISCORD_TOKEN": os.getenv("DISCORD_TOKEN", ""),
        "TICKET_CAT": category_id,
        "FIRST_MESSAGE_TIMEOUT_SEC": _float_env(
            "FIRST_MESSAGE_TIMEOUT_SEC", 10.0, min_value=0.5, max_value=600.0
        ),
        "CLOSE_HOURS": close_hours,
        "CLOSE_COMMAND": (os.getenv("CLOSE_COMMAND") or "$close").strip() or "$close",
        "STATUS_INTERVAL_SEC": _float_env("STATUS_INTERVAL_SEC", 1800.0, min_value=5.0),
        "DEBUG_MODE": _env_bool("DEBUG_MODE", False),
        "LOG_LEVEL": (os.getenv("LOG_LEVEL") or "INFO").strip().upper() or "INFO",
        "LOG_CHANNEL_ID": _first_int(os.getenv("LOG_CHANNEL_ID")),
    }
    return config


def reload_config() -> Dict[str, object]:
    """Reload configuration from environment and return a snapshot."""

    for _name in _REQUIRED_ENV:
        _require_env(_name)

    snapshot = _load_config()

    global _CONFIG
    _CONFIG = snapshot
    _log_snapshot(snapshot)
    return dict(_CONFIG)


reload_config()


def get_config_snapshot() -> Dict[str, object]:
    """Return a shallow copy of the cached config values."""

    return dict(_CONFIG)


def get_env_name(default: str = "dev") -> str:
    value = _CONFIG.get("ENV_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_bot_name(default: str = "Ticket-Intake") -> str:
    value = _CONFIG.get("BOT_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_bot_version(default: str = "dev") -> str:
    value = _CONFIG.get("BOT_VERSION")
    return str(value) if isinstance(value, str) and value else default


def get_port() -> int:
    value = _CONFIG.get("PORT")
    return value if isinstance(value, int) else _runtime.get_port()


def get_discord_token() -> str:
    return str(_CONFIG.get("DISCORD_TOKEN", ""))


def get_ticket_category_id() -> Optional[int]:
    value = _CONFIG.get("TICKET_CAT")
    if isinstance(value, int) and value > 0:
        return value
    return None


def get_first_message_timeout_sec(default: float = 10.0) -> float:
    value = _CONFIG.get("FIRST_MESSAGE_TIMEOUT_SEC")
    return float(value) if isinstance(value, (int, float)) else default


def get_close_delay_sec(default_hours: float = 1.0) -> float:
    value = _CONFIG.get("CLOSE_HOURS")
    hours = float(value) if isinstance(value, (int, float)) else default_hours
    return hours * 3600.0


def get_close_command(default: str = "$close") -> str:
    value = _CONFIG.get("CLOSE_COMMAND")
    return str(value) if isinstance(value, str) and value else default


def get_status_interval_sec(default: float = 1800.0) -> float:
    value = _CONFIG.get("STATUS_INTERVAL_SEC")
    return float(value) if isinstance(value, (int, float)) else default


def get_debug_mode() -> bool:
    return bool(_CONFIG.get("DEBUG_MODE", False))


def get_log_level(default: str = "INFO") -> str:
    value = _CONFIG.get("LOG_LEVEL")
    return str(value) if isinstance(value, str) and value else default


def get_log_channel_id() -> Optional[int]:
    value = _CONFIG.get("LOG_CHANNEL_ID")
    if isinstance(value, int) and value > 0:
        return value
    return None
