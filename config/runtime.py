from __future__ import annotations

# config/runtime.py
import os


def get_port(default: int = 10000) -> int:
    """
    Returns the port for the aiohttp status server.
    Render provides $PORT; locally we fall back to 10000.
    """
    try:
        return int(os.getenv("PORT", str(default)))
    except ValueError:
        return default


def get_env_name(default: str = "dev") -> str:
    return os.getenv("ENV_NAME", default)


def get_bot_name(default: str = "Ticket-Intake") -> str:
    return os.getenv("BOT_NAME", default)


def get_bot_version(default: str = "dev") -> str:
    return os.getenv("BOT_VERSION", default)
