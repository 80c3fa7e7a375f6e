"""Runtime logging configuration utilities."""

from __future__ import annotations

import logging
from typing import Mapping

from .structured import JsonFormatter

__all__ = ["setup_logging"]

_INTAKE_LOGGER = "intake"


def _ensure_stream_handler(logger: logging.Logger, formatter: logging.Formatter) -> None:
    """Ensure ``logger`` has a stream handler using ``formatter``."""

    stream_handler_found = False
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(formatter)
            stream_handler_found = True
    if not stream_handler_found:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    *,
    level: int | str = logging.INFO,
    debug: bool = False,
    static_fields: Mapping[str, str] | None = None,
    access_logger_name: str = "aiohttp.access",
    access_static_fields: Mapping[str, str] | None = None,
) -> logging.Logger:
    """Configure JSON logging for the runtime.

    Parameters
    ----------
    level:
        Root log level (name or number).
    debug:
        Verbose mode; lowers the ``intake`` logger tree to ``DEBUG`` so ticket
        decisions (ignored channels, missing evidence, cache misses) are
        logged without making discord.py itself noisy.
    static_fields:
        Base static fields included with every structured log event.
    access_logger_name:
        Name of the access logger that should emit HTTP request entries.
    access_static_fields:
        Additional static fields for the access logger; merged with
        ``static_fields``.

    Returns
    -------
    logging.Logger
        The configured access logger instance.
    """

    base_static = dict(static_fields or {})

    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(level))
    _ensure_stream_handler(root_logger, JsonFormatter(static=base_static))

    logging.getLogger(_INTAKE_LOGGER).setLevel(logging.DEBUG if debug else logging.NOTSET)

    access_static = dict(base_static)
    access_static.update(access_static_fields or {})
    access_static.setdefault("logger", access_logger_name)

    access_logger = logging.getLogger(access_logger_name)
    access_logger.propagate = False
    access_logger.handlers.clear()

    access_handler = logging.StreamHandler()
    access_handler.setFormatter(JsonFormatter(static=access_static))
    access_logger.addHandler(access_handler)
    access_logger.setLevel(logging.INFO)

    return access_logger
