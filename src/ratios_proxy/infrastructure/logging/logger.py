# src/ratios_proxy/infrastructure/logging/logger.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""JSON logging for the proxy.

Every line is one JSON object with ``ts``, ``level``, ``logger`` and
``message``, plus the ``X-Request-ID`` of the request being served and any
``extra={"extra": {...}}`` fields the call site attaches (cache key, symbol,
attempt number and so on).

    configure_root_logging()
    log = get_json_logger(__name__)
    log.info("cache.miss", extra={"extra": {"key": "ratios-proxy:v3:OVERVIEW:AAPL"}})
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "configure_root_logging",
    "get_json_logger",
    "set_request_context",
    "reset_request_context",
    "get_request_id",
]

# httpx logs every outbound URL at INFO, and provider URLs carry the apikey.
_QUIET_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("ratios_request_id", default=None)


def set_request_context(*, request_id: str | None = None) -> Token[str | None]:
    """Bind ``request_id`` to the current context and return the reset token."""
    return _REQUEST_ID_CTX.set(request_id)


def reset_request_context(token: Token[str | None]) -> None:
    """Restore the request id that was bound before ``set_request_context``."""
    _REQUEST_ID_CTX.reset(token)


def get_request_id() -> str | None:
    """Return the request id bound to the current context, if any."""
    return _REQUEST_ID_CTX.get()


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or _REQUEST_ID_CTX.get()
        if rid:
            payload["request_id"] = rid

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_root_logging(level: str | int | None = None) -> None:
    """Install the JSON handler on the root logger.

    Safe to call more than once; the level is always refreshed but only one
    handler is ever installed. ``level`` falls back to ``LOG_LEVEL`` and then
    ``INFO``. HTTP client loggers are held at ``WARNING``.
    """
    root = logging.getLogger()
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if any(isinstance(h.formatter, _JsonFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return the named logger; output goes through the root JSON handler."""
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
