"""
Structured logging for the API and the digest worker.

structlog renders human-readable console lines in dev and JSON lines in
prod (LOG_MODE). Event names use dot.notation: domain.verb_past_tense,
e.g. "events.ingested", "digest.created", "digest.delivery_failed".

Usage:
    from app.core.logging import configure_logging, get_logger

    configure_logging()          # once, at process start
    log = get_logger(__name__)
    log.info("digest.created", digest_id=12, event_count=40)
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from app.core.config import settings


_configured: bool = False


def _get_log_level(level_str: str) -> int:
    level = logging.getLevelName(level_str.upper())
    return level if isinstance(level, int) else logging.INFO


def _get_processors(mode: str) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if mode == "prod":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(level: str | None = None, mode: str | None = None) -> None:
    """Configure structlog and the stdlib root logger (idempotent)."""
    global _configured
    if _configured:
        return

    log_level = _get_log_level(level or settings.LOG_LEVEL)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    structlog.configure(
        processors=_get_processors((mode or settings.LOG_MODE).lower()),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)
