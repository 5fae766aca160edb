"""
Structured logging for the cashback service.

structlog with ISO timestamps and log level. Modules call get_logger(__name__)
and log events as short snake_case names with keyword context, e.g.
logger.warning("balance_fetch_failed", chain="ETH", error=str(e)).
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from cashback.config import settings


def configure_logging(level: str = None, fmt: str = None) -> None:
    """Configure structlog once; safe to call again to change level or format."""
    level_name = (level or settings.log_level).upper()
    level_value = getattr(logging, level_name, logging.INFO)
    fmt = (fmt or settings.log_format).strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the module name."""
    return structlog.get_logger(name) if name else structlog.get_logger()


if not structlog.is_configured():
    configure_logging()
