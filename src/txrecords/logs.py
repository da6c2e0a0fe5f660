"""
structlog setup shared by every txrecords module.

Log with a snake_case event name and keyword context:
    logger = get_logger(__name__)
    logger.warning("row_failed", row_id=row.row_id, field="from")
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from .config import get_settings


class _NamedPrintLogger(structlog.PrintLogger):
    """PrintLogger that remembers the name it was requested under."""

    def __init__(self, name: str, file: Any = None):
        super().__init__(file)
        self.name = name


def _logger_factory(*args: Any) -> _NamedPrintLogger:
    # sys.stderr is looked up per logger, not at configure time
    return _NamedPrintLogger(args[0] if args else "txrecords", sys.stderr)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog. Called lazily by get_logger() and by the CLI."""
    settings = get_settings()
    level_value = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if (fmt or settings.log_format) == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=_logger_factory,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    if not structlog.is_configured():
        configure_logging()
    # lazy proxy; the name reaches _logger_factory on every bind
    return structlog.get_logger(name)
