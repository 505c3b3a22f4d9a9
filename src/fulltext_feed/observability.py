"""structlog setup shared by the service and the CLI."""

from __future__ import annotations

import logging

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer, plain_traceback, set_exc_info
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    add_log_level,
    format_exc_info,
)
from structlog.typing import FilteringBoundLogger


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """Install the process-wide structlog pipeline.

    Components never rely on this having run: each one takes an explicit
    logger, and `get_logger()` works with structlog's defaults as well.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    processors = [
        merge_contextvars,
        add_log_level,
        StackInfoRenderer(),
        set_exc_info,
        TimeStamper(fmt="iso", utc=True),
    ]
    if json:
        processors += [format_exc_info, JSONRenderer()]
    else:
        processors.append(ConsoleRenderer(exception_formatter=plain_traceback))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )


def get_logger(**context) -> FilteringBoundLogger:
    """Return a logger bound to `context`."""
    return structlog.get_logger().bind(**context)
