"""Structured logging configuration using structlog.

Call :func:`setup_logging` once at startup; afterwards every module obtains
its logger with ``structlog.get_logger(__name__)``.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import Processor


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog on top of the standard library logger.

    Parameters
    ----------
    log_level:
        Minimum level name (``DEBUG``, ``INFO``, ...).
    json_logs:
        Render JSON lines instead of the coloured development console.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    # Quiet chatty third-party loggers
    for noisy in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
