"""Structured logging configuration using structlog."""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from brandcontext.tenancy.context import current_brand


def add_active_brand(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp the published brand on lines logged outside a bound context."""
    if "brand" not in event_dict:
        brand = current_brand()
        if brand is not None:
            event_dict["brand"] = brand
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    quiet_loggers: tuple[str, ...] = ("sqlalchemy.engine", "httpx"),
) -> None:
    """Configure structlog and the stdlib bridge.

    ``request_id``, ``job_id`` and ``brand`` bound through
    ``structlog.contextvars`` are merged into every line.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_active_brand,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output or not sys.stderr.isatty():
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
