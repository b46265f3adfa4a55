"""Structured logging configuration."""

import logging

import structlog

from revenue_engine.core.config import settings


def configure_logging(debug: bool | None = None) -> None:
    """Configure structlog for JSON output with contextvars support.

    Args:
        debug: Override for settings.DEBUG (DEBUG level when True, WARNING otherwise)
    """
    if debug is None:
        debug = settings.DEBUG

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.WARNING
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy library loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
