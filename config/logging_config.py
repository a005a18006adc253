import logging
import sys

import structlog

from config.settings import settings


def configure_logging() -> None:
    """Configure structlog for structured JSON output to stderr."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Standard library logging config (httpx, apscheduler, uvicorn log through it)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )
    # APScheduler logs every one-shot dispatch at INFO
    logging.getLogger("apscheduler.executors").setLevel(max(log_level, logging.WARNING))

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.ExceptionRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [structlog.processors.JSONRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
