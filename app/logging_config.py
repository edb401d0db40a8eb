"""
Structured logging configuration using structlog.

Every process (API and Celery worker) logs JSON lines with a shared set of
context fields: org_id, webhook_id, plugin, event, task_id.
"""
import logging
import sys

import structlog

from app.config import settings


def configure_logging(level: str | int | None = None):
    """Configure structlog and the stdlib root logger at the same level."""
    level = level or settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    # SQLAlchemy, Celery and httpx log through the stdlib
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


logger = configure_logging()


def get_logger(**context):
    """
    Get a logger with context bound.

    Usage:
        log = get_logger(org_id=org_id, webhook_id=webhook_id)
        log.info("webhook_delivered", status_code=200)
    """
    return logger.bind(**context)
