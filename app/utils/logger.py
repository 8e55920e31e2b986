"""
Structured logging configuration using structlog.
"""
import logging

import structlog

from app.config import settings
from app.services.activity_logger import REDACTED, is_secret_key, scrub

# Event dict keys owned by structlog itself
RESERVED_KEYS = {"event", "level", "timestamp", "exc_info", "stack_info"}


def redact_secret_fields(logger, method_name, event_dict):
    """Processor that masks credential-looking fields before rendering."""
    for key, value in event_dict.items():
        if key in RESERVED_KEYS:
            continue
        event_dict[key] = REDACTED if is_secret_key(key) else scrub(value)
    return event_dict


def configure_logging():
    """
    Configure structured logging for the broker.
    JSON output in production, console output elsewhere; credential fields
    are masked in both.
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secret_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if settings.app_environment == "production":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
