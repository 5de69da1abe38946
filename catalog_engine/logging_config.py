"""
Structured Logging Configuration
Version: 1.0

structlog on top of the standard library:
- JSON output for production, colored console output for development
- Service metadata on every JSON entry
- LogTimer for timing index builds and other long operations
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog

from catalog_engine.config import get_settings


def add_timestamp(logger, method_name, event_dict):
    """Add ISO format timestamp."""
    event_dict['timestamp'] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_service_info(logger, method_name, event_dict):
    """Add service metadata."""
    settings = get_settings()
    event_dict['service'] = settings.APP_NAME
    event_dict['version'] = settings.APP_VERSION
    event_dict['environment'] = settings.APP_ENV
    return event_dict


def rename_event_key(logger, method_name, event_dict):
    """Rename 'event' to 'message' for log shippers."""
    if 'event' in event_dict:
        event_dict['message'] = event_dict.pop('event')
    return event_dict


def configure_logging(
    json_format: Optional[bool] = None,
    log_level: Optional[str] = None
) -> None:
    """
    Configure structured logging for the application.

    Args:
        json_format: JSON logs if True, console logs if False.
                     Defaults to LOG_JSON (or production environment).
        log_level: Minimum log level, defaults to LOG_LEVEL.
    """
    settings = get_settings()
    if json_format is None:
        json_format = settings.LOG_JSON or settings.is_production
    if log_level is None:
        log_level = settings.LOG_LEVEL

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_timestamp,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        shared_processors.extend([
            add_service_info,
            rename_event_key,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ])
    else:
        shared_processors.extend([
            structlog.dev.ConsoleRenderer(colors=True)
        ])

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Index built", total_tools=1400, total_terms=5200)
    """
    return structlog.get_logger(name)


class LogTimer:
    """Context manager for timing operations and logging duration."""

    def __init__(self, logger, operation: str, **extra):
        self.logger = logger
        self.operation = operation
        self.extra = extra
        self.start_time = None
        self.duration_ms: float = 0.0

    def __enter__(self):
        self.start_time = datetime.now(timezone.utc)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (datetime.now(timezone.utc) - self.start_time).total_seconds() * 1000

        if exc_type:
            self.logger.error(
                f"{self.operation} failed",
                duration_ms=round(self.duration_ms, 2),
                error=str(exc_val),
                **self.extra
            )
        else:
            self.logger.info(
                f"{self.operation} completed",
                duration_ms=round(self.duration_ms, 2),
                **self.extra
            )

        return False
