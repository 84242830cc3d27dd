"""
Structured logging for sqs_envelope.

Loggers are plain structlog loggers. The library never configures structlog
on import; applications that want the JSON output used in production call
``configure_logging()`` once at startup.

Events are emitted at debug level for stage transitions, key cache hits and
misses, and transport calls. Payload bytes and key material are never logged.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import structlog


def _add_timestamp(logger, method_name, event_dict):
    """Add an ISO 8601 UTC timestamp to log entries."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _add_log_level(logger, method_name, event_dict):
    """Add the log level name to log entries."""
    event_dict["level"] = method_name.upper()
    return event_dict


def configure_logging(level: str = "INFO", json: bool = True) -> None:
    """
    Configure structlog for sqs_envelope and its host application.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json: Render JSON lines when True, console output otherwise
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            _add_timestamp,
            _add_log_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structlog logger bound to ``name``.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.debug("stage applied", stage="compression", size=1024)
    """
    return structlog.get_logger(name)
