"""
Structured JSON logging configuration.

This module sets up JSON logging for repository operations with
consistent field names:
- timestamp, level, message, logger
- entity: mapped class the repository is bound to
- operation: repository operation name (insert, save, get_all, ...)
- property_name: dynamic field name, for name-based operations
- reason: why a staging operation reported failure
- latency_ms: duration of the store call

Logs go to stdout so that any log aggregator can parse them.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from generic_repository.core.config import get_settings


# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
})


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Outputs log records as single-line JSON objects with fields:
    - timestamp: ISO 8601 UTC timestamp
    - level: Log level name
    - message: Rendered log message
    - logger: Logger name (module path)
    - entity, operation, property_name, reason, latency_ms (if provided)
    - exception: Formatted traceback (if exc_info was passed)
    - any other field passed via ``extra``

    Example output:
        {"timestamp": "2026-10-19T10:30:00.123456+00:00", "level": "WARNING",
         "message": "Staging failed", "logger": "generic_repository.repositories.generic",
         "entity": "Item", "operation": "update", "reason": "key not found"}
    """

    context_fields = ("entity", "operation", "property_name", "reason", "latency_ms")

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON string.

        Args:
            record: LogRecord to format

        Returns:
            JSON string representation of log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        for field in self.context_fields:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None
) -> None:
    """
    Configure application logging.

    Sets up:
    - Root logger with the requested level
    - JSON formatter (or a plain text one)
    - StreamHandler to stdout, replacing existing root handlers

    Args:
        level: Logging level name; defaults to Settings.log_level
        json_format: Use JSONFormatter; defaults to Settings.log_json

    Example:
        setup_logging(level="DEBUG", json_format=False)

    Note:
        Call this once at application startup, before any logging occurs.
    """
    config = get_settings()
    if level is None:
        level = config.log_level
    if json_format is None:
        json_format = config.log_json

    root_logger = logging.getLogger()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance with given name.

    Args:
        name: Logger name (usually __name__ of the module)

    Example:
        logger = get_logger(__name__)
        logger.info("Rows loaded", extra={"entity": "Item"})
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    entity: Optional[str] = None,
    operation: Optional[str] = None,
    property_name: Optional[str] = None,
    reason: Optional[str] = None,
    latency_ms: Optional[float] = None,
    **extra_fields: Any
) -> None:
    """
    Log message with structured repository context fields.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        entity: Entity class name
        operation: Repository operation name
        property_name: Dynamic field name
        reason: Failure reason
        latency_ms: Store call duration in milliseconds
        **extra_fields: Additional fields to include

    Example:
        log_with_context(
            logger,
            "warning",
            "Staging failed",
            entity="Item",
            operation="remove",
            reason="already staged for removal"
        )
    """
    extra: Dict[str, Any] = {}

    if entity is not None:
        extra["entity"] = entity
    if operation is not None:
        extra["operation"] = operation
    if property_name is not None:
        extra["property_name"] = property_name
    if reason is not None:
        extra["reason"] = reason
    if latency_ms is not None:
        extra["latency_ms"] = latency_ms

    extra.update(extra_fields)

    log_method = getattr(logger, level.lower())
    log_method(message, extra=extra)
