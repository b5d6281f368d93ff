"""Structured logging configuration for the case builder."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
))

# Context keys promoted to the top of every JSON record when present
_CONTEXT_KEYS = ("object_id", "step_id", "view_id", "field_id", "field_name", "operation")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
    ):
        super().__init__()
        self._include_timestamp = include_timestamp
        self._include_level = include_level
        self._include_logger = include_logger

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {}

        if self._include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat()

        if self._include_level:
            log_data["level"] = record.levelname

        if self._include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        for key in _CONTEXT_KEYS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS or key in log_data:
                continue
            if isinstance(value, (str, int, float, bool, type(None))):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextLogger:
    """Logger with bound context (object, step, view identifiers)."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._context: Dict[str, Any] = {}

    def with_context(self, **kwargs) -> "ContextLogger":
        """Create a new logger with additional context."""
        new_logger = ContextLogger(self._logger)
        new_logger._context = {**self._context, **kwargs}
        return new_logger

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def _log(self, level: int, msg: str, **kwargs):
        extra = {**self._context, **kwargs}
        self._logger.log(level, msg, extra=extra)

    def debug(self, msg: str, **kwargs):
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs):
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs):
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, **kwargs):
        self._log(logging.ERROR, msg, **kwargs)

    def exception(self, msg: str, **kwargs):
        self._logger.exception(msg, extra={**self._context, **kwargs})


def configure_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        log_format: "json" or "text"
        log_level: Logging level
        logger_name: Name for the logger (None for root)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    logger.addHandler(handler)

    # Reduce noise from the HTTP client
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger."""
    return ContextLogger(logging.getLogger(name))
