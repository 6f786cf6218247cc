"""
CarePublish Logging Configuration

Every record carries a keyword context (content id, facility id, ...) that is
emitted as JSON fields, or as ``key=value`` pairs in text mode.

Environment:
- CAREPUBLISH_LOG_LEVEL: DEBUG, INFO (default), WARNING, ERROR
- CAREPUBLISH_LOG_FORMAT: json (default) or text
"""
import json
import logging
import os
import sys
import time
import traceback
from datetime import datetime, timezone
from functools import wraps
from typing import Optional

LOG_LEVEL = os.environ.get("CAREPUBLISH_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("CAREPUBLISH_LOG_FORMAT", "json")


def _error_context(context: dict, error: Optional[BaseException], with_traceback: bool) -> dict:
    if error is not None:
        context["error_type"] = type(error).__name__
        context["error_message"] = str(error)
        if with_traceback:
            context["traceback"] = traceback.format_exc()
    return context


class StructuredLogger:
    """Wraps a stdlib logger so call sites pass context as keyword arguments."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

        # One stdout handler per named logger, even when re-created
        self.logger.handlers = []
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter() if LOG_FORMAT == "json" else TextFormatter())
        self.logger.addHandler(handler)

    def _log(self, level: int, message: str, context: dict):
        self.logger.log(level, message, extra={"context": context, "logger_name": self.name})

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, error: Optional[BaseException] = None, **context):
        self._log(logging.WARNING, message, _error_context(context, error, with_traceback=False))

    def error(self, message: str, error: Optional[BaseException] = None, **context):
        self._log(logging.ERROR, message, _error_context(context, error, with_traceback=True))

    def critical(self, message: str, error: Optional[BaseException] = None, **context):
        self._log(logging.CRITICAL, message, _error_context(context, error, with_traceback=True))


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": getattr(record, "logger_name", record.name),
            "message": record.getMessage(),
        }
        log_data.update(getattr(record, "context", {}))
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Single-line text for local development."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        line = f"[{timestamp}] [{record.levelname}] {record.getMessage()}"

        context = getattr(record, "context", {})
        pairs = " ".join(f"{k}={v}" for k, v in context.items() if k != "traceback")
        if pairs:
            line += f" ({pairs})"
        return line


def timed(logger: StructuredLogger):
    """Log how long a call took, at debug level."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                logger.debug(
                    f"{func.__name__} finished",
                    function=func.__name__,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
        return wrapper
    return decorator


api_logger = StructuredLogger("carepublish.api")
approval_logger = StructuredLogger("carepublish.approval")
facility_logger = StructuredLogger("carepublish.facility")
db_logger = StructuredLogger("carepublish.db")


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(f"carepublish.{name}")
