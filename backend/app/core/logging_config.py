"""
Graduation Booklets - Centralized Logging Configuration
Supports both development (plain text) and production (JSON structured) logging
"""

import logging
import sys
import json
import traceback
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Iterator
from contextvars import ContextVar

from app.core.config import settings


# Context variables for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
editor_id_var: ContextVar[str] = ContextVar('editor_id', default='')
graduation_id_var: ContextVar[str] = ContextVar('graduation_id', default='')


def get_request_id() -> str:
    """Get current request ID from context"""
    return request_id_var.get() or ''


def set_request_id(request_id: str) -> None:
    """Set request ID in context"""
    request_id_var.set(request_id)


def get_editor_id() -> str:
    """Get current editor ID from context"""
    return editor_id_var.get() or ''


def set_editor_id(editor_id: str) -> None:
    """Set editor ID in context"""
    editor_id_var.set(editor_id)


def get_graduation_id() -> str:
    """Get current graduation ID from context"""
    return graduation_id_var.get() or ''


def set_graduation_id(graduation_id: str) -> None:
    """Set graduation ID in context"""
    graduation_id_var.set(graduation_id)


def generate_request_id() -> str:
    """Generate a unique request ID"""
    return str(uuid.uuid4())[:8]


@contextmanager
def graduation_log_context(graduation_id: str) -> Iterator[None]:
    """
    Tag every log line inside the block with ``graduation_id``.

    Used where no HTTP request binds it: Celery maintenance runs and direct
    assembler calls. The previous value is restored on exit.
    """
    token = graduation_id_var.set(graduation_id)
    try:
        yield
    finally:
        graduation_id_var.reset(token)


_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'request_id', 'editor_id', 'graduation_id',
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production
    Outputs one JSON object per line for log aggregation tools
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add context from context variables
        request_id = get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        editor_id = get_editor_id()
        if editor_id:
            log_data["editor_id"] = editor_id

        graduation_id = get_graduation_id()
        if graduation_id:
            log_data["graduation_id"] = graduation_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """
    Formatter that includes context variables (request_id, editor_id, graduation_id)
    Used for development with readable output
    """

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.editor_id = get_editor_id() or '-'
        record.graduation_id = get_graduation_id() or '-'

        return super().format(record)


class BookletLogger(logging.Logger):
    """
    Custom logger with convenience methods for structured logging
    """

    def log_booklet_event(self, graduation_id: str, event: str, **kwargs) -> None:
        """Log a booklet assembly milestone"""
        self.info(
            f"Booklet {graduation_id}: {event}",
            extra={
                "event_type": "booklet",
                "booklet_graduation_id": graduation_id,
                "booklet_event": event,
                **kwargs
            }
        )

    def log_student_skipped(self, student_name: str, reason: str) -> None:
        """A student's PDF was left out of the booklet"""
        self.warning(
            f"[Booklet] Skipping {student_name}: {reason}",
            extra={
                "event_type": "booklet_skip",
                "student_name": student_name,
                "skip_reason": reason,
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        """Log performance metrics, warn if over threshold"""
        level = logging.WARNING if duration_ms > threshold_ms else logging.DEBUG
        self.log(
            level,
            f"Performance: {operation} took {duration_ms:.2f}ms" +
            (f" (threshold: {threshold_ms}ms)" if duration_ms > threshold_ms else ""),
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": duration_ms,
                "threshold_ms": threshold_ms,
                "exceeded_threshold": duration_ms > threshold_ms,
                **kwargs
            }
        )


def setup_logging() -> BookletLogger:
    """Setup logging configuration based on environment"""

    logging.setLoggerClass(BookletLogger)

    logger = logging.getLogger("booklets")
    logger.__class__ = BookletLogger  # Ensure it's our custom class
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logger.handlers.clear()

    is_production = settings.is_production()

    if is_production:
        json_formatter = JSONFormatter()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(json_formatter)
        logger.addHandler(console_handler)

        if settings.LOG_FILE:
            log_file = Path(settings.LOG_FILE)
            log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=10
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(json_formatter)
            logger.addHandler(file_handler)

    else:
        detailed_format = (
            "%(asctime)s | %(levelname)-8s | "
            "[%(request_id)s] [%(editor_id)s] [%(graduation_id)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )
        simple_format = "%(levelname)-8s | %(message)s"

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(ContextualFormatter(simple_format))
        logger.addHandler(console_handler)

        if settings.LOG_FILE:
            log_file = Path(settings.LOG_FILE)
            log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=5
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(ContextualFormatter(detailed_format))
            logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger.debug(
        "Logging initialized",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "json_logging": is_production
        }
    )

    return logger


logger: BookletLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_request_id',
    'set_request_id',
    'get_editor_id',
    'set_editor_id',
    'get_graduation_id',
    'set_graduation_id',
    'generate_request_id',
    'graduation_log_context',
    'BookletLogger',
    'JSONFormatter',
]
