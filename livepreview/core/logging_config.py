"""
livepreview - Centralized Logging Configuration
Supports both development (plain text) and production (JSON structured) logging
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict
from contextvars import ContextVar

from livepreview.core.config import settings


# Context variables for build tracing
build_id_var: ContextVar[str] = ContextVar('build_id', default='')
project_id_var: ContextVar[str] = ContextVar('project_id', default='')


def get_build_id() -> str:
    """Get current build ID from context"""
    return build_id_var.get() or ''


def set_build_id(build_id: str) -> None:
    """Set build ID in context"""
    build_id_var.set(build_id)


def get_project_id() -> str:
    """Get current project ID from context"""
    return project_id_var.get() or ''


def set_project_id(project_id: str) -> None:
    """Set project ID in context"""
    project_id_var.set(project_id)


def generate_build_id() -> str:
    """Generate a short unique build ID"""
    return str(uuid.uuid4())[:8]


_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'build_id', 'project_id',
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production
    Outputs logs in a format easily parsed by log aggregation tools
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        build_id = get_build_id()
        if build_id:
            log_data["build_id"] = build_id

        project_id = get_project_id()
        if project_id:
            log_data["project_id"] = project_id

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
    Formatter that includes context variables (build_id, project_id)
    Used for development with readable output
    """

    def format(self, record: logging.LogRecord) -> str:
        record.build_id = get_build_id() or '-'
        record.project_id = get_project_id() or '-'
        return super().format(record)


class LivePreviewLogger(logging.Logger):
    """
    Custom logger with convenience methods for structured logging
    """

    def log_build_event(self, event: str, success: bool, entry_point: str = "",
                        error_count: int = 0, **kwargs) -> None:
        """Log a bundler build outcome"""
        level = logging.INFO if success else logging.WARNING
        self.log(
            level,
            f"Build {event}: {'ok' if success else 'failed'}" +
            (f" entry={entry_point}" if entry_point else "") +
            (f" errors={error_count}" if error_count else ""),
            extra={
                "event_type": "build",
                "build_event": event,
                "build_success": success,
                "entry_point": entry_point,
                "error_count": error_count,
                **kwargs
            }
        )

    def log_fix_event(self, strategy: str, event: str, target_file: str = None,
                      **kwargs) -> None:
        """Log ghost-fix strategy / retry events"""
        self.info(
            f"Fix {strategy}: {event}" +
            (f" ({target_file})" if target_file else ""),
            extra={
                "event_type": "fix",
                "fix_strategy": strategy,
                "fix_event": event,
                "target_file": target_file,
                **kwargs
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


def setup_logging() -> LivePreviewLogger:
    """Setup logging configuration based on environment"""

    logging.setLoggerClass(LivePreviewLogger)

    logger = logging.getLogger("livepreview")
    logger.__class__ = LivePreviewLogger  # Ensure it's our custom class
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Clear existing handlers
    logger.handlers.clear()

    is_production = settings.ENVIRONMENT == "production"

    if is_production:
        # Production: JSON formatted logs for log aggregation
        json_formatter = JSONFormatter()

        console_handler = logging.StreamHandler(sys.stderr)
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
        # Development: Human-readable format
        detailed_format = (
            "%(asctime)s | %(levelname)-8s | "
            "[%(build_id)s] [%(project_id)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )
        simple_format = "%(levelname)-8s | %(message)s"

        detailed_formatter = ContextualFormatter(detailed_format)
        simple_formatter = ContextualFormatter(simple_format)

        # Console goes to stderr so CLI output on stdout stays clean
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(simple_formatter)
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
            file_handler.setFormatter(detailed_formatter)
            logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)

    logger.debug(
        "Logging initialized",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "json_logging": is_production
        }
    )

    return logger


# Create logger instance
logger: LivePreviewLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_build_id',
    'set_build_id',
    'get_project_id',
    'set_project_id',
    'generate_build_id',
    'LivePreviewLogger',
]
