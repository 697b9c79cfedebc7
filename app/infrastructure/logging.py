"""
Logging for the AI robustness rating service.

Handlers, levels and formats come from the ``LOG_*`` settings section. Records
carry the assessment context (project, date, pillar, practice, operation) set
through ``LogContext``.
"""

from __future__ import annotations

import json
import logging
import logging.config
import time
from collections.abc import Callable
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import Any, ParamSpec, TypeVar

from .config import LoggingConfig, get_settings

P = ParamSpec("P")
R = TypeVar("R")

CONTEXT_FIELDS = ("project_name", "assessment_date", "pillar_title", "practice_name", "operation")

# Third-party loggers kept at WARNING whatever the app level is
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with any assessment context attached."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}
        )

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            if exc_type is not None and exc_value is not None:
                entry["exception"] = {
                    "type": exc_type.__name__,
                    "message": str(exc_value),
                    "traceback": self.formatException((exc_type, exc_value, exc_tb)),
                }

        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Copies the current assessment context onto every record."""

    def __init__(self):
        super().__init__()
        self.context: dict[str, Any] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    structured: bool = True,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Install handlers for the ``app`` logger tree and the root logger.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating JSON log file; no file handler when empty
        structured: JSON console output instead of plain text
        enable_console: Whether to log to stdout
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files to keep

    Example:
        >>> setup_logging(level="DEBUG", log_file="./logs/app.log")
    """
    handlers: dict[str, dict[str, Any]] = {}

    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "structured" if structured else "standard",
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "structured",
            "filters": ["context"],
            "filename": log_file,
            "maxBytes": max_bytes,
            "backupCount": backup_count,
            "encoding": "utf-8",
        }

    names = list(handlers)
    loggers: dict[str, dict[str, Any]] = {
        "app": {"level": level, "handlers": names, "propagate": False},
    }
    for quiet in QUIET_LOGGERS:
        loggers[quiet] = {"level": "WARNING", "handlers": names, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {"()": StructuredFormatter},
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "filters": {"context": {"()": lambda: context_filter}},
            "handlers": handlers,
            "loggers": loggers,
            "root": {"level": level, "handlers": names},
        }
    )


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Apply a ``LoggingConfig``, by default the ``LOG_*`` section of the settings.

    Example:
        >>> configure_logging(LoggingConfig(level="DEBUG", file_path=None))
    """
    if config is None:
        config = get_settings().logging
    setup_logging(
        level=config.level,
        log_file=config.file_path or None,
        structured=config.structured,
        enable_console=config.console_enabled,
        max_bytes=config.max_bytes,
        backup_count=config.backup_count,
    )
    get_logger(__name__).debug(
        f"Logging configured at {config.level}"
        + (f" with file {config.file_path}" if config.file_path else "")
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``app`` namespace.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Application started")
    """
    full = name if name.startswith("app.") or name == "app" else f"app.{name}"
    return logging.getLogger(full)


class LogContext:
    """Context manager that adds fields to every record logged inside it."""

    def __init__(self, **kwargs: Any):
        self.context: dict[str, Any] = kwargs
        self.previous_context: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self.previous_context = context_filter.context.copy()
        context_filter.context.update(self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        context_filter.context = self.previous_context


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Log the start of an operation and any exception escaping it.

    Example:
        >>> @log_operation("load_dashboard")
        ... def load(gateway):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            func_logger = logger or get_logger(func.__module__)

            with LogContext(operation=operation):
                func_logger.info(f"Starting {operation}")
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    func_logger.error(f"Failed {operation}: {e}", exc_info=True)
                    raise
                func_logger.info(f"Completed {operation}")
                return result

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Time a database operation and log its duration.

    Example:
        >>> @log_database_operation("upsert_ratings")
        ... def upsert(rows):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            logger = get_logger("database")

            with LogContext(operation=f"db_{operation}"):
                logger.debug(f"Starting database operation: {operation}")
                start = time.perf_counter()
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    logger.error(
                        f"Database operation {operation} failed after "
                        f"{time.perf_counter() - start:.3f}s: {e}",
                        exc_info=True,
                    )
                    raise
                logger.info(
                    f"Database operation {operation} completed in {time.perf_counter() - start:.3f}s"
                )
                return result

        return wrapper

    return decorator


if not logging.getLogger().handlers:
    configure_logging()
