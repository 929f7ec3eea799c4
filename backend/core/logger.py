"""Structured logging configuration for HisaabKitaab

Provides JSON-structured logging for better observability in production.
Every record carries a timestamp, level, logger name and the event context
passed as keyword arguments.
"""

import logging
import sys
from typing import Dict, Optional

from pythonjsonlogger import jsonlogger


class AppLogger:
    """Application logger with structured logging support"""

    _instance = None
    _loggers: Dict[str, logging.Logger] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    @classmethod
    def configure(cls, name: str = "hisaabkitaab", level: int = logging.INFO):
        """Configure the application logger with structured output"""
        instance = cls()

        if instance._initialized:
            return

        root_logger = logging.getLogger(name)
        root_logger.setLevel(level)
        root_logger.propagate = False
        root_logger.handlers.clear()

        # Handler 1: JSON to stdout (for production)
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(level)
        stdout_handler.setFormatter(
            jsonlogger.JsonFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                timestamp=True,
            )
        )
        root_logger.addHandler(stdout_handler)

        # Handler 2: Plain text to stderr (for debugging)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(
            logging.Formatter("[%(levelname)s] %(asctime)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(stderr_handler)

        instance._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get or create a child logger of the application logger"""
        full_name = name if name.startswith("hisaabkitaab") else f"hisaabkitaab.{name}"
        if full_name not in cls._loggers:
            cls._loggers[full_name] = logging.getLogger(full_name)
        return cls._loggers[full_name]


class StructuredLogger:
    """Wrapper for structured logging with common patterns"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _log(self, level: int, event: str, exc: Optional[Exception], context):
        if not self.logger.isEnabledFor(level):
            return
        exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None
        # Context keys land on the record so the JSON formatter emits them
        self.logger.log(level, event, exc_info=exc_info, extra=_safe_extra(context))

    def info(self, event: str, **context):
        self._log(logging.INFO, event, None, context)

    def warning(self, event: str, **context):
        self._log(logging.WARNING, event, None, context)

    def error(self, event: str, exc: Optional[Exception] = None, **context):
        """Log error with context and optional exception"""
        self._log(logging.ERROR, event, exc, context)

    def debug(self, event: str, **context):
        self._log(logging.DEBUG, event, None, context)


_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _safe_extra(context: Dict) -> Dict:
    # LogRecord refuses to overwrite its own attributes
    return {
        (f"ctx_{key}" if key in _RESERVED else key): value
        for key, value in context.items()
    }


# Initialize on module load
AppLogger.configure()


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module"""
    return StructuredLogger(AppLogger.get_logger(name))
