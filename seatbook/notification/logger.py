"""
Logging setup for the seatbook client.

Importing this module applies LOG_CONFIG: warnings and errors go to the
console, everything goes to rotating files under ``SEATBOOK_LOG_DIR``
(default ``~/.seatbook/logs``). Modules get their logger with
``_logger = setup_logger(__name__)``.
"""

import logging
import logging.config
import os
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

log_dir = Path(os.environ.get("SEATBOOK_LOG_DIR", Path.home() / ".seatbook" / "logs"))
log_dir.mkdir(parents=True, exist_ok=True)

MAX_BYTES = 50 * 1024 * 1024  # 50MB
BACKUP_COUNT = 9

DETAILED_FORMAT = "%(asctime)s - %(levelname)s - %(filename)s - %(funcName)s - %(lineno)d - %(message)s"

# Name of the logger whose files the service loggers share, if any
_logging_context: ContextVar[Optional[str]] = ContextVar("seatbook_logging_context", default=None)


LOG_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "detailed": {"format": DETAILED_FORMAT},
        "standard": {"format": "%(asctime)s - %(levelname)s - %(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "WARNING",
            "formatter": "standard",
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_dir / "seatbook.log"),
            "maxBytes": MAX_BYTES,
            "backupCount": BACKUP_COUNT,
            "level": "DEBUG",
            "formatter": "detailed",
            "delay": True,
        },
        "stream_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_dir / "notification_stream.log"),
            "maxBytes": MAX_BYTES,
            "backupCount": BACKUP_COUNT,
            "level": "DEBUG",
            "formatter": "detailed",
            "delay": True,
        },
        "error_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_dir / "seatbook_errors.log"),
            "maxBytes": MAX_BYTES,
            "backupCount": BACKUP_COUNT,
            "level": "ERROR",
            "formatter": "detailed",
            "delay": True,
        },
    },
    "loggers": {
        "aiohttp": {
            "level": "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
        # Stream supervision gets its own file so reconnect storms are easy to read
        "notification_stream": {
            "handlers": ["console", "stream_file"],
            "level": "DEBUG",
            "propagate": False,
        },
    },
    "root": {"handlers": ["console", "file", "error_file"], "level": "DEBUG"},
}

for _handler in LOG_CONFIG["handlers"].values():
    if _handler["class"].endswith("RotatingFileHandler"):
        _handler["encoding"] = "utf-8"

logging.config.dictConfig(LOG_CONFIG)


def _copy_file_handlers(source_name: str, target: logging.Logger):
    """Attach copies of the source logger's file handlers to *target*, skipping files it already writes."""
    source = logging.getLogger(source_name)
    existing = {
        h.baseFilename for h in target.handlers if isinstance(h, RotatingFileHandler)
    }

    for handler in source.handlers:
        if not isinstance(handler, RotatingFileHandler) or handler.baseFilename in existing:
            continue
        new_handler = RotatingFileHandler(
            handler.baseFilename,
            maxBytes=handler.maxBytes,
            backupCount=handler.backupCount,
            encoding=handler.encoding,
            delay=True,
        )
        new_handler.setLevel(handler.level)
        new_handler.setFormatter(handler.formatter)
        target.addHandler(new_handler)


def set_logging_context(context_name: str):
    """
    Route the notification service loggers into the files of *context_name*.

    Used by long-running commands (``listen``) so that REST, store and stream
    records end up next to the reconnect log.

    Args:
        context_name: Logger whose file handlers are shared (e.g. 'notification_stream')
    """
    _logging_context.set(context_name)

    # Loggers created at import time
    for name in list(logging.root.manager.loggerDict):
        if name.startswith("seatbook.notification.service."):
            _copy_file_handlers(context_name, logging.getLogger(name))


def get_logging_context() -> Optional[str]:
    """Name set by the last set_logging_context() in this context, or None."""
    return _logging_context.get()


def setup_logger(name: str, level: int = logging.DEBUG) -> logging.Logger:
    """
    Get a module logger configured by LOG_CONFIG.

    Args:
        name (str): Name of the logger.
        level (int, optional): Logging level. Defaults to logging.DEBUG.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    context = get_logging_context()
    if context and name.startswith("seatbook.notification."):
        _copy_file_handlers(context, logger)

    return logger
