"""
Logging utilities.

WHAT: Centralized logging configuration
WHY: Consistent log format and easy logger access
HOW: Python logging with a console handler and a daily-rotated file handler
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from ..core.config import settings

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty third-party loggers and the level they are held at
QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sse_starlette": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def _level(name: str, default: int = logging.INFO) -> int:
    return getattr(logging, name.upper(), default)


def setup_logging():
    """
    Configure application logging.

    WHAT: Set up root logger with file and console handlers
    WHY: Market events (searches, offers, sales, inspections) land in a file
         that survives long sessions without growing without bound
    HOW: Console at LOG_CONSOLE_LEVEL, file rotated at midnight keeping
         LOG_RETENTION_DAYS backups, SQL echo only with LOG_SQL
    """
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(_level(settings.LOG_LEVEL))

    # Remove existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(_level(settings.LOG_CONSOLE_LEVEL))
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    file_handler = TimedRotatingFileHandler(
        log_file,
        when="midnight",
        backupCount=max(0, settings.LOG_RETENTION_DAYS),
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
    if settings.LOG_SQL:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    root_logger.info(
        f"Logging initialized (level={settings.LOG_LEVEL}, file={log_file}, "
        f"retention={settings.LOG_RETENTION_DAYS} days)"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
