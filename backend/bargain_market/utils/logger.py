"""
Logging utilities.

WHAT: Root logger setup for the marketplace service
WHY: Negotiation transitions, checkouts and conflicts must be traceable after the fact
HOW: Console handler plus a size-rotated file handler; chatty library loggers
     are held at WARNING unless DEBUG is on
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..core.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(module)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every statement or request at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "uvicorn.access")


def setup_logging() -> logging.Logger:
    """
    Configure the root logger.

    Calling it again replaces the handlers instead of stacking them, so the
    app and the test suite can both call it.

    Returns:
        The configured root logger
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.DEBUG else level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    library_level = logging.DEBUG if settings.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    root_logger.info(
        f"Logging initialized (level={logging.getLevelName(level)}, file={log_file}, "
        f"rotate at {settings.LOG_MAX_BYTES} bytes x{settings.LOG_BACKUP_COUNT})"
    )
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Module logger, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(name)
