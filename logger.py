"""Logging configuration for the Event Finder client services."""

import logging
import sys
from datetime import datetime

from config import LOG_DIR, LOG_LEVEL
from utils.log_sanitizer import sanitize_log


class SanitizingFilter(logging.Filter):
    """Redact signed URL tokens and credentials from every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        sanitized = sanitize_log(message)
        if sanitized != message:
            record.msg = sanitized
            record.args = None
        return True


def setup_logging() -> logging.Logger:
    """Set up logging to a dated file and, when interactive, the console."""
    logger = logging.getLogger("eventfinder")
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()
    logger.filters.clear()
    logger.addFilter(SanitizingFilter())

    log_file = LOG_DIR / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(file_handler)

    if sys.stdout is not None and sys.stdout.isatty():
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%H:%M:%S"
        ))
        logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()
