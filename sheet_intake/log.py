"""Logging setup for command-line use.

The library modules only ever call ``logging.getLogger(__name__)``; handlers
are installed here, once, by whoever owns the process (the CLI).
"""

from __future__ import annotations

import logging
import sys

__all__ = [
    "SUMMARY_LEVEL",
    "get_logger",
    "log_summary",
    "reset_logging",
    "setup_logging",
]

ROOT_LOGGER_NAME = "sheet_intake"

# Between INFO (20) and WARNING (30)
SUMMARY_LEVEL = 25

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        message = f"{label} {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a single stderr handler to the package logger.

    Calling it again only adjusts the level, so repeated CLI invocations in
    one process never duplicate output.
    """
    global _configured

    level = logging.DEBUG if verbose else logging.INFO
    if _configured is not None:
        _configured.setLevel(level)
        for handler in _configured.handlers:
            handler.setLevel(level)
        return _configured

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    _configured = logger
    return logger


def get_logger() -> logging.Logger:
    if _configured is None:
        return setup_logging()
    return _configured


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured handler. Mainly for tests."""
    global _configured
    if _configured is not None:
        for handler in _configured.handlers[:]:
            _configured.removeHandler(handler)
        _configured.propagate = True
    _configured = None
