"""Package logger shared by the engine, the assistant and the CLI."""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "shiftplan"
LOG_FORMAT = "[%(levelname)s] %(message)s"

logger = logging.getLogger(LOGGER_NAME)
logger.setLevel(logging.INFO)

# Avoid stacking handlers when the module is re-imported (tests, notebooks)
if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger or one of its children (e.g. ``shiftplan.engine``)."""
    if not name:
        return logger
    return logger.getChild(name)


def configure_logging(level: str | int = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Set the package log level and optionally mirror output into a file.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level
        log_file: Optional path of a log file to append to

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")
    logger.setLevel(level)

    if log_file:
        already_attached = any(
            isinstance(handler, logging.FileHandler) and handler.baseFilename.endswith(log_file)
            for handler in logger.handlers
        )
        if not already_attached:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter("%(asctime)s " + LOG_FORMAT))
            logger.addHandler(file_handler)
    return logger
