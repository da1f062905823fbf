"""Logging for sitebuild: one ``sitebuild`` logger tree, configured once per run."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "sitebuild"

BUILD_FORMAT = "[sitebuild] %(levelname)s %(message)s"
# Watch sessions run for hours; each rebuild's lines need a wall-clock time.
WATCH_FORMAT = "[sitebuild %(asctime)s] %(levelname)s %(message)s"
WATCH_DATEFMT = "%H:%M:%S"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the sitebuild hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def console_formatter(*, watch: bool = False) -> logging.Formatter:
    if watch:
        return logging.Formatter(WATCH_FORMAT, datefmt=WATCH_DATEFMT)
    return logging.Formatter(BUILD_FORMAT)


def configure_logging(
    *, verbose: bool = False, watch: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send sitebuild records to stderr and, if given, to ``log_file``.

    ``watch`` switches the console lines to a timestamped format. Calling this
    again replaces the handlers instead of adding more.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(console_formatter(watch=watch))
    logger.addHandler(console)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "console_formatter", "get_logger"]
