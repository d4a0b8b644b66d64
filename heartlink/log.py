"""Logging for heartlink components.

All component loggers hang off one package logger, ``heartlink``, which owns
the only handler. Components call get_logger(__name__) and propagate to it,
so a CLI's --log-level is a single set_level() call on the package logger.

Line format:
    [I 14:23:45.123 bridge   ] Serial port /dev/ttyACM0 opened at 115200 baud
"""
import logging
import os
import sys
import threading
from typing import Optional

ROOT_LOGGER_NAME = "heartlink"
LOG_LEVEL_ENV = "HEARTLINK_LOG_LEVEL"
COMPONENT_WIDTH = 9

_root_init_lock = threading.Lock()


class HeartlinkFormatter(logging.Formatter):
    """One-letter level, wall clock with milliseconds, fixed-width component."""

    def __init__(self, component_width: int = COMPONENT_WIDTH) -> None:
        super().__init__(datefmt="%H:%M:%S")
        self.component_width = component_width

    def component(self, record: logging.LogRecord) -> str:
        name = record.name.rsplit('.', 1)[-1]
        return name[:self.component_width].ljust(self.component_width)

    def format(self, record: logging.LogRecord) -> str:
        stamp = f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}"
        text = f"[{record.levelname[:1]} {stamp} {self.component(record)}] {record.getMessage()}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def _level_number(level: Optional[str]) -> int:
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    return getattr(logging, level.upper(), logging.INFO)


def _package_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    with _root_init_lock:
        if not root.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(HeartlinkFormatter())
            root.addHandler(handler)
            root.setLevel(_level_number(None))
    return root


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Logger for one heartlink component.

    Args:
        name: Component name (usually __name__, e.g. "heartlink.hub")
        level: Optional per-component override (DEBUG/INFO/WARNING/ERROR).
               Without it the component follows the package level, which
               starts from HEARTLINK_LOG_LEVEL (default INFO)

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Client connected. Total clients: 1")
        [I 14:23:45.123 hub      ] Client connected. Total clients: 1
    """
    _package_logger()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(_level_number(level))
    return logger


def set_level(level: str) -> None:
    """Set the package level; components without an override follow it."""
    _package_logger().setLevel(_level_number(level))
