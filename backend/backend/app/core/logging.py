"""
Logging setup for the PickerPacker backend.

All service loggers live under the ``pickerpacker`` namespace so one call to
``setup_logging`` controls them.
"""
from __future__ import annotations

import logging
import sys

from app.core.config import LOG_LEVEL

ROOT_LOGGER = "pickerpacker"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: str | None = None) -> logging.Logger:
    """Configure the application logger with a single console handler.

    Safe to call more than once; existing handlers are replaced.
    """
    level = getattr(logging, (log_level or LOG_LEVEL).upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name"""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
