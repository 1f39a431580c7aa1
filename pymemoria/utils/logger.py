"""
Logger module - Centralized logging configuration for PyMemoria.

Every module logs through ``get_logger(__name__)``. All loggers share the
stdout format below; the default level comes from ``LOG_LEVEL`` (INFO if
unset) and can be changed at runtime with ``set_level``.
"""

import logging
import os
import sys
from typing import Optional, Union

ROOT_LOGGER_NAME = "pymemoria"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _default_level() -> int:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional logging level (defaults to LOG_LEVEL or INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(_default_level())

    return logger


def set_level(level: Union[int, str]) -> None:
    """
    Change the level of every PyMemoria logger created so far.

    Args:
        level: Logging level or level name (e.g. "DEBUG")
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.split(".")[0] == ROOT_LOGGER_NAME:
            logger.setLevel(level)
