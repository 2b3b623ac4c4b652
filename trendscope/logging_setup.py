# trendscope/logging_setup.py
"""
Logging configuration for applications embedding trendscope.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, once, by the host application.
"""
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

ROOT_LOGGER = "trendscope"

PRODUCTION_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEVELOPMENT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    level: int | str | None = None,
    *,
    log_dir: str | None = None,
    production_mode: bool = True,
) -> logging.Logger:
    """
    Configure the ``trendscope`` logger tree.

    Args:
        level: Explicit level; defaults to WARNING in production, DEBUG otherwise.
        log_dir: When given, also write to ``<log_dir>/trendscope.log``
            (rotated at 5 MB, 3 backups).
        production_mode: Compact format and quieter default level.

    Returns:
        The configured ``trendscope`` logger.
    """
    if level is None:
        level = logging.WARNING if production_mode else logging.DEBUG

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        PRODUCTION_FORMAT if production_mode else DEVELOPMENT_FORMAT,
        datefmt=DATE_FORMAT,
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, f"{ROOT_LOGGER}.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
