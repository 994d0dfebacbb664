"""Logging setup shared by every allocation layer."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from backend.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LOGGER_INITIALIZED = False


def configure_logging(
    level: Optional[str] = None,
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """Install the pipe-separated handler once per process.

    An explicit ``level`` wins over ``Settings.log_level``. Repeated calls are
    no-ops unless ``force`` is set, which the CLI uses to move logs to stderr
    so stdout carries only the JSON result.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED and not force:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format=LOG_FORMAT,
        stream=stream or sys.stdout,
        force=force,
    )
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
