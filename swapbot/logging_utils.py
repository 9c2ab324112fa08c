"""Logging configuration for the daemon."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

_NOISY_LOGGERS = ("websockets", "httpx", "httpcore", "telegram", "aiosqlite")


def configure_logging(level: str = "INFO", file: str | None = None) -> None:
    """Configure logging with console output and an optional rotating file."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if file:
        handlers.append(
            RotatingFileHandler(file, maxBytes=10 * 1024 * 1024, backupCount=5)
        )

    # Avoid duplicate handlers on re-init
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
