# backend/chatrelay/core/logging.py

import logging
import sys
from typing import Dict

from chatrelay.core.config import settings


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers and the most verbose level we let through from each.
QUIET_LOGGERS: Dict[str, int] = {
    # Frame-level chatter from the websocket protocol implementations
    "websockets": logging.WARNING,
    "wsproto": logging.WARNING,
    # One line per HTTP request / socket upgrade
    "uvicorn.access": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
}


def resolve_level(name: str | None) -> int:
    """Map a level name like "debug" to its logging constant, INFO if unknown."""
    level = logging.getLevelName((name or "").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level_name: str | None = None) -> int:
    """
    Configure relay logging.

    - Root level from ``level_name``, falling back to LOG_LEVEL
    - A stdout handler, unless something (e.g. Uvicorn) already installed one
    - QUIET_LOGGERS capped either way, so per-frame logs stay out of INFO output

    Returns:
        int: The root level that was applied
    """
    level = resolve_level(level_name or settings.LOG_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return level


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Usage:
        from chatrelay.core.logging import get_logger

        logger = get_logger(__name__)
        logger.info("Room %s created", code)
    """
    return logging.getLogger(name)
