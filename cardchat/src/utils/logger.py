"""
CardChat - Logging
===================
One stdout handler is attached to the ``cardchat`` package logger; every
module logger obtained through ``get_logger`` is a child of it and
inherits that handler, so lines are never printed twice.

Verbosity follows ``settings.ENV``:
  • ``"dev"``  → DEBUG
  • ``"prod"`` → WARNING

The HTTP and pool loggers of the OpenAI client and psycopg are held at
WARNING in both modes; at DEBUG they would echo every request line.

Usage:
    from cardchat.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[RAG] Retrieved %d document(s)", n)
"""

import logging
import sys

from cardchat.config.settings import settings

PACKAGE_LOGGER = "cardchat"

_LEVELS = {"dev": logging.DEBUG, "prod": logging.WARNING}
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "psycopg.pool")


def _package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if root.handlers:
        return root

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    root.addHandler(handler)
    root.setLevel(_LEVELS.get(settings.ENV, logging.INFO))
    # uvicorn configures the real root logger
    root.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a logger under the ``cardchat`` hierarchy.

    Args:
        name:  Usually ``__name__``.  Names outside the package
               (e.g. ``"__main__"``) are re-rooted under it.
        level: Optional override for this logger only.
    """
    _package_logger()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Render a credential for display, keeping only its last *visible* characters."""
    if not value or len(value) <= visible:
        return "****"
    return f"****{value[-visible:]}"
