"""
Montreal RAG - Logging
========================
Pre-configured logger factory for consistent log output across all
modules.

Verbosity is driven by ``settings.LOG_LEVEL``.  Lines carry neither a
timestamp (CloudWatch adds the ingestion time) nor the module name.

Usage:
    from montreal_rag.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import sys

from montreal_rag.config.settings import settings

_DEFAULT_LEVEL = logging.getLevelName(settings.LOG_LEVEL)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Create and return a named logger with a standardised formatter.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit logging level override.
               If *None*, the level is derived from ``settings.LOG_LEVEL``.

    Returns:
        A configured ``logging.Logger`` instance.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers if the logger already exists
    if not logger.handlers:
        logger.setLevel(resolved_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(logging.Formatter(fmt="%(levelname)-8s | %(message)s"))
        logger.addHandler(console_handler)

        logger.propagate = False

    return logger
