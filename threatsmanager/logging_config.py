"""
Centralized logging configuration.
"""

import logging
import sys
from typing import Optional

from .config import Settings, get_settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Setup the root logger.

    Args:
        settings: Settings instance, uses the cached settings if None
    """
    if settings is None:
        settings = get_settings()

    logging.basicConfig(level=getattr(logging, settings.log_level),
                        format=settings.log_format,
                        handlers=[logging.StreamHandler(sys.stderr)],
                        force=True)


def get_logger(name: str, settings: Optional[Settings] = None) -> logging.Logger:
    """
    Get a logger set to the configured level.

    Args:
        name: Logger name (usually __name__)
        settings: Settings instance, uses the cached settings if None

    Returns:
        Configured logger instance
    """
    if settings is None:
        settings = get_settings()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.log_level))
    return logger
