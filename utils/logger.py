"""
Logging configuration shared by every pipeline layer
"""
import logging
import os
from typing import Optional

from config.settings import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Every logger handed out by get_logger, so the CLI can change verbosity later
_configured_loggers = {}


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance with configured settings

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger writing to the console and, when LOG_FILE is set, to a file
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        os.makedirs(log_dir if log_dir else '.', exist_ok=True)
        file_handler = logging.FileHandler(settings.LOG_FILE, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _configured_loggers[name] = logger
    return logger


def set_log_level(level: Optional[str]) -> None:
    """Change the level of every logger created so far (used by the CLI)."""
    if not level:
        return
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    for logger in _configured_loggers.values():
        logger.setLevel(numeric_level)
