"""Logging configuration for the Category Admin API.

Sets up logging to the console and, when a log directory is configured,
to a date-named file.
"""

import logging
from datetime import date
from pathlib import Path

from app.config import Settings

LOGGER_NAME = "app"


def setup_logging(settings: Settings) -> logging.Logger:
    """Set up application logging with console and optional file handlers.

    Args:
        settings: Application settings containing log configuration.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level)

    # Clear any existing handlers (lifespan may run more than once in tests)
    logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter("%(levelname)s - %(name)s - %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(settings.log_level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        # File handler - logs to category-admin-{date}.log
        log_file_path = log_dir / f"category-admin-{date.today().isoformat()}.log"
        file_handler = logging.FileHandler(log_file_path)
        file_handler.setLevel(settings.log_level)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger() -> logging.Logger:
    """Get the application logger."""
    return logging.getLogger(LOGGER_NAME)
