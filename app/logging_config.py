"""Logging setup, driven by the LOG_* settings."""

import logging

from app.config import Settings

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(config: Settings) -> None:
    """Configure root logging from settings.

    Raises:
        ValueError: If LOG_LEVEL is not a standard level name.
    """
    log_level = config.LOG_LEVEL.upper()
    if log_level not in _LEVELS:
        raise ValueError(f"Invalid log level: {config.LOG_LEVEL}")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.LOG_FILE:
        handlers.append(logging.FileHandler(config.LOG_FILE))

    logging.basicConfig(
        level=log_level,
        format=config.LOG_FORMAT,
        handlers=handlers,
    )
