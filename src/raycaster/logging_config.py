"""Logging configuration for raycaster."""

import logging
import logging.handlers
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL = os.getenv("RAYCASTER_LOG_LEVEL", "INFO")


def setup_logging(
    name: str = "raycaster",
    level: str | None = None,
    log_file: Path | None = None,
) -> logging.Logger:
    """
    Set up logging configuration.

    Calling this twice for the same logger does not duplicate handlers.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a rotating log file

    Returns:
        Configured logger instance
    """
    if level is None:
        level = LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(getattr(h, "_raycaster_console", False) for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler._raycaster_console = True  # type: ignore[attr-defined]
        logger.addHandler(console_handler)
    for handler in logger.handlers:
        if not isinstance(handler, logging.NullHandler):
            handler.setLevel(numeric_level)
            handler.setFormatter(formatter)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
