"""Logging setup for synaptica."""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = "synaptica",
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Configure a logger writing to a file, or to the console.

    Args:
        name: Logger name, usually the package name
        log_file: Optional file to append log records to
        level: Logging level for the logger and its handler

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)

    # Clear any existing handlers
    logger.handlers.clear()
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = logging.FileHandler(log_file, mode="a")
            handler.setLevel(level)
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.debug(f"Logging to {log_file}")
            return logger
        except OSError as e:
            # Fall back to the console when the file cannot be opened
            logger.warning(f"Could not open log file {log_file}: {e}")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger
