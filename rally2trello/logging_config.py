"""Centralized logging configuration for rally2trello."""

from __future__ import annotations

import logging
import sys


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging for rally2trello.

    Progress notices are written to standard output without a level prefix so
    a normal run reads like a plain progress report.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO.
        log_file: Optional path to log file. If provided, logs will be written to both
                  console and file.

    Example:
        >>> setup_logging("DEBUG")  # Verbose output to console
        >>> setup_logging("INFO", "import.log")  # Standard output + file logging
        >>> setup_logging("ERROR")  # Errors only
    """
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }

    logger = logging.getLogger("rally2trello")
    logger.setLevel(level_map.get(level.upper(), logging.INFO))

    # Remove any existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
        logger.addHandler(file_handler)

    logger.propagate = False
