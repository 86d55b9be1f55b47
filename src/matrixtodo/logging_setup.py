"""Logging configuration for the matrixtodo background process."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from matrixtodo.core.config import get_log_level

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_path: Path | None = None, level: str | None = None) -> logging.Logger:
    """Configure logging to output to stdout and, optionally, a file.

    Calling this more than once replaces the handlers installed earlier.

    Args:
        log_path: Optional path to the log file.
        level: Log level name (defaults to $MATRIXTODO_LOG_LEVEL or INFO).

    Returns:
        The configured ``matrixtodo`` logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("matrixtodo")
    root_logger.setLevel(level or get_log_level())
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger
