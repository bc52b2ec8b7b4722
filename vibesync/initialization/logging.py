"""
Initialization - Logging Module.

Configures loguru logger for the sync process.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger


def setup_logging(level: str = "INFO", log_file: str | None = "logs/vibesync.log") -> None:
    """
    Configure logger with stderr and file rotation.

    Args:
        level: Minimum level for both sinks
        log_file: Rotated log file (None disables the file sink)
    """
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )
