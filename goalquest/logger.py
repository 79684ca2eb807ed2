"""
Logging setup for the tracker.

Every module logs through a child of the `goalquest` logger:

    logger = get_logger("goal_store")   # -> goalquest.goal_store

`setup_logging` is called once by the console entry point. Library use
without it stays silent apart from warnings, per stdlib defaults.
"""

import sys
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

ROOT_NAME = "goalquest"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(component)s]: %(message)s"


class ComponentFilter(logging.Filter):
    """Adds the short component name (`goal_store`, `storage`, ...) to records."""

    def filter(self, record):
        name = record.name
        if name.startswith(ROOT_NAME + "."):
            name = name[len(ROOT_NAME) + 1:]
        record.component = name
        return True


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_NAME}.{component}")


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the `goalquest` logger.

    Args:
        level: Level name for both handlers (e.g. "INFO")
        log_file: Optional path for a rotating log file (1MB x 3 backups)
    """
    logger = logging.getLogger(ROOT_NAME)
    logger.setLevel(level.upper())

    for h in list(logger.handlers):
        logger.removeHandler(h)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ComponentFilter())
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(ComponentFilter())
        logger.addHandler(file_handler)

    return logger
