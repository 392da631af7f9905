"""
StudyMate - Logging setup
Colored console output plus a rotating log file, both under one "StudyMate" logger.
Modules log through child loggers: get_logger("store") -> "StudyMate.store".
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from config import LoggingConfig, get_logging_config


ROOT_LOGGER = "StudyMate"
DEFAULT_LOGS_DIR = os.path.join(os.path.dirname(__file__), "logs")

MESSAGE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

RESET = "\x1b[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\x1b[38;20m",      # grey
    logging.INFO: "\x1b[34;20m",       # blue
    logging.WARNING: "\x1b[33;20m",    # yellow
    logging.ERROR: "\x1b[31;20m",      # red
    logging.CRITICAL: "\x1b[31;1m",    # bold red
}


class ColorFormatter(logging.Formatter):
    """Console formatter that tints each line by level and appends the call site."""

    def __init__(self, colors: bool = True):
        super().__init__(MESSAGE_FORMAT + " (%(filename)s:%(lineno)d)", datefmt=DATE_FORMAT)
        self.colors = colors

    def format(self, record):
        line = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not self.colors or color is None:
            return line
        return f"{color}{line}{RESET}"


def _level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str = ROOT_LOGGER, config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Configures and returns the application logger"""
    config = config or get_logging_config()

    logger = logging.getLogger(name)
    logger.setLevel(_level(config.level))

    # Already configured (module re-imported or called twice)
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColorFormatter(colors=config.colors))
    logger.addHandler(console_handler)

    logs_dir = config.directory or DEFAULT_LOGS_DIR
    os.makedirs(logs_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(logs_dir, "app.log"),
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(MESSAGE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child logger for a component, e.g. StudyMate.store"""
    return logger.getChild(component)


# Global logger instance
logger = setup_logger()
