"""
Logging configuration for the application.
"""
import copy
import logging
import os
import sys


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name of each record."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        """Format a copy of the record so other handlers see the plain level name."""
        record = copy.copy(record)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _level_from_env(default: int) -> int:
    name = os.getenv("LOG_LEVEL", "").upper()
    return logging.getLevelName(name) if name in ColoredFormatter.COLORS else default


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Set up a logger writing coloured lines to stdout.

    Args:
        name: Logger name
        level: Logging level, overridden by the LOG_LEVEL environment variable

    Returns:
        Configured logger instance
    """
    level = _level_from_env(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    logger.addHandler(handler)
    return logger


app_logger = setup_logger("lily_bridge")
