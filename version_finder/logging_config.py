"""
Logging setup for version_finder.

Diagnostics never share stdout with results: the console handler writes
to stderr, and short mode drops it entirely so scripts can parse the
single output line. A log file, when requested, always records DEBUG.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "version_finder"

CONSOLE_FORMAT = "%(levelname_colored)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger: Optional[logging.Logger] = None


class ColoredFormatter(logging.Formatter):
    """
    Formatter exposing ``levelname_colored`` for console output.

    Attributes:
        use_colors: Wrap the level name in ANSI color codes
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        record.levelname_colored = f"{color}{record.levelname}{self.RESET}" if color else record.levelname
        return super().format(record)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, use_colors=sys.stderr.isatty()))
    return handler


def _file_handler(log_file: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure the version_finder logger.

    Args:
        level: Console level name when not verbose
        log_file: Optional file receiving every record
        verbose: Show DEBUG records on the console (--debug)
        quiet: No console handler at all (short and scan output)
        propagate: Pass records to the root logger (useful for testing)

    Returns:
        Configured logger instance
    """
    global _logger

    console_level = logging.DEBUG if verbose else getattr(logging, level.upper())

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(console_level)

    if not quiet:
        logger.addHandler(_console_handler(console_level))

    if log_file:
        logger.addHandler(_file_handler(log_file))
        logger.setLevel(logging.DEBUG)

    logger.propagate = propagate
    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the version_finder logger, configuring defaults on first use."""
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger
