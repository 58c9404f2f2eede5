"""
Logging utilities for the timesheet submission engine.

All modules log through the 'timesheet_submitter' logger. setup_logging()
attaches a single stdout handler; the helpers below add consistent
prefixes for steps, successes, warnings and errors.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


LOGGER_NAME = 'timesheet_submitter'


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colours the level name for terminal output.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
            )

        formatted = super().format(record)

        # Restore so other handlers see the plain name
        record.levelname = levelname

        return formatted


def setup_logging(verbose: bool = False, use_colors: bool = True) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: If True, set level to DEBUG; otherwise INFO
        use_colors: If True, use coloured level names on a terminal

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    fmt = '%(levelname)-8s | %(message)s'
    if use_colors and sys.stdout.isatty():
        formatter = ColoredFormatter(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S')
    else:
        formatter = logging.Formatter(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S')

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """
    Get the application logger.

    Returns:
        Logger instance
    """
    return logging.getLogger(LOGGER_NAME)


@contextmanager
def log_timer(operation: str, logger: Optional[logging.Logger] = None) -> Iterator[Dict[str, str]]:
    """
    Log how long an operation took.

    The yielded dict can be updated with an 'outcome' entry that is
    included in the log line. An exception marks the outcome as 'error'.

    Args:
        operation: Operation name (e.g. "login", "row-submit")
        logger: Logger instance (uses default if None)

    Example:
        >>> with log_timer("row-submit") as timing:
        ...     timing['outcome'] = 'success'
    """
    if logger is None:
        logger = get_logger()

    timing = {'outcome': 'done'}
    start = time.monotonic()
    try:
        yield timing
    except BaseException:
        timing['outcome'] = 'error'
        raise
    finally:
        elapsed = time.monotonic() - start
        logger.debug(f"[timer] {operation}: {elapsed:.2f}s ({timing['outcome']})")


def log_section(title: str, logger: Optional[logging.Logger] = None):
    """
    Log a section header.

    Args:
        title: Section title
        logger: Logger instance (uses default if None)
    """
    if logger is None:
        logger = get_logger()

    logger.info("")
    logger.info("=" * 60)
    logger.info(f"  {title}")
    logger.info("=" * 60)


def log_step(step: str, logger: Optional[logging.Logger] = None):
    """Log a processing step."""
    if logger is None:
        logger = get_logger()

    logger.info(f"→ {step}")


def log_error(error: str, logger: Optional[logging.Logger] = None):
    """Log an error message with consistent formatting."""
    if logger is None:
        logger = get_logger()

    logger.error(f"✗ {error}")


def log_success(message: str, logger: Optional[logging.Logger] = None):
    """Log a success message."""
    if logger is None:
        logger = get_logger()

    logger.info(f"✓ {message}")


def log_warning(warning: str, logger: Optional[logging.Logger] = None):
    """Log a warning message."""
    if logger is None:
        logger = get_logger()

    logger.warning(f"⚠ {warning}")
