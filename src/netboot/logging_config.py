"""
Logging setup for the netboot command line.

Diagnostics go to stderr so JSON on stdout stays parseable. With a log
file, every record down to DEBUG is also kept in a size-rotated file,
which is where a failed exchange's packet-level trace ends up.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-24s | %(funcName)-20s | %(lineno)-4d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: str = "WARNING", log_file: str | None = None) -> logging.Logger:
    """
    Configure the "netboot" logger.

    Args:
        level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also write DEBUG and above to this rotating file

    Returns:
        The package logger
    """
    logger = logging.getLogger("netboot")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, level.upper()))
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        trace = RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding='utf-8',
        )
        trace.setLevel(logging.DEBUG)
        trace.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        logger.addHandler(trace)

    # The logger itself must pass whatever the most verbose handler wants
    logger.setLevel(min(handler.level for handler in logger.handlers))
    return logger
