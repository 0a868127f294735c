"""
Logging configuration.
Output goes to stderr; every module logs through logging.getLogger(__name__).
"""

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the 'shopscan' package logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...). Unknown names fall back to INFO.
    """
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))

    logger = logging.getLogger("shopscan")
    logger.setLevel(resolved)

    # Avoid duplicate handlers if called multiple times
    logger.handlers.clear()
    logger.addHandler(handler)
