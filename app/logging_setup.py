"""Loguru configuration: stderr sink plus optional file mirror."""
from __future__ import annotations

import os
import sys
from typing import List, Optional

from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | {name}:{line} - {message}"
FILE_FORMAT = "[{time:YYYY-MM-DD HH:mm:ss}] {level}: {message}"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None, debug: bool = False) -> List[int]:
    """Replace loguru's default sink.

    Args:
        level: Minimum level for every sink
        log_file: Optional file mirroring the console output, e.g. a
            per-session ``logs/sessions/alias_session.log``
        debug: Force DEBUG level

    Returns:
        Ids of the sinks added
    """
    if debug:
        level = "DEBUG"
    logger.remove()
    sinks = [logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)]
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        sinks.append(logger.add(log_file, level=level, format=FILE_FORMAT, enqueue=True))
        logger.debug(f"Mirroring logs to {log_file}")
    return sinks
