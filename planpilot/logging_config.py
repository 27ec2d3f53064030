"""Planpilot logging configuration.

Planpilot logs through loguru with structured keyword fields, e.g.
``logger.debug("Activated plan", plan_id=3)``. Stdout belongs to command
output and hook JSON, so every sink writes to stderr or a file.
"""

from __future__ import annotations

import os
import sys
from typing import Optional

from loguru import logger

from planpilot.constants import ENV_LOG_LEVEL

_STDERR_FORMAT = "<level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> | {message} | {extra}"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message} | {extra}"


def setup_logging(
    level: Optional[str] = None, log_file: Optional[str] = None, default_level: str = "WARNING"
) -> None:
    """Configure planpilot logging.

    Args:
        level: Explicit level; wins over `PLANPILOT_LOG_LEVEL`.
        log_file: Optional path of an additional rotating file sink.
        default_level: Level used when neither of the above is set (config `logging.level`).
    """
    resolved = (level or os.environ.get(ENV_LOG_LEVEL) or default_level).upper()

    logger.remove()
    logger.add(sys.stderr, level=resolved, format=_STDERR_FORMAT, backtrace=False, diagnose=False)
    if log_file:
        logger.add(
            os.path.expanduser(log_file),
            level=resolved,
            format=_FILE_FORMAT,
            rotation="1 MB",
            retention=3,
            enqueue=False,
        )
