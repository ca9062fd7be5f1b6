"""
Loguru sink configuration.
"""

import sys

from loguru import logger

from lexforum.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Replace the default loguru sink with one honouring settings.log_level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        backtrace=settings.debug,
        diagnose=settings.debug,
    )
