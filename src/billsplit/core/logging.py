import sys

from loguru import logger

from .config import settings


def configure_logging() -> None:
    """Console sink at the configured level, plus a rotating file when ``log_file`` is set."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    if settings.log_file:
        logger.add(settings.log_file, rotation="1 MB", level="DEBUG")
