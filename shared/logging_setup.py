"""Loguru sink configuration."""
import sys
from pathlib import Path

from loguru import logger

from shared.config import Settings


def configure_logging(settings: Settings):
    """Route logs to stderr and, when LOCAL_LOGS is set, to a rotating file."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
        level=settings.log_level.upper()
    )
    if settings.local_logs:
        logger.add(
            Path(settings.local_logs) / "registry_{time}.log",
            rotation="1 day",
            retention="30 days",
            level="DEBUG"
        )
