"""
Logging setup shared by hosting applications
"""
import logging
from typing import Optional

from .config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging using LOG_LEVEL unless a level is given"""
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT
    )
    # httpx logs every request at INFO, which drowns heartbeats
    if not settings.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
