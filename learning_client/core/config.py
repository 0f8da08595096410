"""
Client configuration settings
"""
import os
import logging
from pydantic_settings import BaseSettings
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

HEARTBEAT_SETTING_KEY = "learning.progress.heartbeatSec"
MIN_HEARTBEAT_MS = 1000


class Settings(BaseSettings):
    """Client settings"""

    # App Configuration
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # REST backend
    API_URL: str = os.getenv("API_URL", "http://localhost:4000")
    API_TOKEN: Optional[str] = None
    REQUEST_TIMEOUT: float = 10.0  # seconds

    # Progress tracking
    HEARTBEAT_SEC: float = 10  # used until the server delivers learning.progress.heartbeatSec
    IDLE_THRESHOLD_MS: int = 15000
    VISIBILITY_THRESHOLD: float = 0.25
    COURSE_PROGRESS_POLL_SEC: float = 20

    # Legacy client-local progress cache (disabled when unset)
    LEGACY_PROGRESS_DIR: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = 'ignore'


def resolve_heartbeat_sec(server_settings: Optional[Dict[str, Any]], default: float = 10) -> float:
    """
    Read the heartbeat cadence from server-delivered settings

    Args:
        server_settings: Settings map as returned by GET /api/settings
        default: Value used when the setting is missing or unusable

    Returns:
        Heartbeat interval in seconds
    """
    raw = (server_settings or {}).get(HEARTBEAT_SETTING_KEY)
    if raw is None or raw == "" or isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric {HEARTBEAT_SETTING_KEY}: {raw!r}")
        return default
    # Zero and negatives behave like "unset"
    if value != value or value <= 0:
        return default
    return value


def heartbeat_interval_ms(heartbeat_sec: float) -> int:
    """Timer cadence in milliseconds, never below one second"""
    return max(MIN_HEARTBEAT_MS, int(heartbeat_sec * 1000))


def heartbeat_clamp_sec(heartbeat_sec: float) -> float:
    """Largest delta a single beat may report: one timer interval, in seconds"""
    return heartbeat_interval_ms(heartbeat_sec) / 1000


# Global settings instance
settings = Settings()
