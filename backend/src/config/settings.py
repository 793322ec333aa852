"""
Runtime configuration for the identity sync service.

All values come from the process environment. Secrets are read through
get_env_secret so that accessing them is logged without the value.

Usage:
    from src.config.settings import get_settings

    settings = get_settings()
    if not settings.webhook_secret_configured:
        ...
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from src.platform.secrets import get_env_secret

logger = logging.getLogger(__name__)

DEFAULT_CLERK_API_URL = "https://api.clerk.com/v1"
DEFAULT_CLERK_API_TIMEOUT_SECONDS = 10.0


def _parse_timeout(raw: Optional[str]) -> float:
    if not raw:
        return DEFAULT_CLERK_API_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        logger.warning(
            "Invalid CLERK_API_TIMEOUT_SECONDS, using default",
            extra={"value": raw, "default": DEFAULT_CLERK_API_TIMEOUT_SECONDS},
        )
        return DEFAULT_CLERK_API_TIMEOUT_SECONDS
    if value <= 0:
        return DEFAULT_CLERK_API_TIMEOUT_SECONDS
    return value


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of the service configuration."""

    webhook_secret: Optional[str] = None
    clerk_secret_key: Optional[str] = None
    clerk_api_url: str = DEFAULT_CLERK_API_URL
    clerk_api_timeout_seconds: float = DEFAULT_CLERK_API_TIMEOUT_SECONDS
    database_url: Optional[str] = None
    environment: str = "development"

    @property
    def webhook_secret_configured(self) -> bool:
        return bool(self.webhook_secret)

    @property
    def clerk_api_configured(self) -> bool:
        return bool(self.clerk_secret_key)


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        webhook_secret=get_env_secret("CLERK_WEBHOOK_SECRET") or None,
        clerk_secret_key=get_env_secret("CLERK_SECRET_KEY") or None,
        clerk_api_url=(os.getenv("CLERK_API_URL") or DEFAULT_CLERK_API_URL).rstrip("/"),
        clerk_api_timeout_seconds=_parse_timeout(os.getenv("CLERK_API_TIMEOUT_SECONDS")),
        database_url=get_env_secret("DATABASE_URL") or None,
        environment=os.getenv("ENV", "development"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Process-wide settings, loaded once.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return load_settings()
