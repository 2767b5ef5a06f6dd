"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development; with no Twilio
credentials the service runs against the simulated gateway.

Usage:
    from backend.app.core.config import settings
    print(settings.TWILIO_PHONE)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Safety Alert Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Delivery provider (Twilio) ──
    ALERT_PROVIDER: str = "auto"  # auto | twilio | simulation | relay
    TWILIO_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE: Optional[str] = None

    # ── Client-side relay to POST /send-alert ──
    ALERT_SERVICE_URL: str = "http://localhost:5000"
    RELAY_TIMEOUT_SECONDS: float = 30.0

    # ── Contact persistence ──
    CONTACT_STORE_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CONTACT_KEY_PREFIX: str = "contact"
    CONTACT_TTL_HOURS: float = 96.0

    # ── Stations ──
    STATIONS_FILE: Optional[str] = None  # None → bundled police_stations.json
    NEAREST_STATION_COUNT: int = 2

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def has_twilio_credentials(self) -> bool:
        return bool(self.TWILIO_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
