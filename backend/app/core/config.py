"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from backend.app.core.config import settings
    print(settings.DISPATCH_RATE_LIMIT)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

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
    APP_NAME: str = "Outbound Dispatch Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Admission control ──
    DISPATCH_RATE_LIMIT: int = 5  # max concurrent retry chains
    DISPATCH_TICK_SECONDS: float = 1.0  # one admission per tick
    DISPATCH_AUTOSTART: bool = True  # start the scheduler with the app

    # ── Retry / backoff ──
    DISPATCH_MAX_RETRIES: int = 5  # attempts n=0..5 before exhaustion
    DISPATCH_BACKOFF_BASE_SECONDS: float = 1.0  # delay = base * 2^n

    # ── Failover ──
    FAILOVER_WARNING_THRESHOLD: int = 3

    # ── Providers ──
    # "simulation", "simulation:<failure_rate>" or an http(s) webhook URL.
    # Order is the failover order.
    DISPATCH_PROVIDERS: List[str] = ["simulation:0.5", "simulation:0.1"]
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
