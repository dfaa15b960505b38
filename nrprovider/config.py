from __future__ import annotations

import threading
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Provider configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- New Relic API ---
    NEWRELIC_API_KEY: str = Field(
        default="",
        description="Admin API key sent as the X-Api-Key header",
    )
    NEWRELIC_API_URL: str = Field(
        default="https://api.newrelic.com/v2",
        description="Base URL of the New Relic REST API (v2)",
    )
    NEWRELIC_HTTP_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for a single API request",
    )
    NEWRELIC_MAX_RETRIES: int = Field(
        default=3,
        ge=1,
        description="Attempts per request before a transient failure is surfaced",
    )

    # --- Logging ---
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Provider log level",
    )


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Return the singleton Settings instance (thread-safe)."""
    global _settings_instance
    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = Settings()
    return _settings_instance
