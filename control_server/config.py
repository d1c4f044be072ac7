"""Control server configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Control server settings loaded from environment variables.

    All variables are prefixed with ``RUNDOWN_`` (e.g. ``RUNDOWN_API_BASE_URL``).
    """

    # Rundown backend
    api_base_url: str = "http://localhost:3001"
    episode_id: Optional[str] = None
    fetch_timeout: float = 10.0

    # Control channel
    control_host: str = "0.0.0.0"
    control_port: int = 8770
    tick_interval_ms: int = 100

    # Monitoring
    metrics_port: int = 9002

    # Display default for items that never declared an automation mode
    default_automation_duration: float = 10.0

    env: str = "development"

    model_config = SettingsConfigDict(
        env_prefix="RUNDOWN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("tick_interval_ms")
    @classmethod
    def _positive_tick(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("tick_interval_ms must be positive")
        return value

    @field_validator("control_port", "metrics_port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got: {value}")
        return value

    @field_validator("fetch_timeout", "default_automation_duration")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("production", "prod", "staging")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance."""
    return Settings()
