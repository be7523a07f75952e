"""Application configuration loaded from the environment via Pydantic settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration for the booking service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = Field(default="Facility Booking Service")
    booking_buffer_minutes: int = Field(
        default=30,
        ge=0,
        description="Margin added around a new booking's window before overlap testing.",
    )
    session_ttl_minutes: int = Field(default=480, gt=0, description="Session lifetime in minutes")
    seed_demo_data: bool = Field(
        default=False,
        description="Create an admin account and sample facilities on startup.",
    )
    demo_admin_password: str = Field(default="admin")
    default_facility_color: str = Field(default="#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$")
    log_level: str = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
