"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./fleetbook.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    car_cache_ttl: int = Field(default=60, description="TTL (s) for cached car catalogue pages")

    reservation_max_attempts: int = Field(default=3, ge=1, description="Write attempts per reservation")
    reservation_base_backoff_ms: int = Field(
        default=100,
        ge=0,
        description="Backoff unit (ms); attempt N sleeps N times this value",
    )
    reservation_min_duration_minutes: int = Field(default=120, description="Shortest bookable slot")
    reservation_max_duration_minutes: int = Field(default=1440, description="Longest bookable slot")
    cancellation_notice_minutes: int = Field(default=30, description="Minimum notice before start to cancel")

    default_page_size: int = Field(default=50, description="Page size when the client does not send one")
    max_page_size: int = Field(default=200, description="Upper bound on requested page size")

    reservations_service_port: int = 8001
    cars_service_port: int = 8002


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
