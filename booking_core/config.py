"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./smartoffice.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    service_api_key: str = Field(default="service-key", description="API key for service-to-service calls")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    booking_submit_rate_limit: str = Field(default="20/minute", description="Limit for booking submissions")
    booking_decision_rate_limit: str = Field(default="30/minute", description="Limit for approve, reject and cancel calls")
    booking_read_rate_limit: str = Field(default="60/minute", description="Limit for booking reads and previews")
    resource_cache_ttl: int = Field(default=60, description="TTL (s) for cached resource listings")
    audit_log_dir: str = Field(default="logs", description="Directory receiving the per-service audit logs")

    broker_host: Optional[str] = Field(
        default=None,
        description="RabbitMQ host for booking events. Publishing is disabled when unset.",
    )
    broker_queue: str = Field(default="bookings", description="Durable queue receiving booking events")

    office_timezone: str = Field(default="UTC", description="IANA timezone used for opening hours")
    slot_step_minutes: int = Field(default=30, gt=0, description="Granularity of alternative slot suggestions")
    office_open_hour: int = Field(default=9, ge=0, le=23, description="First bookable hour of a day")
    office_close_hour: int = Field(default=21, ge=1, le=24, description="Latest hour a suggested slot may start")
    slot_search_days: int = Field(default=7, ge=0, description="Days after today scanned for a free slot")

    resources_service_port: int = 8002
    bookings_service_port: int = 8003


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
