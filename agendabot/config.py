"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env file or environment variables.

Environment Variables:
    BACKEND_URL: Base URL of the scheduling backend (services, hours, bookings)
    REDIS_URL: Redis connection string
    BUSINESS_TIMEZONE: IANA timezone used to decide what "today" is
    SESSION_TTL: Idle lifetime of an unfinished booking conversation (seconds)
    COMPLETED_SESSION_TTL: How long a completed booking session is retained
    APP_ENV: Environment name (development/staging/production)
    DEBUG: Enable debug mode (default: False)
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Scheduling backend
    backend_url: str = "http://localhost:3000"
    """Base URL of the scheduling backend.

    All catalog, availability and save-booking calls are made against it.
    """

    services_path: str = "/api/chatbot/services"
    blocked_times_path: str = "/api/schedule/get-appointments"
    tenant_hours_path: str = "/api/chatbot/user-times"
    save_booking_path: str = "/api/chatbot/save-appointment"

    request_timeout: float = 10.0
    """Timeout in seconds for every upstream call.

    A timed out call is treated like any other upstream failure.
    """

    business_timezone: str = "America/Sao_Paulo"
    """Timezone used for date validation and the appointment timestamp."""

    default_tenant_id: str = ""
    """Tenant used when an inbound message cannot be mapped to one."""

    # Redis Configuration
    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL.

    Used for booking sessions and the persistence outbox. When Redis is
    unreachable both fall back to process memory.
    """

    redis_connect_timeout: float = 2.0

    redis_reconnect_interval: float = 30.0
    """Seconds to wait after a failed connect before trying Redis again."""

    session_ttl: int = 1800
    """Lifetime of an unfinished booking session in seconds (default: 30 minutes).

    Refreshed on every saved transition, so it measures inactivity.
    """

    completed_session_ttl: int = 86400
    """Retention of a completed booking session in seconds (default: 1 day)."""

    catalog_cache_ttl: int = 300
    """Seconds a tenant's service catalog stays cached. 0 keeps it until invalidated."""

    # Outbox
    outbox_retry_interval: float = 60.0
    """Seconds between background retries of failed booking saves."""

    outbox_max_attempts: int = 10
    """Save attempts before a booking is moved to the dead-letter list."""

    # Application Environment
    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment."""

    debug: bool = False
    """Enable debug logging."""

    log_level: str = "INFO"

    app_name: str = "agendabot"
    host: str = "0.0.0.0"
    port: int = 3001

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


# Module-level settings instance for easy imports
settings = get_settings()
