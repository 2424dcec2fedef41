# backend/tutorbook/core/config.py
import logging
import os
from typing import Annotated, Literal, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import pytz

from .constants import BRAND_NAME

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    is_testing: bool = False  # Set to True when running tests
    log_level: str = Field(default="INFO", description="Root log level")

    # Database
    database_url: str = Field(
        default="sqlite+pysqlite:///./tutorbook.db",
        description="SQLAlchemy URL; PostgreSQL in production, SQLite for local runs",
    )
    sqlite_busy_timeout_s: float = Field(
        default=30.0, description="Seconds a SQLite writer waits for the database lock"
    )

    # Scheduling
    system_timezone: str = Field(
        default="UTC",
        description="Single zone used for template times, week boundaries and slot comparisons",
    )
    slot_granularity_minutes: int = Field(
        default=30, ge=5, le=240, description="Length of one bookable unit"
    )
    booking_window_days: int = Field(
        default=14, ge=1, description="Default rolling window for availability queries"
    )
    max_booking_window_days: int = Field(
        default=60, ge=1, description="Upper bound on an availability query window"
    )
    session_duration_options: Annotated[list[int], NoDecode] = Field(
        default_factory=lambda: [30, 60, 90, 120],
        description="Session lengths (minutes) a student may book",
    )

    # Per-process payment request guard
    payment_guard_max_requests: int = Field(default=3, ge=1)
    payment_guard_window_ms: int = Field(default=60_000, ge=1)
    payment_guard_min_interval_ms: int = Field(default=2_000, ge=0)
    payment_guard_cooldown_ms: int = Field(default=20_000, ge=0)
    payment_guard_stale_after_ms: Optional[int] = Field(
        default=30_000,
        description="Release an in-flight marker nobody ended after this long (None disables)",
    )

    # Provider-side throttle keyed by client fingerprint
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_backend: Literal["memory", "redis"] = Field(default="memory")
    rate_limit_redis_url: str = Field(default="redis://localhost:6379/0")
    rate_limit_namespace: str = Field(default="tutorbook")
    payment_intent_rate_limit: int = Field(
        default=10, ge=1, description="Payment-intent requests per client per window"
    )
    payment_intent_rate_window_s: int = Field(default=60, ge=1)

    # Payment provider
    stripe_secret_key: Optional[SecretStr] = Field(default=None)
    stripe_currency: str = Field(default="usd")
    stripe_max_network_retries: int = Field(
        default=2, ge=0, description="Retries for transient network failures only"
    )
    external_call_timeout_s: float = Field(
        default=30.0, gt=0, description="Fixed timeout for payment provider calls"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("system_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("session_duration_options", mode="before")
    @classmethod
    def _parse_duration_options(cls, value: object) -> object:
        if isinstance(value, str):
            return [int(token.strip()) for token in value.split(",") if token.strip()]
        return value

    @model_validator(mode="after")
    def _check_window_bounds(self) -> "Settings":
        if self.booking_window_days > self.max_booking_window_days:
            raise ValueError("BOOKING_WINDOW_DAYS cannot exceed MAX_BOOKING_WINDOW_DAYS")
        if any(minutes <= 0 for minutes in self.session_duration_options):
            raise ValueError("SESSION_DURATION_OPTIONS must be positive minute values")
        return self


settings = Settings()
logger.debug(
    "[CONFIG] %s settings loaded: environment=%s timezone=%s",
    BRAND_NAME,
    settings.environment,
    settings.system_timezone,
)
