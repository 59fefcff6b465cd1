"""Configuration management for the Avanza API client."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from avanza_api.core.constants import (
    BACKOFF_FLOOR_SECONDS,
    BASE_URL,
    DEFAULT_ADVICE_TIMEOUT_SECONDS,
    DEFAULT_LOG_DIR,
    DEFAULT_USER_AGENT,
    LIVENESS_GRACE_SECONDS,
    LIVENESS_INTERVAL_SECONDS,
    MAX_BACKOFF_SECONDS,
    MAX_INACTIVE_MINUTES,
    MIN_INACTIVE_MINUTES,
    PUSH_URL,
)


class AvanzaConfig(BaseSettings):
    """Avanza connection, session and push-channel configuration.

    Uses Pydantic v2 settings with environment variable support.
    """

    model_config = SettingsConfigDict(
        env_prefix="AVANZA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Connection settings
    base_url: str = Field(default=BASE_URL, description="REST API base URL")
    push_url: str = Field(default=PUSH_URL, description="Bayeux websocket endpoint")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header")
    request_timeout: float = Field(default=30.0, description="REST request timeout in seconds")

    # Session settings
    session_timeout_minutes: int = Field(
        default=MAX_INACTIVE_MINUTES,
        description="Requested server-side inactivity timeout for the session",
    )
    min_session_minutes: int = Field(
        default=MIN_INACTIVE_MINUTES,
        description="Smallest accepted session inactivity timeout",
    )
    max_session_minutes: int = Field(
        default=MAX_INACTIVE_MINUTES,
        description="Largest accepted session inactivity timeout",
    )

    # Push channel settings
    max_backoff_seconds: float = Field(
        default=MAX_BACKOFF_SECONDS, description="Upper bound for retry delays"
    )
    backoff_floor_seconds: float = Field(
        default=BACKOFF_FLOOR_SECONDS, description="Fixed amount added to every growing delay"
    )
    liveness_interval_seconds: float = Field(
        default=LIVENESS_INTERVAL_SECONDS,
        description="How often the push socket liveness monitor runs",
    )
    liveness_grace_seconds: float = Field(
        default=LIVENESS_GRACE_SECONDS,
        description="Slack added to the advised connect timeout before restarting",
    )
    advice_timeout_seconds: float = Field(
        default=DEFAULT_ADVICE_TIMEOUT_SECONDS,
        description="Connect timeout assumed until the server advises one",
    )

    # Diagnostics
    log_dir: Path = Field(default=DEFAULT_LOG_DIR, description="Directory for logs")
    telemetry_file: Path | None = Field(
        default=None, description="Optional JSON lines file receiving diagnostics"
    )

    # CLI convenience only, never persisted by the client
    username: str | None = Field(default=None, description="Login username")
    password: SecretStr | None = Field(default=None, description="Login password")
    totp_secret: SecretStr | None = Field(
        default=None, description="Shared secret used to generate one-time codes"
    )

    @field_validator("max_backoff_seconds", "liveness_interval_seconds")
    @classmethod
    def validate_positive(cls, value: float) -> float:
        """Ensure timing knobs are strictly positive."""
        if value <= 0:
            raise ValueError("value must be greater than 0")
        return value

    @field_validator("backoff_floor_seconds", "liveness_grace_seconds")
    @classmethod
    def validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    def session_timeout_in_range(self) -> bool:
        """Return True when the requested session timeout lies within policy bounds."""
        return self.min_session_minutes <= self.session_timeout_minutes <= self.max_session_minutes


def load_config() -> AvanzaConfig:
    """Load configuration from environment and .env file."""
    return AvanzaConfig()
