"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Service-wide configuration consumed by the link, QR and rate-limit core."""

    host: str = Field(
        "0.0.0.0",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        8080,
        description="Port the HTTP server listens on",
        ge=1,
        le=65535,
    )
    base_url: str = Field(
        "http://localhost:8080",
        description="Public base URL used to compose short_url values",
    )
    database_url: str = Field(
        "sqlite:///data/shortener.db",
        description="SQLAlchemy URL of the single-file SQLite store",
    )

    qr_size: int = Field(
        512,
        description="Rendered QR image width/height in pixels",
        ge=64,
        le=4096,
    )
    qr_branding_logo: str | None = Field(
        None,
        description="Optional path to a raster logo composited in the QR centre",
    )
    qr_logo_scale: float = Field(
        0.2,
        description="Requested logo width as a fraction of the QR symbol width",
        gt=0,
        le=1,
    )

    cleanup_interval_minutes: int = Field(
        60,
        description="Minutes between expiry sweeps (0 disables the sweeper)",
        ge=0,
    )
    max_collision_retries: int = Field(
        5,
        description="Attempts to allocate a unique short code before giving up",
        ge=1,
    )
    default_ttl: str = Field(
        "1_week",
        description="TTL preset applied when a create request omits ttl",
    )

    admin_secret: str | None = Field(
        None,
        description="Shared secret required (X-Delete-Secret) for list/delete; unset = open",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting",
    )
    rate_limit_per_minute: int = Field(
        60,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers alongside Retry-After when throttling",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Key clients by the first X-Forwarded-For hop (behind a trusted proxy)",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by CORS (JSON list); an empty list disables CORS",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )

    @field_validator("default_ttl")
    @classmethod
    def _check_default_ttl(cls, value: str) -> str:
        # Deferred: the domain package imports app.core.
        from app.core.errors import ValidationAppError
        from app.domain.ttl import Ttl

        try:
            return Ttl.parse(value).value
        except ValidationAppError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("admin_secret", "qr_branding_logo")
    @classmethod
    def _blank_as_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
