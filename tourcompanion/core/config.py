"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


class AppSettings(BaseSettings):
    """Application-wide configuration, including the limiter presets."""

    rate_limit_enabled: bool = Field(
        True,
        description="Enforce rate limits on gated routes",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers in responses",
    )
    timezone_header: str = Field(
        "X-Client-Timezone",
        description="Header carrying the client's IANA timezone for fingerprinting",
    )

    client_portal_max_requests: int = Field(
        10,
        description="Client portal page loads allowed per window",
        ge=1,
    )
    client_portal_window_ms: int = Field(
        60 * 1000,
        description="Client portal window size in milliseconds",
        ge=1,
    )
    api_max_requests: int = Field(
        100,
        description="API calls allowed per window",
        ge=1,
    )
    api_window_ms: int = Field(
        60 * 1000,
        description="API window size in milliseconds",
        ge=1,
    )
    auth_max_requests: int = Field(
        5,
        description="Authentication attempts allowed per window",
        ge=1,
    )
    auth_window_ms: int = Field(
        15 * 60 * 1000,
        description="Authentication window size in milliseconds",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log format: 'json' or 'plain'",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

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


# Global settings instance composed from domain-specific settings
settings = Settings()
