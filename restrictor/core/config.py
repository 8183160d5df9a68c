"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
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


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    Static type checkers may still treat fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return LimiterSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class LimiterSettings(BaseSettings):
    """Sliding-window limiter and store configuration.

    The coordinator derives its bucket span from ``window_seconds`` and
    ``buckets``. The store backend is selected in the store factory.
    """

    window_seconds: int = Field(
        60,
        description="Sliding window length in seconds",
        ge=1,
    )
    limit: int = Field(
        10,
        description="Maximum number of admitted events per window (0 blocks everything)",
        ge=0,
    )
    buckets: int = Field(
        60,
        description="Number of buckets the window is split into",
        ge=1,
    )
    store_backend: Literal["memory", "redis"] = Field(
        "memory",
        description="Store backend holding windows and locks (memory or redis)",
    )
    redis_url: str | None = Field(
        None,
        description="Redis connection URL (required when store_backend=redis)",
    )
    redis_key_prefix: str = Field(
        "restrictor:",
        description="Namespace prepended to every Redis key written by the store",
    )
    lock_timeout_ms: int = Field(
        1000,
        description="How long a per-key lock may be held before it expires",
        ge=1,
    )
    key_prefix: str | None = Field(
        None,
        description="Fixed coordinator key prefix; a random one is generated when unset",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Enforce the limiter on API routes per API key or client IP",
    )
    rate_limit_limit: int = Field(
        120,
        description="Requests each API key or client IP may make per caller window",
        ge=0,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Caller throttling window in seconds",
        ge=1,
    )
    rate_limit_buckets: int = Field(
        60,
        description="Number of buckets the caller throttling window is split into",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log lines are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
