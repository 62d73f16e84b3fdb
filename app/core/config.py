"""Settings for the annotation service.

Values come from the environment, optionally pre-seeded from
``.env.<APP_ENV>`` at the project root (``APP_ENV`` defaults to
``development``). Each concern has its own prefix: ``APP_``,
``FORMULA_QUEUE_``, ``SHEETS_`` and ``LOG_``.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_ENV = os.getenv("APP_ENV", "development")
PROJECT_ROOT = Path(__file__).resolve().parents[2]
KNOWN_ENVS = ("development", "testing", "staging", "production")


def env_file_for(app_env: str) -> Path:
    name = app_env if app_env in KNOWN_ENVS else "development"
    return PROJECT_ROOT / f".env.{name}"


# Nested settings groups read os.environ, not env_file, so seed it up front.
_env_path = env_file_for(APP_ENV)
if _env_path.is_file():
    load_dotenv(_env_path, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration (auth and admission control)."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of API keys allowed on admin endpoints",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-caller, per-route rate limiting",
    )
    rate_limit_requests: int = Field(
        5,
        description="Default maximum number of requests per window (per caller and route)",
        ge=1,
    )
    rate_limit_window_ms: int = Field(
        3000,
        description="Default sliding window length in milliseconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include Retry-After and RateLimit-* headers when throttling",
    )
    rate_limit_trust_forwarded_for: bool = Field(
        True,
        description="Use the first X-Forwarded-For hop to identify anonymous callers",
    )
    rate_limit_sweep_interval_seconds: int = Field(
        300,
        description="How often idle rate limit buckets are swept (0 disables sweeping)",
        ge=0,
    )
    rate_limit_sweep_idle_multiplier: int = Field(
        10,
        description="A bucket is swept after staying empty this many windows",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class QueueSettings(BaseSettings):
    """Background formula update queue configuration."""

    min_delay_ms: int = Field(
        5000,
        description="Delay between a first signal and the flush that processes it",
        ge=1,
    )
    guard_ms: int = Field(
        50,
        description="Slack under min_delay_ms below which an entry is considered unsettled",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="FORMULA_QUEUE_",
        case_sensitive=False,
    )


class SheetsSettings(BaseSettings):
    """Spreadsheet store (Google Sheets REST API) configuration."""

    base_url: str = Field(
        "https://sheets.googleapis.com/v4",
        description="Base URL of the Sheets REST API",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="SHEETS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """All settings groups, validated once at import time."""

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    sheets: SheetsSettings = Field(default_factory=SheetsSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
