"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, model_validator
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
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def parse_chat_ids(chats_string: str | None) -> set[int]:
    """Parse a comma-separated list of chat ids into a set of integers.

    Entries that are not valid integers are skipped.

    Examples:
        >>> sorted(parse_chat_ids("-1001, 42 ,abc"))
        [-1001, 42]
        >>> parse_chat_ids(None)
        set()
    """
    if not chats_string:
        return set()

    chat_ids: set[int] = set()
    for chunk in chats_string.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            chat_ids.add(int(chunk))
        except ValueError:
            continue
    return chat_ids


def _build_telegram_settings() -> "TelegramSettings":
    """Build Telegram settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return TelegramSettings()  # type: ignore[call-arg]


def _build_security_settings() -> "SecuritySettings":
    """Build security settings from environment.

    See _build_telegram_settings() for rationale about the type ignore.
    """

    return SecuritySettings()  # type: ignore[call-arg]


class TelegramSettings(BaseSettings):
    """Bot API transport configuration."""

    apitoken: str = Field(
        ...,
        description="Bot API token issued by BotFather",
    )
    api_base_url: str = Field(
        "https://api.telegram.org",
        description="Bot API endpoint (override for local Bot API servers)",
    )
    update_timeout: int = Field(
        60,
        description="Long-poll timeout for getUpdates in seconds",
        ge=0,
    )
    request_timeout_seconds: float = Field(
        10.0,
        description="Extra HTTP timeout on top of the long-poll timeout",
        gt=0,
    )
    handler_timeout_seconds: float = Field(
        15.0,
        description="Upper bound for handling a single update",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        case_sensitive=False,
    )


class SecuritySettings(BaseSettings):
    """Admission and authorization configuration."""

    admin_username: str = Field(
        ...,
        description="Telegram username allowed to run privileged commands",
    )
    allowed_chats: str | None = Field(
        None,
        description="Comma-separated list of chat ids the bot answers in (empty = all)",
    )
    rate_limit_per_min: int = Field(
        30,
        description="Maximum number of messages per user per window",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Sliding window size in seconds",
        ge=1,
    )
    max_message_chars: int = Field(
        4000,
        description="Maximum accepted message length in characters",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        case_sensitive=False,
    )

    @property
    def allowed_chat_ids(self) -> set[int]:
        return parse_chat_ids(self.allowed_chats)


class DatabaseSettings(BaseSettings):
    """SQLite storage configuration."""

    path: str = Field(
        "bot.db",
        description="SQLite database file path (':memory:' for a non-persistent store whose single connection is shared under a lock)",
    )
    timeout_seconds: float = Field(
        5.0,
        description="How long a statement waits for the database lock",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )


class HealthSettings(BaseSettings):
    """Health probe HTTP server configuration."""

    host: str = Field("0.0.0.0", description="Bind address for the health server")
    port: int = Field(8080, description="Port for the health server")
    check_timeout_seconds: float = Field(
        5.0,
        description="Timeout for a single storage ping",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="HEALTH_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("info", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate log file after this many bytes (0 = never)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate correlation ids on the health server",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing
    (TELEGRAM_APITOKEN and SECURITY_ADMIN_USERNAME).
    """

    app_env: str = APP_ENV
    telegram: TelegramSettings = Field(default_factory=_build_telegram_settings)
    security: SecuritySettings = Field(default_factory=_build_security_settings)
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _handler_outlasts_lock_wait(self) -> "Settings":
        # Lock waits must expire inside the handler budget
        if self.telegram.handler_timeout_seconds <= self.db.timeout_seconds:
            raise ValueError(
                "TELEGRAM_HANDLER_TIMEOUT_SECONDS must be greater than DB_TIMEOUT_SECONDS"
            )
        return self


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
