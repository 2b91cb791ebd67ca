"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with WARDEN_ prefix
(an optional .env file is read too). A Settings instance is built once at
startup and passed explicitly into the app factory, the storage layer and
the services — nothing reads configuration from module globals.
"""

from datetime import timedelta

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All app configuration. Set via WARDEN_* env vars."""

    # "local" (console logs), "dev" (JSON, debug) or "prod" (JSON, info)
    environment: str = "local"

    # Database
    database_url: str = "sqlite+aiosqlite:///./warden.db"
    debug: bool = False

    # Tokens
    token_ttl_minutes: int = 60

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    # Redis (optional, delivery outcome events)
    redis_url: str = ""

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = ""
    smtp_use_ssl: bool = False
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 30.0

    # Telegram bot (disabled when the token is empty)
    telegram_bot_token: str = ""
    telegram_api_url: str = "https://api.telegram.org"
    telegram_poll_timeout: int = 60

    model_config = SettingsConfigDict(env_prefix="WARDEN_", env_file=".env")

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(minutes=self.token_ttl_minutes)

    @model_validator(mode="after")
    def validate_settings(self):
        """Reject values the services cannot run with."""
        if self.environment not in ("local", "dev", "prod"):
            raise ValueError(
                "WARDEN_ENVIRONMENT must be one of: local, dev, prod"
            )
        if self.token_ttl_minutes <= 0:
            raise ValueError("WARDEN_TOKEN_TTL_MINUTES must be positive")
        if self.smtp_use_ssl and self.smtp_use_tls:
            raise ValueError(
                "WARDEN_SMTP_USE_SSL and WARDEN_SMTP_USE_TLS are mutually exclusive"
            )
        return self
