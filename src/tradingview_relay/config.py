"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
TradingView relay, loading and validating environment variables at
startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradingview_relay.relay.models import RelayMode


def _validate_http_url(v: str) -> str:
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must be an HTTP(S) endpoint")
    return v.rstrip("/")


class TelegramSettings(BaseSettings):
    """Telegram Bot API settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", env_file=".env", extra="ignore")

    bot_token: SecretStr = Field(
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token from @BotFather",
    )
    default_chat_id: str | None = Field(
        default=None,
        alias="DEFAULT_CHAT_ID",
        description="Chat used by single-mode alerts without a chat_id",
    )
    api_base: str = Field(
        default="https://api.telegram.org",
        alias="TELEGRAM_API_BASE",
        description="Telegram Bot API base URL",
    )
    parse_mode: str | None = Field(
        default="HTML",
        alias="TELEGRAM_PARSE_MODE",
        description="Parse mode for outgoing messages",
    )
    polling_enabled: bool = Field(
        default=True,
        alias="TELEGRAM_POLLING_ENABLED",
        description="Discover chats by polling getUpdates",
    )
    poll_timeout: int = Field(
        default=30,
        alias="TELEGRAM_POLL_TIMEOUT",
        description="Long-poll timeout in seconds",
        ge=0,
        le=50,
    )
    poll_delay: float = Field(
        default=1.0,
        alias="TELEGRAM_POLL_DELAY",
        description="Pause between polling cycles and after errors",
        ge=0,
    )

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: SecretStr) -> SecretStr:
        """Reject obviously malformed tokens."""
        if ":" not in v.get_secret_value():
            raise ValueError("TELEGRAM_BOT_TOKEN must look like '<bot id>:<secret>'")
        return v

    @field_validator("default_chat_id", "parse_mode", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """Treat empty strings as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("api_base")
    @classmethod
    def validate_api_base(cls, v: str) -> str:
        """Validate API base URL format."""
        return _validate_http_url(v)


class RelaySettings(BaseSettings):
    """Alert intake settings."""

    model_config = SettingsConfigDict(env_prefix="RELAY_", env_file=".env", extra="ignore")

    mode: RelayMode = Field(
        default=RelayMode.BROADCAST,
        alias="RELAY_MODE",
        description="single: one chat per alert; broadcast: every registered chat",
    )
    shared_secret: SecretStr | None = Field(
        default=None,
        alias="SHARED_SECRET",
        description="Secret alert senders must include",
    )
    auth_required: bool = Field(
        default=True,
        alias="RELAY_AUTH_REQUIRED",
        description="Enforce SHARED_SECRET when it is set",
    )
    rate_limit_per_minute: int = Field(
        default=30,
        alias="RATE_LIMIT_PER_MINUTE",
        description="Inbound requests allowed per client per minute",
        ge=1,
    )
    trust_proxy: bool = Field(
        default=False,
        alias="TRUST_PROXY",
        description="Identify clients by X-Forwarded-For (only behind a reverse proxy)",
    )

    @field_validator("shared_secret", mode="before")
    @classmethod
    def empty_secret_to_none(cls, v: object) -> object:
        """Treat an empty secret as unset."""
        if isinstance(v, str) and not v:
            return None
        return v

    @property
    def auth_enabled(self) -> bool:
        """Check if alert intake requires the shared secret."""
        return self.auth_required and self.shared_secret is not None


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from tradingview_relay.config import get_settings

        settings = get_settings()
        print(settings.port)
        print(settings.relay.mode)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)

    # Application settings
    registry_path: str = Field(
        default="./chat_ids.json",
        alias="CHAT_IDS_FILE",
        description="Where registered chat ids are saved",
    )
    port: int = Field(
        default=3000,
        alias="PORT",
        description="HTTP port",
        ge=1,
        le=65535,
    )
    external_url: str | None = Field(
        default=None,
        alias="RENDER_EXTERNAL_URL",
        description="Public base URL; enables the self-ping keep-alive",
    )
    keepalive_interval: int = Field(
        default=600,
        alias="KEEPALIVE_INTERVAL",
        description="Seconds between keep-alive pings",
        ge=10,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    @field_validator("external_url", mode="before")
    @classmethod
    def validate_external_url(cls, v: str | None) -> str | None:
        """Validate external URL format."""
        if v is None or not v.strip():
            return None
        return _validate_http_url(v)

    @property
    def keepalive_enabled(self) -> bool:
        """Check if the self-ping keep-alive should run."""
        return self.external_url is not None

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "bot_token": self._redact_token(self.telegram.bot_token.get_secret_value()),
            "default_chat_id": self.telegram.default_chat_id
            or "(auto-set when first user messages bot)",
            "polling": "enabled" if self.telegram.polling_enabled else "disabled",
            "relay_mode": self.relay.mode.value,
            "shared_secret": "(set)" if self.relay.shared_secret else "(not set)",
            "auth": "enabled" if self.relay.auth_enabled else "disabled",
            "registry_path": self.registry_path,
            "port": str(self.port),
            "keepalive": self.external_url or "(disabled)",
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_token(token: str) -> str:
        """Keep the bot id, mask the secret part of a bot token."""
        bot_id, _, _secret = token.partition(":")
        return f"{bot_id}:***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
