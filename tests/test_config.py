"""Tests for configuration management service."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from tradingview_relay.config import (
    RelaySettings,
    Settings,
    TelegramSettings,
    clear_settings_cache,
    get_settings,
)
from tradingview_relay.relay.models import RelayMode

if TYPE_CHECKING:
    from collections.abc import Iterator

TOKEN = "123456:ABC-DEF"


@pytest.fixture(autouse=True)
def clear_cache() -> Iterator[None]:
    """Clear settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestTelegramSettings:
    """Tests for TelegramSettings."""

    def test_token_required(self) -> None:
        """Test that a missing bot token raises validation error."""
        with patch.dict(os.environ, {}, clear=True), pytest.raises(ValidationError):
            TelegramSettings()

    def test_defaults(self) -> None:
        """Test default values with only the token set."""
        with patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN}, clear=True):
            settings = TelegramSettings()
            assert settings.bot_token.get_secret_value() == TOKEN
            assert settings.default_chat_id is None
            assert settings.api_base == "https://api.telegram.org"
            assert settings.parse_mode == "HTML"
            assert settings.polling_enabled is True
            assert settings.poll_timeout == 30

    def test_malformed_token_raises(self) -> None:
        """Test that a token without the bot id separator is rejected."""
        with (
            patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": "not-a-token"}, clear=True),
            pytest.raises(ValidationError, match="bot id"),
        ):
            TelegramSettings()

    def test_default_chat_id(self) -> None:
        """Test explicit default chat id."""
        with patch.dict(
            os.environ,
            {"TELEGRAM_BOT_TOKEN": TOKEN, "DEFAULT_CHAT_ID": "-100123"},
            clear=True,
        ):
            settings = TelegramSettings()
            assert settings.default_chat_id == "-100123"

    def test_empty_default_chat_id_is_unset(self) -> None:
        """Test that an empty DEFAULT_CHAT_ID counts as unset."""
        with patch.dict(
            os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN, "DEFAULT_CHAT_ID": ""}, clear=True
        ):
            settings = TelegramSettings()
            assert settings.default_chat_id is None

    def test_invalid_api_base_raises(self) -> None:
        """Test that a non-HTTP API base is rejected."""
        with (
            patch.dict(
                os.environ,
                {"TELEGRAM_BOT_TOKEN": TOKEN, "TELEGRAM_API_BASE": "ftp://api"},
                clear=True,
            ),
            pytest.raises(ValidationError, match="HTTP"),
        ):
            TelegramSettings()

    def test_polling_disabled(self) -> None:
        """Test disabling polling from the environment."""
        with patch.dict(
            os.environ,
            {"TELEGRAM_BOT_TOKEN": TOKEN, "TELEGRAM_POLLING_ENABLED": "false"},
            clear=True,
        ):
            settings = TelegramSettings()
            assert settings.polling_enabled is False


class TestRelaySettings:
    """Tests for RelaySettings."""

    def test_defaults(self) -> None:
        """Test broadcast mode without auth by default."""
        with patch.dict(os.environ, {}, clear=True):
            settings = RelaySettings()
            assert settings.mode is RelayMode.BROADCAST
            assert settings.shared_secret is None
            assert settings.auth_required is True
            assert not settings.auth_enabled
            assert settings.rate_limit_per_minute == 30
            assert settings.trust_proxy is False

    def test_single_mode(self) -> None:
        """Test selecting single mode."""
        with patch.dict(os.environ, {"RELAY_MODE": "single"}, clear=True):
            settings = RelaySettings()
            assert settings.mode is RelayMode.SINGLE

    def test_invalid_mode_raises(self) -> None:
        """Test that unknown modes are rejected."""
        with (
            patch.dict(os.environ, {"RELAY_MODE": "multicast"}, clear=True),
            pytest.raises(ValidationError),
        ):
            RelaySettings()

    def test_auth_enabled_with_secret(self) -> None:
        """Test auth is enabled when a secret is configured."""
        with patch.dict(os.environ, {"SHARED_SECRET": "s3cret"}, clear=True):
            settings = RelaySettings()
            assert settings.shared_secret is not None
            assert settings.shared_secret.get_secret_value() == "s3cret"
            assert settings.auth_enabled

    def test_auth_not_required(self) -> None:
        """Test open mode ignores a configured secret."""
        with patch.dict(
            os.environ, {"SHARED_SECRET": "s3cret", "RELAY_AUTH_REQUIRED": "false"}, clear=True
        ):
            settings = RelaySettings()
            assert not settings.auth_enabled

    def test_trust_proxy(self) -> None:
        """Test opting in to X-Forwarded-For client keys."""
        with patch.dict(os.environ, {"TRUST_PROXY": "true"}, clear=True):
            settings = RelaySettings()
            assert settings.trust_proxy is True

    def test_empty_secret_is_unset(self) -> None:
        """Test that an empty SHARED_SECRET counts as unset."""
        with patch.dict(os.environ, {"SHARED_SECRET": ""}, clear=True):
            settings = RelaySettings()
            assert settings.shared_secret is None


class TestSettings:
    """Tests for main Settings class."""

    def test_loads_with_required_vars(self) -> None:
        """Test settings load with required environment variables."""
        with patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN}, clear=True):
            settings = Settings()
            assert settings.telegram.bot_token.get_secret_value() == TOKEN
            assert settings.port == 3000
            assert settings.registry_path == "./chat_ids.json"
            assert settings.log_level == "INFO"
            assert not settings.keepalive_enabled

    def test_missing_token_raises(self) -> None:
        """Test settings fail without a bot token."""
        with patch.dict(os.environ, {}, clear=True), pytest.raises(ValidationError):
            Settings()

    def test_port_validation(self) -> None:
        """Test port must be a valid port number."""
        with (
            patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN, "PORT": "99999"}, clear=True),
            pytest.raises(ValidationError, match="65535"),
        ):
            Settings()

    def test_external_url_enables_keepalive(self) -> None:
        """Test RENDER_EXTERNAL_URL turns on keep-alive."""
        with patch.dict(
            os.environ,
            {"TELEGRAM_BOT_TOKEN": TOKEN, "RENDER_EXTERNAL_URL": "https://relay.example.com/"},
            clear=True,
        ):
            settings = Settings()
            assert settings.keepalive_enabled
            assert settings.external_url == "https://relay.example.com"

    def test_invalid_external_url_raises(self) -> None:
        """Test invalid external URL raises validation error."""
        with (
            patch.dict(
                os.environ,
                {"TELEGRAM_BOT_TOKEN": TOKEN, "RENDER_EXTERNAL_URL": "relay.example.com"},
                clear=True,
            ),
            pytest.raises(ValidationError, match="HTTP"),
        ):
            Settings()

    def test_invalid_log_level_raises(self) -> None:
        """Test invalid log level raises validation error."""
        with (
            patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN, "LOG_LEVEL": "TRACE"}, clear=True),
            pytest.raises(ValidationError),
        ):
            Settings()

    def test_get_logging_level(self) -> None:
        """Test get_logging_level returns numeric level."""
        import logging

        with patch.dict(
            os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN, "LOG_LEVEL": "WARNING"}, clear=True
        ):
            settings = Settings()
            assert settings.get_logging_level() == logging.WARNING

    def test_redacted_summary(self) -> None:
        """Test redacted_summary masks sensitive data."""
        with patch.dict(
            os.environ,
            {"TELEGRAM_BOT_TOKEN": TOKEN, "SHARED_SECRET": "s3cret"},
            clear=True,
        ):
            summary = Settings().redacted_summary()

            assert "ABC-DEF" not in summary["bot_token"]
            assert summary["bot_token"] == "123456:***"
            assert "s3cret" not in str(summary)
            assert summary["shared_secret"] == "(set)"
            assert summary["auth"] == "enabled"


class TestGetSettings:
    """Tests for get_settings singleton."""

    def test_returns_same_instance(self) -> None:
        """Test get_settings returns cached instance."""
        with patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN}, clear=True):
            settings1 = get_settings()
            settings2 = get_settings()
            assert settings1 is settings2

    def test_clear_cache_allows_reload(self) -> None:
        """Test clear_settings_cache allows reloading settings."""
        with patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN, "PORT": "3000"}, clear=True):
            settings1 = get_settings()
            assert settings1.port == 3000

        clear_settings_cache()

        with patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": TOKEN, "PORT": "8080"}, clear=True):
            settings2 = get_settings()
            assert settings2.port == 8080
            assert settings1 is not settings2
