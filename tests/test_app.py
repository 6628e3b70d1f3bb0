"""Tests for application wiring."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from tradingview_relay.app import RelayApplication
from tradingview_relay.config import Settings
from tradingview_relay.relay.models import RelayMode

TOKEN = "123456:ABC-DEF"


def make_settings(tmp_path: Path, **env: str) -> Settings:
    environ = {
        "TELEGRAM_BOT_TOKEN": TOKEN,
        "CHAT_IDS_FILE": str(tmp_path / "chat_ids.json"),
        **env,
    }
    with patch.dict(os.environ, environ, clear=True):
        return Settings()


class TestRelayApplication:
    """Tests for RelayApplication."""

    def test_wiring_defaults(self, tmp_path: Path) -> None:
        app = RelayApplication(make_settings(tmp_path))

        assert app.poller is not None
        assert app.keepalive is None
        assert app.server.relay_mode is RelayMode.BROADCAST
        assert app.server.registry is app.registry
        assert app.relay.registry is app.registry
        assert app.handler.registry is app.registry
        assert app.client.bot_token == TOKEN
        assert not app.relay.auth_enabled
        assert app.server.trust_proxy is False

    def test_polling_override(self, tmp_path: Path) -> None:
        app = RelayApplication(make_settings(tmp_path), polling=False)
        assert app.poller is None

    def test_loads_snapshot(self, tmp_path: Path) -> None:
        (tmp_path / "chat_ids.json").write_text(
            json.dumps([{"id": "1", "label": "alice"}]), encoding="utf-8"
        )

        app = RelayApplication(make_settings(tmp_path))

        assert app.registry.ids() == ["1"]
        assert app.registry.default_destination == "1"

    def test_configured_default(self, tmp_path: Path) -> None:
        app = RelayApplication(make_settings(tmp_path, DEFAULT_CHAT_ID="-100"))
        assert app.registry.default_destination == "-100"

    def test_secured_single_mode(self, tmp_path: Path) -> None:
        app = RelayApplication(
            make_settings(tmp_path, RELAY_MODE="single", SHARED_SECRET="s3cret")
        )

        assert app.server.relay_mode is RelayMode.SINGLE
        assert app.relay.auth_enabled
        assert app.handler.auth_enabled

    def test_keepalive_enabled(self, tmp_path: Path) -> None:
        app = RelayApplication(
            make_settings(tmp_path, RENDER_EXTERNAL_URL="https://relay.example.com")
        )

        assert app.keepalive is not None
        assert app.keepalive.url == "https://relay.example.com/health"

    def test_trust_proxy(self, tmp_path: Path) -> None:
        app = RelayApplication(make_settings(tmp_path, TRUST_PROXY="true"))
        assert app.server.trust_proxy is True

    def test_injected_client(self, tmp_path: Path) -> None:
        client = AsyncMock()
        app = RelayApplication(make_settings(tmp_path), client=client)

        assert app.client is client
        assert app.dispatcher.sender is client

    @pytest.mark.parametrize("polling", [True, False])
    async def test_start_and_stop(self, tmp_path: Path, polling: bool) -> None:
        client = AsyncMock()
        client.get_updates.return_value = []
        app = RelayApplication(make_settings(tmp_path), client=client, polling=polling)

        with patch.object(app.server, "start", new_callable=AsyncMock) as start:
            await app.start()
            if polling:
                assert app.poller is not None
                assert app.poller.is_running
            await app.stop()

        start.assert_awaited_once_with(port=app.settings.port)
        if app.poller:
            assert not app.poller.is_running
