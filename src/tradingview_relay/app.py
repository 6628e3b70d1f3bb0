"""Application wiring for the relay service.

Every component receives its collaborators explicitly; the registry is the
only shared mutable state and is passed to each component that needs it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tradingview_relay.ingestor.handler import MessageHandler
from tradingview_relay.ingestor.poller import UpdatePoller
from tradingview_relay.keepalive import KeepAlive
from tradingview_relay.ratelimit import SlidingWindowLimiter
from tradingview_relay.registry.store import DestinationRegistry
from tradingview_relay.relay.dispatcher import BroadcastDispatcher
from tradingview_relay.relay.relay import AlertRelay
from tradingview_relay.server.activity import ActivityLog
from tradingview_relay.server.http import RelayServer
from tradingview_relay.telegram.client import TelegramClient

if TYPE_CHECKING:
    from tradingview_relay.config import Settings

logger = logging.getLogger(__name__)


class RelayApplication:
    """Builds and runs the relay components from settings.

    Example:
        ```python
        app = RelayApplication(get_settings())
        await app.start()
        ...
        await app.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: TelegramClient | None = None,
        polling: bool | None = None,
    ) -> None:
        """Construct all components.

        Args:
            settings: Application settings.
            client: Telegram client override (tests).
            polling: Override ``settings.telegram.polling_enabled``.
        """
        self.settings = settings
        telegram = settings.telegram
        relay_settings = settings.relay

        self.registry = DestinationRegistry(
            settings.registry_path,
            default_destination=telegram.default_chat_id,
        )
        self.registry.load()

        self.client = client or TelegramClient(
            telegram.bot_token.get_secret_value(),
            api_base=telegram.api_base,
            parse_mode=telegram.parse_mode,
        )
        self.dispatcher = BroadcastDispatcher(self.client)

        shared_secret = (
            relay_settings.shared_secret.get_secret_value()
            if relay_settings.shared_secret
            else None
        )
        self.relay = AlertRelay(
            self.registry,
            self.dispatcher,
            shared_secret=shared_secret,
            auth_required=relay_settings.auth_required,
        )
        self.handler = MessageHandler(
            self.registry,
            self.client,
            auth_enabled=relay_settings.auth_enabled,
        )

        polling_enabled = telegram.polling_enabled if polling is None else polling
        self.poller: UpdatePoller | None = (
            UpdatePoller(
                self.client,
                self.handler,
                poll_timeout=telegram.poll_timeout,
                poll_delay=telegram.poll_delay,
            )
            if polling_enabled
            else None
        )

        self.activity = ActivityLog()
        self.server = RelayServer(
            self.relay,
            self.registry,
            self.handler,
            relay_mode=relay_settings.mode,
            activity=self.activity,
            rate_limiter=SlidingWindowLimiter(relay_settings.rate_limit_per_minute, window=60.0),
            trust_proxy=relay_settings.trust_proxy,
        )

        keepalive_url = settings.external_url if settings.keepalive_enabled else None
        self.keepalive: KeepAlive | None = (
            KeepAlive(keepalive_url, interval=settings.keepalive_interval)
            if keepalive_url
            else None
        )

    async def start(self) -> None:
        """Start the HTTP server and background loops."""
        await self.server.start(port=self.settings.port)
        if self.poller:
            await self.poller.start()
        if self.keepalive:
            await self.keepalive.start()
        logger.info(
            "Relay started (mode=%s, registered chats=%d, default chat=%s)",
            self.settings.relay.mode.value,
            len(self.registry),
            self.registry.default_destination or "auto",
        )

    async def stop(self) -> None:
        """Stop background loops, then the HTTP server."""
        if self.keepalive:
            await self.keepalive.stop()
        if self.poller:
            await self.poller.stop()
        await self.server.stop()
        logger.info("Relay stopped")
