"""Alert relay - turns an inbound alert into Telegram sends."""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING

from tradingview_relay.relay.models import (
    AlertRequest,
    MissingDestination,
    MissingText,
    RelayMode,
    RelayResult,
    RemoteAPIError,
    UnauthorizedInvalidSecret,
    UnauthorizedMissingSecret,
)

if TYPE_CHECKING:
    from tradingview_relay.registry.store import DestinationRegistry
    from tradingview_relay.relay.dispatcher import BroadcastDispatcher

logger = logging.getLogger(__name__)


class AlertRelay:
    """Validates alerts and hands them to the broadcast dispatcher.

    ``single`` mode delivers to the requested chat or the registry's default
    chat and reports Telegram's own error when that send fails. ``broadcast``
    mode delivers to every registered chat and always succeeds, with
    per-chat results.
    """

    def __init__(
        self,
        registry: DestinationRegistry,
        dispatcher: BroadcastDispatcher,
        *,
        shared_secret: str | None = None,
        auth_required: bool = True,
    ) -> None:
        """Initialize the relay.

        Args:
            registry: Source of the default chat and the broadcast list.
            dispatcher: Fan-out used for every delivery.
            shared_secret: Secret alert senders must present.
            auth_required: Enforce ``shared_secret`` when one is set.
        """
        self.registry = registry
        self.dispatcher = dispatcher
        self._shared_secret = shared_secret or None
        self.auth_required = auth_required

    @property
    def auth_enabled(self) -> bool:
        """Return True if requests must carry the shared secret."""
        return self.auth_required and self._shared_secret is not None

    def _authorize(self, request: AlertRequest) -> None:
        expected = self._shared_secret
        if not self.auth_required or expected is None:
            return
        if request.secret is None:
            raise UnauthorizedMissingSecret()
        if not hmac.compare_digest(request.secret.encode(), expected.encode()):
            raise UnauthorizedInvalidSecret()

    def _resolve(self, request: AlertRequest, mode: RelayMode) -> list[str]:
        if mode is RelayMode.BROADCAST:
            return self.registry.ids()

        destination = request.destination or self.registry.default_destination
        if destination is None:
            raise MissingDestination()
        return [destination]

    async def relay(self, request: AlertRequest, mode: RelayMode) -> RelayResult:
        """Relay an alert.

        Args:
            request: The parsed alert.
            mode: Destination selection mode.

        Returns:
            RelayResult with per-chat delivery outcomes.

        Raises:
            UnauthorizedMissingSecret: Secret required but absent.
            UnauthorizedInvalidSecret: Secret does not match.
            MissingText: The alert has no text.
            MissingDestination: Single mode with no chat id and no default.
            RemoteAPIError: Single mode and Telegram rejected the send.
        """
        self._authorize(request)

        if not request.text:
            raise MissingText()

        destinations = self._resolve(request, mode)
        logger.info(
            "Relaying alert (%s) to %d chat(s): %s",
            mode.value,
            len(destinations),
            request.text[:100],
        )

        broadcast = await self.dispatcher.send(destinations, request.text)

        if mode is RelayMode.SINGLE:
            delivery = broadcast.results[0]
            if not delivery.success:
                raise RemoteAPIError(delivery.error or "Unknown error", delivery.error_code)

        return RelayResult(mode=mode, broadcast=broadcast)
