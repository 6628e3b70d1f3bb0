"""Alert relay layer - validation, destination resolution and fan-out."""

from tradingview_relay.relay.dispatcher import (
    BroadcastDispatcher,
    BroadcastResult,
    DeliveryResult,
    MessageSender,
)
from tradingview_relay.relay.models import (
    AlertRequest,
    MissingDestination,
    MissingText,
    RelayError,
    RelayMode,
    RelayResult,
    RemoteAPIError,
    UnauthorizedError,
    UnauthorizedInvalidSecret,
    UnauthorizedMissingSecret,
)
from tradingview_relay.relay.relay import AlertRelay

__all__ = [
    "AlertRelay",
    "AlertRequest",
    "BroadcastDispatcher",
    "BroadcastResult",
    "DeliveryResult",
    "MessageSender",
    "MissingDestination",
    "MissingText",
    "RelayError",
    "RelayMode",
    "RelayResult",
    "RemoteAPIError",
    "UnauthorizedError",
    "UnauthorizedInvalidSecret",
    "UnauthorizedMissingSecret",
]
