"""HTTP layer - alert intake, Telegram webhook and observability endpoints."""

from tradingview_relay.server.activity import ActivityEntry, ActivityLog, ActivityType
from tradingview_relay.server.http import RelayServer, read_body

__all__ = [
    "ActivityEntry",
    "ActivityLog",
    "ActivityType",
    "RelayServer",
    "read_body",
]
