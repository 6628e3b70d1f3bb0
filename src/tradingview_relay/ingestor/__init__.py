"""Inbound message ingestion - chat discovery via polling and webhook."""

from tradingview_relay.ingestor.handler import MessageHandler
from tradingview_relay.ingestor.poller import PollerStats, UpdatePoller

__all__ = [
    "MessageHandler",
    "PollerStats",
    "UpdatePoller",
]
