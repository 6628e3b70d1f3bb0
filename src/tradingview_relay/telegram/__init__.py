"""Telegram Bot API boundary."""

from tradingview_relay.telegram.client import TelegramAPIError, TelegramClient
from tradingview_relay.telegram.models import IncomingMessage, SentMessage, Update

__all__ = [
    "IncomingMessage",
    "SentMessage",
    "TelegramAPIError",
    "TelegramClient",
    "Update",
]
