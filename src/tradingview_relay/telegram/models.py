"""Data models for the Telegram Bot API boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tradingview_relay.registry.models import UNKNOWN_LABEL


@dataclass(frozen=True)
class IncomingMessage:
    """A user message addressed to the bot.

    Attributes:
        chat_id: Chat the message came from (stringified).
        label: Sender username, falling back to first name.
        text: Message text, empty for non-text messages.
    """

    chat_id: str
    label: str
    text: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IncomingMessage | None:
        """Create from a Bot API ``message`` object.

        Returns None when the message carries no chat.
        """
        chat = data.get("chat")
        if not isinstance(chat, dict) or chat.get("id") is None:
            return None

        sender = data.get("from") or {}
        label = sender.get("username") or sender.get("first_name") or UNKNOWN_LABEL

        return cls(
            chat_id=str(chat["id"]),
            label=str(label),
            text=str(data.get("text") or ""),
        )


@dataclass(frozen=True)
class Update:
    """A single entry returned by ``getUpdates`` or pushed to the webhook."""

    update_id: int
    message: IncomingMessage | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Update:
        """Create from a Bot API ``Update`` object."""
        message_data = data.get("message")
        message = (
            IncomingMessage.from_dict(message_data) if isinstance(message_data, dict) else None
        )
        return cls(update_id=int(data["update_id"]), message=message)


@dataclass(frozen=True)
class SentMessage:
    """Confirmation of a delivered message."""

    chat_id: str
    message_id: int | None
