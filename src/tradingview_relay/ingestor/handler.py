"""Handling of user messages sent to the bot.

Both the polling loop and the Telegram webhook feed messages through
MessageHandler, which registers the chat and answers it.
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING, Any

from tradingview_relay.telegram.client import TelegramAPIError
from tradingview_relay.telegram.models import IncomingMessage

if TYPE_CHECKING:
    from tradingview_relay.registry.store import DestinationRegistry
    from tradingview_relay.relay.dispatcher import MessageSender

logger = logging.getLogger(__name__)

COMMAND_START = "/start"
COMMAND_CHATID = "/chatid"
COMMAND_STATUS = "/status"


def welcome_text(chat_id: str) -> str:
    return (
        "✅ <b>Welcome!</b>\n\n"
        f"Your chat ID: <code>{html.escape(chat_id)}</code>\n\n"
        "You will now receive TradingView alerts here! 🎯"
    )


def start_text(chat_id: str, label: str) -> str:
    return (
        f"👋 <b>Hello {html.escape(label)}!</b>\n\n"
        f"Your chat ID: <code>{html.escape(chat_id)}</code>\n\n"
        "✅ You are registered to receive alerts.\n\n"
        "Commands:\n"
        f"{COMMAND_START} - Show this message\n"
        f"{COMMAND_CHATID} - Get your chat ID\n"
        f"{COMMAND_STATUS} - Check bot status"
    )


def chatid_text(chat_id: str) -> str:
    return f"📋 Your chat ID: <code>{html.escape(chat_id)}</code>"


def status_text(registered: int, auth_enabled: bool) -> str:
    return (
        "🤖 <b>Bot Status</b>\n\n"
        "✅ Bot is running\n"
        f"📋 Registered users: {registered}\n"
        f"🔐 Webhook security: {'Enabled' if auth_enabled else 'Disabled'}"
    )


def echo_text(text: str) -> str:
    return (
        f'👋 Hi! I received: "{html.escape(text)}"\n\n'
        f"I'm a TradingView alert bot. Send {COMMAND_START} for help."
    )


class MessageHandler:
    """Registers chats that message the bot and replies to them.

    New chats get a welcome message. Known chats get a reply to the
    recognized commands, or an echo of whatever they sent.
    """

    def __init__(
        self,
        registry: DestinationRegistry,
        sender: MessageSender,
        *,
        auth_enabled: bool = False,
    ) -> None:
        """Initialize the handler.

        Args:
            registry: Registry new chats are added to.
            sender: Used to send replies.
            auth_enabled: Whether alert intake requires the shared secret
                (reported by /status).
        """
        self.registry = registry
        self.sender = sender
        self.auth_enabled = auth_enabled

    def _reply_for(self, message: IncomingMessage, is_new: bool) -> str:
        if is_new:
            return welcome_text(message.chat_id)

        command = message.text.strip().split("@", 1)[0]
        if command == COMMAND_START:
            return start_text(message.chat_id, message.label)
        if command == COMMAND_CHATID:
            return chatid_text(message.chat_id)
        if command == COMMAND_STATUS:
            return status_text(len(self.registry), self.auth_enabled)
        return echo_text(message.text)

    async def handle_message(self, message: IncomingMessage) -> bool:
        """Register the sender's chat and reply.

        Reply failures are logged, not raised.

        Returns:
            True if the chat was newly registered.
        """
        logger.info(
            "Message from %s (%s): %s", message.label, message.chat_id, message.text[:50]
        )

        result = await self.registry.register(message.chat_id, message.label)
        if not result.persisted:
            logger.warning(
                "Chat %s registered but not saved: %s", message.chat_id, result.persist_error
            )

        reply = self._reply_for(message, result.is_new)
        try:
            await self.sender.send_message(message.chat_id, reply)
        except TelegramAPIError as e:
            logger.error("Failed to reply to %s: %s", message.chat_id, e)

        return result.is_new

    async def handle_update(self, payload: dict[str, Any]) -> None:
        """Process an update pushed by Telegram to the webhook.

        Telegram disables webhooks that keep failing, so every error is
        logged and swallowed here.
        """
        try:
            message_data = payload.get("message") if isinstance(payload, dict) else None
            if not isinstance(message_data, dict):
                logger.debug("Ignoring update without a message")
                return

            message = IncomingMessage.from_dict(message_data)
            if message is None:
                logger.debug("Ignoring message without a chat")
                return

            await self.handle_message(message)
        except Exception as e:
            logger.exception("Error processing Telegram webhook update: %s", e)
