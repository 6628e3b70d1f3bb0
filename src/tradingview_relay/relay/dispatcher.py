"""Broadcast dispatcher for per-chat message fan-out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from tradingview_relay.metrics import MESSAGES_SENT
from tradingview_relay.telegram.client import TelegramAPIError

if TYPE_CHECKING:
    from tradingview_relay.telegram.models import SentMessage

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    """Protocol for the outbound send primitive."""

    async def send_message(self, chat_id: str, text: str) -> SentMessage:
        """Deliver ``text`` to ``chat_id``. Raises on failure."""
        ...


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of sending to a single chat."""

    chat_id: str
    success: bool
    message_id: int | None = None
    error: str | None = None
    error_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for HTTP responses."""
        data: dict[str, Any] = {"chatId": self.chat_id, "success": self.success}
        if self.message_id is not None:
            data["messageId"] = self.message_id
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class BroadcastResult:
    """Aggregated outcome of a fan-out, in input order."""

    results: list[DeliveryResult] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def attempted(self) -> int:
        """Number of chats a send was attempted for."""
        return len(self.results)

    @property
    def succeeded(self) -> int:
        """Number of successful sends."""
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        """Number of failed sends."""
        return self.attempted - self.succeeded

    def to_dict(self) -> dict[str, Any]:
        """Serialize for HTTP responses."""
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "results": [r.to_dict() for r in self.results],
        }


class BroadcastDispatcher:
    """Sends one message to many chats, isolating per-chat failures.

    Sends run sequentially by default. With ``concurrent=True`` all sends
    are started together; results are still reported in input order and a
    failure never cancels the other sends.
    """

    def __init__(self, sender: MessageSender, *, concurrent: bool = False) -> None:
        """Initialize the dispatcher.

        Args:
            sender: Outbound send primitive (usually a TelegramClient).
            concurrent: Run sends concurrently instead of one by one.
        """
        self.sender = sender
        self.concurrent = concurrent

    async def _send_one(self, chat_id: str, text: str) -> DeliveryResult:
        """Send to a single chat, converting any failure into a result."""
        try:
            sent = await self.sender.send_message(chat_id, text)
        except TelegramAPIError as e:
            logger.warning(f"Failed to send to {chat_id}: {e}")
            MESSAGES_SENT.labels(outcome="failure").inc()
            return DeliveryResult(
                chat_id=chat_id,
                success=False,
                error=e.description,
                error_code=e.error_code,
            )
        except Exception as e:
            logger.error(f"Unexpected error sending to {chat_id}: {e}")
            MESSAGES_SENT.labels(outcome="failure").inc()
            return DeliveryResult(chat_id=chat_id, success=False, error=str(e))

        MESSAGES_SENT.labels(outcome="success").inc()
        return DeliveryResult(chat_id=chat_id, success=True, message_id=sent.message_id)

    async def send(self, destinations: Sequence[str], text: str) -> BroadcastResult:
        """Send ``text`` to every chat in ``destinations``.

        Args:
            destinations: Chat ids, in the order results should be reported.
            text: Message body.

        Returns:
            BroadcastResult with one entry per destination.
        """
        if not destinations:
            logger.warning("No destinations to send to")
            return BroadcastResult()

        if self.concurrent:
            results = list(
                await asyncio.gather(*(self._send_one(chat_id, text) for chat_id in destinations))
            )
        else:
            results = [await self._send_one(chat_id, text) for chat_id in destinations]

        result = BroadcastResult(results=results)
        logger.info(
            f"Message sent to {result.succeeded}/{result.attempted} chats ({result.failed} failed)"
        )
        return result
