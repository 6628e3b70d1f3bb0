"""Long-polling loop that pulls bot messages from Telegram.

This module provides a background service that repeatedly calls
``getUpdates`` and feeds each message to the MessageHandler, so chats are
discovered even when no webhook is configured.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from tradingview_relay.metrics import POLL_ERRORS

if TYPE_CHECKING:
    from tradingview_relay.ingestor.handler import MessageHandler
    from tradingview_relay.telegram.client import TelegramClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT = 30  # seconds Telegram may hold getUpdates open
DEFAULT_POLL_DELAY = 1.0  # seconds between cycles, and after errors


@dataclass
class PollerStats:
    """Statistics for the polling loop."""

    cycles: int = 0
    updates_received: int = 0
    errors: int = 0
    last_poll_time: datetime | None = None
    last_error: str | None = None


class UpdatePoller:
    """Background service polling Telegram for new messages.

    The cursor only moves forward: it is advanced past each update before
    the update is handled, so an update whose handling fails is never
    fetched again.

    Example:
        ```python
        poller = UpdatePoller(client, handler)
        await poller.start()
        ...
        await poller.stop()
        ```
    """

    def __init__(
        self,
        client: TelegramClient,
        handler: MessageHandler,
        *,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT,
        poll_delay: float = DEFAULT_POLL_DELAY,
    ) -> None:
        """Initialize the poller.

        Args:
            client: Telegram client used for getUpdates.
            handler: Receives every polled message.
            poll_timeout: Long-poll timeout passed to Telegram.
            poll_delay: Pause between cycles and after a failed cycle.
        """
        self._client = client
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._poll_delay = poll_delay

        self._cursor = 0
        self._stats = PollerStats()
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def cursor(self) -> int:
        """Highest update id seen so far."""
        return self._cursor

    @property
    def stats(self) -> PollerStats:
        """Current polling statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Return True while the polling task is alive."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start polling in a background task."""
        if self.is_running:
            logger.warning("Poller already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Starting Telegram polling...")

    async def stop(self) -> None:
        """Stop polling and wait for the task to finish."""
        self._stop_event.set()

        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Telegram polling stopped")

    async def poll_once(self) -> int:
        """Run a single getUpdates cycle.

        Returns:
            Number of updates received.

        Raises:
            TelegramAPIError: If the fetch itself fails.
        """
        self._stats.cycles += 1
        updates = await self._client.get_updates(
            offset=self._cursor + 1,
            timeout=self._poll_timeout,
        )
        self._stats.last_poll_time = datetime.now(UTC)

        for update in updates:
            self._cursor = max(self._cursor, update.update_id)
            self._stats.updates_received += 1

            if update.message is None:
                continue
            try:
                await self._handler.handle_message(update.message)
            except Exception as e:
                logger.error(f"Failed to handle update {update.update_id}: {e}")

        return len(updates)

    async def _wait(self, seconds: float) -> None:
        """Sleep unless a stop is requested first."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)

    async def _poll_loop(self) -> None:
        """Poll until stopped; failures are logged and retried."""
        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                POLL_ERRORS.inc()
                self._stats.errors += 1
                self._stats.last_error = str(e)
                logger.error(f"Polling error: {e}")

            await self._wait(self._poll_delay)
