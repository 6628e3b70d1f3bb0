"""Telegram Bot API client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from tradingview_relay.ratelimit import SlidingWindowLimiter
from tradingview_relay.telegram.models import SentMessage, Update

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"
DEFAULT_PARSE_MODE = "HTML"
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0
# Telegram allows roughly 30 messages per second per bot
DEFAULT_MESSAGES_PER_SECOND = 30

# Extra HTTP time on top of the long-poll timeout
POLL_TIMEOUT_MARGIN = 10.0


class TelegramAPIError(Exception):
    """Raised when a Bot API call fails.

    Attributes:
        description: Error description from Telegram, or the transport error.
        error_code: Telegram error code (HTTP status), None for transport
            failures that never reached the API.
    """

    def __init__(self, description: str, error_code: int | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.error_code = error_code

    def __str__(self) -> str:
        if self.error_code is None:
            return self.description
        return f"{self.error_code}: {self.description}"


class TelegramClient:
    """Minimal async client for the Telegram Bot API.

    Wraps the handful of methods the relay needs with rate limiting and
    retry support. API-level failures surface as TelegramAPIError.

    Example:
        ```python
        client = TelegramClient(bot_token="123:ABC")
        sent = await client.send_message("12345", "<b>BTC</b> crossed 100k")
        updates = await client.get_updates(offset=1, timeout=30)
        ```
    """

    def __init__(
        self,
        bot_token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        parse_mode: str | None = DEFAULT_PARSE_MODE,
        messages_per_second: int = DEFAULT_MESSAGES_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize Telegram client.

        Args:
            bot_token: Telegram bot token.
            api_base: Bot API base URL.
            parse_mode: Parse mode for outgoing messages (None for plain text).
            messages_per_second: Outbound message rate limit.
            max_retries: Maximum attempts per call.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
        """
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.parse_mode = parse_mode
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout

        self._limiter = SlidingWindowLimiter(messages_per_second, window=1.0)

    def _method_url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"

    async def _call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> Any:
        """Invoke a Bot API method and return its ``result`` field.

        Raises:
            TelegramAPIError: If the API answers ``ok: false`` or every
                attempt fails at the transport level.
        """
        attempts = max(1, retries if retries is not None else self.max_retries)
        last_error = TelegramAPIError(f"{method} was not attempted")

        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
                    response = await client.post(self._method_url(method), json=payload or {})
                    result = response.json()

                if result.get("ok"):
                    return result.get("result")

                error_code = result.get("error_code") or response.status_code
                description = result.get("description", "Unknown error")

                if error_code == 429 and attempt < attempts - 1:
                    retry_after = result.get("parameters", {}).get("retry_after", 1)
                    logger.warning(f"Telegram rate limited, retry after {retry_after}s")
                    await asyncio.sleep(retry_after)
                    continue

                logger.error(f"Telegram {method} failed: {error_code} - {description}")
                raise TelegramAPIError(description, error_code=error_code)

            except httpx.TimeoutException as e:
                logger.warning(f"Telegram {method} timeout (attempt {attempt + 1})")
                last_error = TelegramAPIError(f"Request timed out: {e}")
            except httpx.HTTPError as e:
                logger.error(f"Telegram {method} transport error: {e}")
                last_error = TelegramAPIError(str(e))
            except ValueError as e:
                # Non-JSON body, typically a proxy error page
                logger.error(f"Telegram {method} returned invalid JSON: {e}")
                last_error = TelegramAPIError(f"Invalid response: {e}")

            if attempt < attempts - 1:
                await asyncio.sleep(self.retry_delay * (2**attempt))

        raise last_error

    async def send_message(self, chat_id: str, text: str) -> SentMessage:
        """Send a text message to a chat.

        Args:
            chat_id: Target chat id.
            text: Message body, interpreted according to ``parse_mode``.

        Returns:
            SentMessage with the id Telegram assigned.

        Raises:
            TelegramAPIError: If delivery failed.
        """
        await self._limiter.acquire()

        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if self.parse_mode:
            payload["parse_mode"] = self.parse_mode

        result = await self._call("sendMessage", payload)
        message_id = result.get("message_id") if isinstance(result, dict) else None
        logger.debug("Message delivered to %s (message_id=%s)", chat_id, message_id)
        return SentMessage(chat_id=str(chat_id), message_id=message_id)

    async def get_updates(self, offset: int = 0, timeout: int = 30) -> list[Update]:
        """Long-poll for new updates.

        Args:
            offset: First update id to return.
            timeout: Seconds Telegram may hold the request open.

        Returns:
            Parsed updates, oldest first.
        """
        result = await self._call(
            "getUpdates",
            {"offset": offset, "timeout": timeout, "allowed_updates": ["message"]},
            timeout=timeout + POLL_TIMEOUT_MARGIN,
            retries=1,
        )

        updates: list[Update] = []
        for item in result or []:
            try:
                updates.append(Update.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed update: {e}")
        return updates

    async def get_me(self) -> dict[str, Any]:
        """Return the bot's own user object."""
        result: dict[str, Any] = await self._call("getMe")
        return result

    async def set_webhook(self, url: str) -> bool:
        """Point Telegram's push delivery at ``url``."""
        return bool(await self._call("setWebhook", {"url": url}))

    async def delete_webhook(self) -> bool:
        """Remove the push webhook so polling can be used."""
        return bool(await self._call("deleteWebhook"))
