"""Self-ping loop that keeps free-tier hosts from idling the service."""

from __future__ import annotations

import asyncio
import contextlib
import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_KEEPALIVE_INTERVAL = 600  # 10 minutes
DEFAULT_KEEPALIVE_TIMEOUT = 10.0


class KeepAlive:
    """Periodically requests ``{base_url}/health``."""

    def __init__(
        self,
        base_url: str,
        *,
        interval: float = DEFAULT_KEEPALIVE_INTERVAL,
        timeout: float = DEFAULT_KEEPALIVE_TIMEOUT,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/health"
        self.interval = interval
        self.timeout = timeout

        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    async def ping(self) -> bool:
        """Ping the health endpoint once.

        Returns:
            True if the endpoint answered with status ``ok``.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.url)
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Self-ping failed: {e}")
            return False

        status = data.get("status") if isinstance(data, dict) else None
        logger.info(f"Self-ping successful: {status}")
        return status == "ok"

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            if self._stop_event.is_set():
                break
            await self.ping()

    async def start(self) -> None:
        """Start pinging in the background."""
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info("Self-ping enabled: every %d seconds to %s", self.interval, self.url)

    async def stop(self) -> None:
        """Stop pinging."""
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
