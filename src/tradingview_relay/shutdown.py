"""Signal handling and graceful shutdown for the relay service.

Usage:
    ```python
    async def main():
        async with GracefulShutdown() as shutdown:
            app = RelayApplication(settings)
            shutdown.register_cleanup(app.stop)
            await app.start()
            await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

# Default time allowed for cleanup callbacks, in seconds
DEFAULT_SHUTDOWN_TIMEOUT = 30.0

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulShutdown:
    """Turns SIGTERM/SIGINT into an awaitable shutdown event.

    A second signal while shutdown is in progress exits immediately.
    Registered cleanup callbacks (sync or async) run on context exit,
    bounded by ``timeout``.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Initialize the shutdown handler.

        Args:
            timeout: Maximum seconds to spend in cleanup callbacks.
        """
        self._timeout = timeout
        self._event: asyncio.Event | None = None
        self._requested = False
        self._cleanup_callbacks: list[Callable[[], Any]] = []
        self._previous_handlers: dict[signal.Signals, Any] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def timeout(self) -> float:
        """Cleanup timeout in seconds."""
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._requested

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._requested:
                self._event.set()
        return self._event

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a callable (sync or async) to run during shutdown."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if self._requested:
            return
        self._requested = True
        logger.info("Shutdown requested")
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._get_event().wait()

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._requested:
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)
        logger.info("Received %s - shutting down...", sig.name)
        self.request_shutdown()

    def _on_signal_sync(self, signum: int, _frame: FrameType | None) -> None:
        sig = signal.Signals(signum)
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._on_signal, sig)
        else:
            self._on_signal(sig)

    def install_signal_handlers(self) -> None:
        """Trap SIGTERM and SIGINT.

        Uses the event loop's signal support where available and falls
        back to ``signal.signal`` on Windows.
        """
        self._loop = asyncio.get_running_loop()
        self._get_event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                if sys.platform == "win32":
                    self._previous_handlers[sig] = signal.signal(sig, self._on_signal_sync)
                else:
                    self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (ValueError, OSError, RuntimeError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Restore the signal handlers that were in place before."""
        if sys.platform == "win32":
            for sig, previous in self._previous_handlers.items():
                with suppress(ValueError, OSError):
                    signal.signal(sig, previous)
            self._previous_handlers.clear()
        elif self._loop is not None:
            for sig in SHUTDOWN_SIGNALS:
                with suppress(ValueError, OSError, RuntimeError):
                    self._loop.remove_signal_handler(sig)

    async def run_cleanup_callbacks(self) -> None:
        """Run registered callbacks in registration order.

        A failing callback is logged and does not stop the others.
        """
        for callback in self._cleanup_callbacks:
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await asyncio.wait_for(result, timeout=self._timeout)
            except TimeoutError:
                logger.error("Cleanup callback %r timed out", callback)
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
