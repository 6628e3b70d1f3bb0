"""Tests for the graceful shutdown handler."""

from __future__ import annotations

import asyncio
import signal
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

from tradingview_relay.shutdown import (
    DEFAULT_SHUTDOWN_TIMEOUT,
    GracefulShutdown,
)


class TestGracefulShutdownInit:
    """Tests for GracefulShutdown initialization."""

    def test_default_timeout(self) -> None:
        """Should use default timeout when not specified."""
        assert GracefulShutdown().timeout == DEFAULT_SHUTDOWN_TIMEOUT

    def test_initial_state(self) -> None:
        """Should start in non-shutdown state."""
        assert GracefulShutdown().is_shutdown_requested is False


class TestRequestShutdown:
    """Tests for programmatic shutdown requests."""

    async def test_request_before_wait(self) -> None:
        """A request made before wait() should not be lost."""
        shutdown = GracefulShutdown()
        shutdown.request_shutdown()

        await asyncio.wait_for(shutdown.wait(), timeout=1.0)
        assert shutdown.is_shutdown_requested is True

    async def test_wait_blocks_until_shutdown(self) -> None:
        """wait() should block until shutdown is requested."""
        shutdown = GracefulShutdown()

        async def request_after_delay() -> None:
            await asyncio.sleep(0.05)
            shutdown.request_shutdown()

        task = asyncio.create_task(request_after_delay())
        await asyncio.wait_for(shutdown.wait(), timeout=1.0)
        await task

        assert shutdown.is_shutdown_requested is True

    async def test_request_shutdown_idempotent(self) -> None:
        """Multiple requests should be idempotent."""
        shutdown = GracefulShutdown()
        shutdown.request_shutdown()
        shutdown.request_shutdown()
        assert shutdown.is_shutdown_requested is True


@pytest.mark.skipif(sys.platform == "win32", reason="Unix signal handling")
class TestSignalHandling:
    """Tests for signal-triggered shutdown."""

    async def test_signal_sets_shutdown(self) -> None:
        """First signal should request shutdown."""
        shutdown = GracefulShutdown()
        shutdown.install_signal_handlers()
        try:
            shutdown._on_signal(signal.SIGTERM)
            assert shutdown.is_shutdown_requested
            await asyncio.wait_for(shutdown.wait(), timeout=1.0)
        finally:
            shutdown.remove_signal_handlers()

    async def test_second_signal_forces_exit(self) -> None:
        """Second signal should exit immediately."""
        shutdown = GracefulShutdown()
        shutdown.request_shutdown()

        with pytest.raises(SystemExit) as exc_info:
            shutdown._on_signal(signal.SIGINT)
        assert exc_info.value.code == 128 + signal.SIGINT.value


class TestCleanupCallbacks:
    """Tests for cleanup callback execution."""

    async def test_runs_sync_and_async_callbacks(self) -> None:
        """Both sync and async callbacks should run in order."""
        order: list[str] = []
        shutdown = GracefulShutdown()

        async def async_cleanup() -> None:
            order.append("async")

        shutdown.register_cleanup(lambda: order.append("sync"))
        shutdown.register_cleanup(async_cleanup)

        await shutdown.run_cleanup_callbacks()

        assert order == ["sync", "async"]

    async def test_failing_callback_does_not_stop_others(self) -> None:
        """A failing callback should be logged and skipped."""
        shutdown = GracefulShutdown()
        after = MagicMock()
        shutdown.register_cleanup(MagicMock(side_effect=RuntimeError("boom")))
        shutdown.register_cleanup(after)

        await shutdown.run_cleanup_callbacks()

        after.assert_called_once()

    async def test_slow_callback_times_out(self) -> None:
        """Async callbacks should be bounded by the timeout."""
        shutdown = GracefulShutdown(timeout=0.05)
        after = AsyncMock()

        async def slow() -> None:
            await asyncio.sleep(10)

        shutdown.register_cleanup(slow)
        shutdown.register_cleanup(after)

        await asyncio.wait_for(shutdown.run_cleanup_callbacks(), timeout=1.0)

        after.assert_awaited_once()

    async def test_context_manager_runs_cleanup(self) -> None:
        """Exiting the context should run callbacks."""
        cleanup = AsyncMock()

        async with GracefulShutdown() as shutdown:
            shutdown.register_cleanup(cleanup)

        cleanup.assert_awaited_once()
