"""HTTP surface of the relay.

This module exposes the alert intake, the Telegram webhook, registry and
health views, the activity log and Prometheus metrics over aiohttp.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tradingview_relay.metrics import ALERTS_RECEIVED, REQUESTS_REJECTED
from tradingview_relay.relay.models import AlertRequest, RelayError, RelayMode
from tradingview_relay.server.activity import ActivityLog, ActivityType
from tradingview_relay.server.page import LOG_VIEWER_HTML

if TYPE_CHECKING:
    from tradingview_relay.ingestor.handler import MessageHandler
    from tradingview_relay.ratelimit import SlidingWindowLimiter
    from tradingview_relay.registry.store import DestinationRegistry
    from tradingview_relay.relay.relay import AlertRelay

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
MAX_BODY_BYTES = 10 * 1024

# Paths never throttled: platform health checks and Telegram's own push
RATE_LIMIT_EXEMPT = frozenset({"/health", "/metrics", "/telegram-webhook"})

# Paths not recorded as REQUEST entries in the activity log
ACTIVITY_EXEMPT = frozenset({"/logs", "/health", "/metrics"})

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, x-webhook-secret",
}

NOT_FOUND_MESSAGE = "Not found. Use POST /tv-webhook to send alerts."

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _client_key(request: web.Request, trust_proxy: bool = False) -> str:
    """Identify the client for throttling and the activity log.

    ``X-Forwarded-For`` is set by whoever sends the request, so it is only
    consulted when the server is known to sit behind a reverse proxy.
    """
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.remote or "unknown"


async def read_body(request: web.Request) -> Any:
    """Decode a request body the way alert senders send it.

    TradingView posts either JSON or plain text, often with a JSON-looking
    plain-text body. JSON objects are decoded; anything else is returned as
    text.

    Raises:
        web.HTTPBadRequest: If a body declared as JSON is not valid JSON.
    """
    raw = await request.text()
    if not raw:
        return None

    is_json = request.content_type == "application/json"
    try:
        decoded = json.loads(raw)
    except ValueError:
        if is_json:
            raise web.HTTPBadRequest(text="Invalid JSON body") from None
        return raw

    if isinstance(decoded, dict) or is_json:
        return decoded
    return raw


class RelayServer:
    """aiohttp application serving the relay endpoints.

    Example:
        ```python
        server = RelayServer(relay, registry, handler, relay_mode=RelayMode.BROADCAST)
        await server.start(port=3000)
        ...
        await server.stop()
        ```
    """

    def __init__(
        self,
        relay: AlertRelay,
        registry: DestinationRegistry,
        handler: MessageHandler,
        *,
        relay_mode: RelayMode = RelayMode.BROADCAST,
        activity: ActivityLog | None = None,
        rate_limiter: SlidingWindowLimiter | None = None,
        trust_proxy: bool = False,
    ) -> None:
        """Initialize the server.

        Args:
            relay: Alert relay used by the intake endpoints.
            registry: Registry shown by /chat-ids and /health.
            handler: Receives Telegram webhook updates.
            relay_mode: Mode used by /tv-webhook and POST /.
            activity: Activity log; a fresh one is created if omitted.
            rate_limiter: Per-client inbound limiter; None disables throttling.
            trust_proxy: Key clients by X-Forwarded-For instead of the peer
                address. Enable only behind a reverse proxy that sets it.
        """
        self.relay = relay
        self.registry = registry
        self.handler = handler
        self.relay_mode = relay_mode
        self.activity = activity or ActivityLog()
        self.rate_limiter = rate_limiter
        self.trust_proxy = trust_proxy

        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    # Middlewares

    @web.middleware
    async def _cors_middleware(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response: web.StreamResponse = web.Response(status=200)
        else:
            response = await handler(request)
        response.headers.update(CORS_HEADERS)
        return response

    @web.middleware
    async def _error_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException as e:
            if e.status < 400:
                raise
            error = NOT_FOUND_MESSAGE if e.status == 404 else (e.text or e.reason)
            return web.json_response({"success": False, "error": error}, status=e.status)
        except Exception as e:
            logger.exception("Error processing %s %s", request.method, request.path)
            self.activity.add(ActivityType.ERROR, message=f"Server error: {e}")
            return web.json_response(
                {"success": False, "error": "Internal server error", "details": str(e)},
                status=500,
            )

    @web.middleware
    async def _rate_limit_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        if self.rate_limiter is None or request.path in RATE_LIMIT_EXEMPT:
            return await handler(request)

        key = _client_key(request, self.trust_proxy)
        if not self.rate_limiter.try_acquire(key):
            REQUESTS_REJECTED.labels(reason="rate_limited").inc()
            retry_after = self.rate_limiter.retry_after(key)
            logger.warning("Rate limit exceeded for %s", key)
            return web.json_response(
                {"success": False, "error": "Too many requests, please try again later."},
                status=429,
                headers={"Retry-After": str(max(1, round(retry_after)))},
            )
        return await handler(request)

    @web.middleware
    async def _activity_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        if request.path not in ACTIVITY_EXEMPT:
            body = None
            if request.method == "POST":
                try:
                    body = (await request.text())[:500]
                except web.HTTPRequestEntityTooLarge:
                    body = "(body too large)"
            self.activity.add(
                ActivityType.REQUEST,
                method=request.method,
                path=request.path,
                ip=_client_key(request, self.trust_proxy),
                userAgent=request.headers.get("User-Agent", "unknown")[:50],
                body=body,
            )
        return await handler(request)

    # Alert intake

    async def _relay(self, request: web.Request, mode: RelayMode, endpoint: str) -> web.Response:
        body = await read_body(request)
        self.activity.add(
            ActivityType.WEBHOOK,
            message="Webhook received",
            contentType=request.content_type,
            rawBody=body if isinstance(body, str) else json.dumps(body),
        )
        alert = AlertRequest.from_payload(body, request.headers)

        try:
            result = await self.relay.relay(alert, mode)
        except RelayError as e:
            REQUESTS_REJECTED.labels(reason=e.kind).inc()
            self.activity.add(ActivityType.ERROR, message=f"{endpoint}: {e.message}")
            logger.warning("Alert rejected on %s: %s", endpoint, e.message)
            return web.json_response(e.to_dict(), status=e.status)

        ALERTS_RECEIVED.labels(endpoint=endpoint).inc()
        for delivery in result.broadcast.results:
            if delivery.success:
                self.activity.add(ActivityType.TELEGRAM, message=f"✅ Sent to {delivery.chat_id}")
            else:
                self.activity.add(
                    ActivityType.ERROR,
                    message=f"Failed to send to {delivery.chat_id}: {delivery.error}",
                )

        return web.json_response(result.to_dict(), status=200)

    async def _handle_alert(self, request: web.Request) -> web.Response:
        """Handle POST /tv-webhook and POST / in the configured mode."""
        return await self._relay(request, self.relay_mode, "tv-webhook")

    async def _handle_broadcast(self, request: web.Request) -> web.Response:
        """Handle POST /broadcast."""
        return await self._relay(request, RelayMode.BROADCAST, "broadcast")

    # Telegram push

    async def _handle_telegram_webhook(self, request: web.Request) -> web.Response:
        """Handle POST /telegram-webhook; always answers 200 ``{ok: true}``."""
        try:
            payload = await request.json()
            if isinstance(payload, dict):
                await self.handler.handle_update(payload)
        except Exception as e:
            logger.error("Error processing Telegram webhook: %s", e)

        return web.json_response({"ok": True}, status=200)

    # Read-only views

    async def _handle_chat_ids(self, _request: web.Request) -> web.Response:
        """Handle GET /chat-ids."""
        records = self.registry.all()
        return web.json_response(
            {
                "count": len(records),
                "defaultChatId": self.registry.default_destination,
                "chatIds": [r.to_dict() for r in records],
            }
        )

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle GET /health."""
        return web.json_response(
            {
                "status": "ok",
                "timestamp": datetime.now(UTC).isoformat(),
                "registeredChats": len(self.registry),
                "defaultChatId": self.registry.default_destination,
            }
        )

    async def _handle_logs(self, _request: web.Request) -> web.Response:
        """Handle GET /logs."""
        entries = self.activity.entries()
        return web.json_response(
            {"total": len(entries), "logs": [e.to_dict() for e in entries]}
        )

    async def _handle_index(self, _request: web.Request) -> web.Response:
        """Handle GET / (live log viewer)."""
        return web.Response(text=LOG_VIEWER_HTML, content_type="text/html")

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle GET /metrics (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(
            client_max_size=MAX_BODY_BYTES,
            middlewares=[
                self._cors_middleware,
                self._error_middleware,
                self._rate_limit_middleware,
                self._activity_middleware,
            ],
        )
        app.router.add_get("/", self._handle_index)
        app.router.add_post("/", self._handle_alert)
        app.router.add_post("/tv-webhook", self._handle_alert)
        app.router.add_post("/broadcast", self._handle_broadcast)
        app.router.add_post("/telegram-webhook", self._handle_telegram_webhook)
        app.router.add_get("/chat-ids", self._handle_chat_ids)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/logs", self._handle_logs)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self, port: int = DEFAULT_PORT, host: str = DEFAULT_HOST) -> None:
        """Start serving HTTP.

        Args:
            port: Port to listen on.
            host: Interface to bind.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, host, port)
        await site.start()

        logger.info("TradingView relay listening on port %d", port)

    async def stop(self) -> None:
        """Stop serving HTTP."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("HTTP server stopped")
