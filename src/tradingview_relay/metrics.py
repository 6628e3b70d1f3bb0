"""Prometheus metrics shared across the relay components."""

from prometheus_client import Counter, Gauge

ALERTS_RECEIVED = Counter(
    "tvrelay_alerts_received_total",
    "Alerts accepted for relaying",
    ["endpoint"],
)

MESSAGES_SENT = Counter(
    "tvrelay_messages_sent_total",
    "Outbound Telegram messages by outcome",
    ["outcome"],
)

REGISTERED_DESTINATIONS = Gauge(
    "tvrelay_registered_destinations",
    "Number of chats in the destination registry",
)

POLL_ERRORS = Counter(
    "tvrelay_poll_errors_total",
    "Failed getUpdates cycles",
)

REQUESTS_REJECTED = Counter(
    "tvrelay_requests_rejected_total",
    "Inbound requests rejected before relaying",
    ["reason"],
)
