"""Data models and errors for the alert relay."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tradingview_relay.relay.dispatcher import BroadcastResult

SECRET_HEADER = "X-Webhook-Secret"

# Body fields that may carry the alert text, in priority order
TEXT_FIELDS = ("text", "message", "alert")

# Bodies that TradingView sends when the alert message is blank
EMPTY_BODIES = frozenset({"", "{}", '""'})


class RelayMode(str, Enum):
    """How an alert picks its destinations."""

    SINGLE = "single"
    BROADCAST = "broadcast"


class RelayError(Exception):
    """Base exception for relay failures surfaced to the HTTP caller.

    Attributes:
        kind: Stable machine-readable error name.
        status: HTTP status to answer with.
        message: Human-readable description.
    """

    kind = "relay_error"
    status = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for HTTP responses."""
        return {"success": False, "error": self.message, "kind": self.kind}


class UnauthorizedError(RelayError):
    """Base class for secret check failures."""

    status = 401


class UnauthorizedMissingSecret(UnauthorizedError):
    """A secret is configured but the request carried none."""

    kind = "missing_secret"

    def __init__(self, message: str = "Missing secret") -> None:
        super().__init__(message)


class UnauthorizedInvalidSecret(UnauthorizedError):
    """The request's secret does not match."""

    kind = "invalid_secret"
    status = 403

    def __init__(self, message: str = "Invalid secret") -> None:
        super().__init__(message)


class MissingDestination(RelayError):
    """No chat id in the request and no default destination known."""

    kind = "missing_destination"

    def __init__(
        self,
        message: str = "Missing chat_id and no default chat is registered yet",
    ) -> None:
        super().__init__(message)


class MissingText(RelayError):
    """The request carried no message text."""

    kind = "missing_text"

    def __init__(self, message: str = "No message content received") -> None:
        super().__init__(message)


class RemoteAPIError(RelayError):
    """Telegram rejected a single-destination send.

    The upstream status and description are passed through verbatim.
    """

    kind = "remote_api_error"

    def __init__(self, description: str, error_code: int | None = None) -> None:
        super().__init__(description)
        self.error_code = error_code
        self.status = error_code if error_code and 400 <= error_code < 600 else 502

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errorCode"] = self.error_code
        return data


@dataclass(frozen=True)
class AlertRequest:
    """An alert submitted for relaying."""

    text: str | None
    secret: str | None = None
    destination: str | None = None

    @classmethod
    def from_payload(
        cls,
        body: Any,
        headers: Mapping[str, str] | None = None,
    ) -> AlertRequest:
        """Build a request from a decoded HTTP body.

        Args:
            body: A JSON object (dict), plain text (str), another decoded
                JSON value (serialized back to JSON), or None.
            headers: Request headers; ``X-Webhook-Secret`` supplies the
                secret when the body does not.

        Returns:
            The parsed AlertRequest. ``text`` is None when empty.
        """
        text: str | None = None
        secret: str | None = None
        destination: str | None = None

        if isinstance(body, dict):
            secret = _optional_str(body.get("secret"))
            destination = _optional_str(body.get("chat_id"))
            for name in TEXT_FIELDS:
                value = body.get(name)
                if value:
                    text = value if isinstance(value, str) else json.dumps(value)
                    break
            else:
                rest = {k: v for k, v in body.items() if k not in ("secret", "chat_id")}
                if rest:
                    text = json.dumps(rest)
        elif isinstance(body, str):
            text = body
        elif body is not None:
            text = json.dumps(body)

        if text is not None and text.strip() in EMPTY_BODIES:
            text = None

        if secret is None and headers is not None:
            secret = _optional_str(headers.get(SECRET_HEADER))

        return cls(text=text, secret=secret, destination=destination)


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class RelayResult:
    """Successful relay outcome."""

    mode: RelayMode
    broadcast: BroadcastResult

    @property
    def message_id(self) -> int | None:
        """Telegram message id of a single-mode delivery."""
        if self.mode is RelayMode.SINGLE and self.broadcast.results:
            return self.broadcast.results[0].message_id
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for HTTP responses."""
        if self.mode is RelayMode.SINGLE:
            return {
                "success": True,
                "message": "Alert forwarded to Telegram",
                "messageId": self.message_id,
            }
        return {
            "success": True,
            "message": "Alert forwarded to Telegram",
            "sent": self.broadcast.succeeded,
            "total": self.broadcast.attempted,
            "results": [r.to_dict() for r in self.broadcast.results],
        }
