"""Data models for the destination registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

UNKNOWN_LABEL = "unknown"


@dataclass(frozen=True)
class DestinationRecord:
    """A Telegram chat that has asked to receive alerts.

    Attributes:
        id: Telegram chat identifier (stringified).
        label: Display name seen at first contact. Not unique.
        registered_at: When the chat was first observed.
    """

    id: str
    label: str = UNKNOWN_LABEL
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the snapshot/wire form."""
        return {
            "id": self.id,
            "label": self.label,
            "registeredAt": self.registered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DestinationRecord:
        """Deserialize a snapshot entry.

        Older snapshots stored ``username`` and ``addedAt``; both spellings
        are accepted.
        """
        registered_at = data.get("registeredAt", data.get("addedAt"))
        if isinstance(registered_at, str):
            registered_at = datetime.fromisoformat(registered_at.replace("Z", "+00:00"))
        elif registered_at is None:
            registered_at = datetime.now(UTC)
        else:
            raise ValueError(f"Invalid registration timestamp: {registered_at!r}")

        label = data.get("label", data.get("username")) or UNKNOWN_LABEL

        return cls(
            id=str(data["id"]),
            label=str(label),
            registered_at=registered_at,
        )


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a registration attempt.

    Attributes:
        record: The record now held by the registry (new or pre-existing).
        is_new: True if this call created the record.
        persist_error: Description of a failed snapshot flush, if any. The
            record stays registered in memory either way.
    """

    record: DestinationRecord
    is_new: bool
    persist_error: str | None = None

    @property
    def persisted(self) -> bool:
        """Return True if no flush failure was recorded."""
        return self.persist_error is None
