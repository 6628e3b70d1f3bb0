"""Bounded in-memory log of recent relay activity.

Backs the ``/logs`` endpoint and the live log page. Entries are kept
newest-first and the oldest entry is dropped once the buffer is full.
"""

from __future__ import annotations

import itertools
import json
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100


class ActivityType(str, Enum):
    """Kind of activity entry."""

    REQUEST = "REQUEST"
    WEBHOOK = "WEBHOOK"
    TELEGRAM = "TELEGRAM"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ActivityEntry:
    """One recorded event."""

    id: int
    type: ActivityType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the ``/logs`` endpoint."""
        return {
            **self.data,
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
        }


class ActivityLog:
    """Ring buffer of the most recent activity entries."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Initialize the log.

        Args:
            max_entries: Number of entries retained.
        """
        self.max_entries = max_entries
        self._entries: deque[ActivityEntry] = deque(maxlen=max_entries)
        self._ids = itertools.count(int(time.time() * 1000))

    def add(self, entry_type: ActivityType, **data: Any) -> ActivityEntry:
        """Record an entry and echo it to the application log."""
        entry = ActivityEntry(id=next(self._ids), type=entry_type, data=data)
        self._entries.appendleft(entry)
        logger.debug("Log: %s - %s", entry_type.value, json.dumps(data, default=str))
        return entry

    def entries(self) -> list[ActivityEntry]:
        """Return entries, newest first."""
        return list(self._entries)

    def count(self, entry_type: ActivityType) -> int:
        """Count retained entries of one type."""
        return sum(1 for e in self._entries if e.type is entry_type)

    def clear(self) -> None:
        """Drop all entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
