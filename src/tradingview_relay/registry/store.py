"""Persistent, deduplicated registry of Telegram destinations.

The registry keeps an ordered in-memory list of known chats and mirrors it
to a JSON snapshot file on every insert. Chats are discovered by both the
polling loop and the Telegram webhook, so inserts are serialized behind a
single lock covering the check, the append and the flush.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from tradingview_relay.metrics import REGISTERED_DESTINATIONS
from tradingview_relay.registry.models import (
    UNKNOWN_LABEL,
    DestinationRecord,
    RegistrationResult,
)

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_PATH = "./chat_ids.json"


class RegistryError(Exception):
    """Base exception for registry errors."""


class PersistenceError(RegistryError):
    """Raised when the snapshot file cannot be written."""


class MalformedSnapshotError(RegistryError):
    """Raised when the snapshot file cannot be parsed."""


def _parse_snapshot(raw: str) -> list[DestinationRecord]:
    """Parse snapshot text into records, dropping duplicate ids."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedSnapshotError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedSnapshotError(f"Expected a list, got {type(data).__name__}")

    records: list[DestinationRecord] = []
    seen: set[str] = set()
    for entry in data:
        if not isinstance(entry, dict):
            raise MalformedSnapshotError(f"Invalid entry: {entry!r}")
        try:
            record = DestinationRecord.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedSnapshotError(f"Invalid entry {entry!r}: {e}") from e
        if record.id in seen:
            continue
        seen.add(record.id)
        records.append(record)
    return records


def _write_snapshot(path: Path, records: list[DestinationRecord]) -> None:
    """Overwrite the snapshot file atomically."""
    payload = json.dumps([r.to_dict() for r in records], indent=2)
    directory = path.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise PersistenceError(f"Failed to write {path}: {e}") from e


class DestinationRegistry:
    """Ordered, deduplicated set of destinations backed by a JSON snapshot.

    The default destination is either supplied explicitly (configuration)
    or assigned once, automatically, to the first chat ever registered.
    Auto-assignment never replaces an existing default.

    Example:
        ```python
        registry = DestinationRegistry("chat_ids.json")
        registry.load()

        result = await registry.register("12345", "alice")
        if result.is_new:
            print("welcome", result.record.label)

        print(registry.default_destination)
        ```
    """

    def __init__(
        self,
        path: str | Path = DEFAULT_SNAPSHOT_PATH,
        *,
        default_destination: str | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            path: Snapshot file location.
            default_destination: Explicitly configured default chat id.
        """
        self._path = Path(path)
        self._records: list[DestinationRecord] = []
        self._index: dict[str, DestinationRecord] = {}
        self._default = default_destination or None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        """Snapshot file location."""
        return self._path

    @property
    def default_destination(self) -> str | None:
        """The default chat id, if one is known."""
        return self._default

    def load(self) -> None:
        """Load the snapshot file, replacing in-memory state.

        A missing or malformed snapshot yields an empty registry; this
        method never raises.
        """
        records: list[DestinationRecord] = []
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No snapshot at %s, starting with an empty registry", self._path)
        except OSError as e:
            logger.error("Could not read snapshot %s: %s", self._path, e)
        else:
            try:
                records = _parse_snapshot(raw)
            except MalformedSnapshotError as e:
                logger.warning("Ignoring malformed snapshot %s: %s", self._path, e)

        self._records = records
        self._index = {r.id: r for r in records}

        if self._default is None and records:
            self._default = records[0].id
            logger.info("Default destination restored from snapshot: %s", self._default)

        REGISTERED_DESTINATIONS.set(len(records))
        logger.info("Loaded %d saved chat ids", len(records))

    async def register(self, chat_id: str, label: str | None = None) -> RegistrationResult:
        """Register a chat, creating a record only if the id is unseen.

        Args:
            chat_id: Telegram chat id.
            label: Display name for a new record. Ignored for known ids.

        Returns:
            RegistrationResult describing the outcome.
        """
        chat_id = str(chat_id)

        async with self._lock:
            existing = self._index.get(chat_id)
            if existing is not None:
                return RegistrationResult(record=existing, is_new=False)

            record = DestinationRecord(id=chat_id, label=label or UNKNOWN_LABEL)
            self._records.append(record)
            self._index[chat_id] = record
            REGISTERED_DESTINATIONS.set(len(self._records))

            # In-memory state is complete before the first await so that a
            # cancelled flush cannot leave a record without its default.
            if self._default is None:
                self._default = chat_id
                logger.info("Default destination auto-set to %s", chat_id)

            persist_error: str | None = None
            try:
                await asyncio.to_thread(_write_snapshot, self._path, list(self._records))
                logger.info("Saved new chat id: %s (%s)", chat_id, record.label)
            except PersistenceError as e:
                persist_error = str(e)
                logger.error("Chat id %s kept in memory only: %s", chat_id, e)

            return RegistrationResult(record=record, is_new=True, persist_error=persist_error)

    def all(self) -> list[DestinationRecord]:
        """Return a copy of all records in discovery order."""
        return list(self._records)

    def ids(self) -> list[str]:
        """Return all chat ids in discovery order."""
        return [r.id for r in self._records]

    def get(self, chat_id: str) -> DestinationRecord | None:
        """Look up a record by chat id."""
        return self._index.get(str(chat_id))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, chat_id: object) -> bool:
        return str(chat_id) in self._index
