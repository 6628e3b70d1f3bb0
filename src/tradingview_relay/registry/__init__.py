"""Destination registry - deduplicated, persisted Telegram chat ids."""

from tradingview_relay.registry.models import DestinationRecord, RegistrationResult
from tradingview_relay.registry.store import (
    DestinationRegistry,
    MalformedSnapshotError,
    PersistenceError,
    RegistryError,
)

__all__ = [
    "DestinationRecord",
    "DestinationRegistry",
    "MalformedSnapshotError",
    "PersistenceError",
    "RegistrationResult",
    "RegistryError",
]
