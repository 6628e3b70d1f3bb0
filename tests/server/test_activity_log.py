"""Tests for the in-memory activity log."""

from tradingview_relay.server.activity import ActivityLog, ActivityType


class TestActivityLog:
    """Tests for ActivityLog."""

    def test_newest_first(self) -> None:
        log = ActivityLog()
        log.add(ActivityType.REQUEST, path="/a")
        log.add(ActivityType.WEBHOOK, message="Webhook received")

        entries = log.entries()

        assert [e.type for e in entries] == [ActivityType.WEBHOOK, ActivityType.REQUEST]

    def test_bounded(self) -> None:
        """The oldest entries are dropped once the buffer is full."""
        log = ActivityLog(max_entries=3)
        for i in range(5):
            log.add(ActivityType.REQUEST, n=i)

        assert len(log) == 3
        assert [e.data["n"] for e in log.entries()] == [4, 3, 2]

    def test_ids_increase(self) -> None:
        log = ActivityLog()
        first = log.add(ActivityType.REQUEST)
        second = log.add(ActivityType.REQUEST)

        assert second.id > first.id

    def test_count_and_clear(self) -> None:
        log = ActivityLog()
        log.add(ActivityType.ERROR, message="x")
        log.add(ActivityType.TELEGRAM, message="y")
        log.add(ActivityType.ERROR, message="z")

        assert log.count(ActivityType.ERROR) == 2

        log.clear()
        assert len(log) == 0

    def test_entry_to_dict(self) -> None:
        entry = ActivityLog().add(ActivityType.TELEGRAM, message="✅ Sent to 1")

        data = entry.to_dict()

        assert data["type"] == "TELEGRAM"
        assert data["message"] == "✅ Sent to 1"
        assert data["id"] == entry.id
        assert data["timestamp"] == entry.timestamp.isoformat()

    def test_reserved_keys_win(self) -> None:
        """Caller data cannot override the entry's own type."""
        entry = ActivityLog().add(ActivityType.ERROR, type="spoofed")
        assert entry.to_dict()["type"] == "ERROR"
