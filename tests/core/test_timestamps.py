"""Tests for machina.core.timestamps."""

from datetime import UTC, datetime, timedelta, timezone

from machina.core.timestamps import ensure_utc, generate_ulid, utc_now


class TestTimestamps:
    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is UTC

    def test_ensure_utc_naive(self):
        assert ensure_utc(datetime(2026, 1, 1, 12)) == datetime(2026, 1, 1, 12, tzinfo=UTC)

    def test_ensure_utc_converts(self):
        plus_two = timezone(timedelta(hours=2))
        assert ensure_utc(datetime(2026, 1, 1, 14, tzinfo=plus_two)) == datetime(2026, 1, 1, 12, tzinfo=UTC)


class TestUlid:
    def test_format(self):
        ulid = generate_ulid()
        assert len(ulid) == 26
        assert ulid.isalnum()

    def test_unique(self):
        assert len({generate_ulid() for _ in range(200)}) == 200
