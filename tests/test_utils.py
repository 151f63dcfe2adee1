"""Unit tests for utility functions."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from waypointdb.utils import (
    format_date,
    format_iso,
    generate_id,
    is_valid_id,
    normalize_text,
    parse_datetime,
    safe_get,
    to_calendar_date,
    utc_now,
    utc_timestamp_slug,
)


class TestDatetimeHelpers:
    """Tests for datetime parsing and formatting."""

    def test_parse_zulu(self):
        """Test parsing a Z-suffixed timestamp."""
        dt = parse_datetime("2024-01-15T10:30:00Z")

        assert dt == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_parse_offset_converts_to_utc(self):
        """Test offsets are converted to UTC."""
        dt = parse_datetime("2024-01-15T10:30:00-05:00")

        assert dt == datetime(2024, 1, 15, 15, 30, tzinfo=UTC)
        assert dt.utcoffset() == timedelta(0)

    def test_parse_naive_assumed_utc(self):
        """Test naive values are treated as UTC."""
        assert parse_datetime("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        assert parse_datetime(datetime(2024, 1, 15)) == datetime(2024, 1, 15, tzinfo=UTC)

    def test_parse_none(self):
        """Test None passes through."""
        assert parse_datetime(None) is None

    def test_parse_invalid(self):
        """Test invalid strings raise ValueError."""
        with pytest.raises(ValueError):
            parse_datetime("not a date")

    def test_utc_now_is_aware(self):
        """Test current time is timezone-aware UTC."""
        assert utc_now().tzinfo is not None
        assert utc_now().utcoffset() == timedelta(0)

    def test_format_iso(self):
        """Test ISO formatting with Z suffix."""
        dt = datetime(2024, 1, 15, 12, 30, tzinfo=timezone(timedelta(hours=2)))

        assert format_iso(dt) == "2024-01-15T10:30:00Z"
        assert format_iso(None) is None

    def test_timestamp_slug(self):
        """Test file-name-safe timestamps."""
        assert utc_timestamp_slug(datetime(2024, 1, 15, 10, 30, tzinfo=UTC)) == "2024-01-15T10-30-00Z"


class TestCalendarDates:
    """Tests for calendar date coercion."""

    def test_plain_date_string(self):
        """Test YYYY-MM-DD strings are read as dates."""
        assert to_calendar_date("2024-01-15") == date(2024, 1, 15)

    def test_timestamp_string_uses_utc_day(self):
        """Test timestamps land on their UTC calendar day."""
        assert to_calendar_date("2024-01-15T23:30:00-05:00") == date(2024, 1, 16)

    def test_date_and_datetime(self):
        """Test date and datetime inputs."""
        assert to_calendar_date(date(2024, 1, 15)) == date(2024, 1, 15)
        assert to_calendar_date(datetime(2024, 1, 15, 23, 0, tzinfo=UTC)) == date(2024, 1, 15)

    def test_impossible_date(self):
        """Test impossible dates raise ValueError."""
        with pytest.raises(ValueError):
            to_calendar_date("2024-02-30")

    def test_format_date(self):
        """Test date formatting."""
        assert format_date(date(2024, 3, 5)) == "2024-03-05"


class TestIdentifiers:
    """Tests for identifier helpers."""

    def test_generate_id_is_uuid(self):
        """Test generated IDs are valid UUIDs."""
        assert is_valid_id(generate_id())

    @pytest.mark.parametrize("value", ["not-a-uuid", "", None, 42])
    def test_invalid_ids(self, value):
        """Test non-UUID values are rejected."""
        assert not is_valid_id(value)


class TestTextHelpers:
    """Tests for text normalization and dictionary access."""

    def test_normalize_lowercases(self):
        """Test lowercasing keeps whitespace by default."""
        assert normalize_text(" Ship V1 ") == " ship v1 "

    def test_normalize_strip(self):
        """Test optional trimming."""
        assert normalize_text(" Ship V1 ", strip=True) == "ship v1"

    def test_safe_get(self):
        """Test nested access with defaults."""
        data = {"a": {"b": {"c": 1}}}

        assert safe_get(data, "a", "b", "c") == 1
        assert safe_get(data, "a", "x", default="missing") == "missing"
        assert safe_get(None, "a") is None
