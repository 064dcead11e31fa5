"""Tests for org timestamp extraction."""

import logging
from datetime import datetime

import pytest

from espresso_mcp.indexer.timestamps import parse_timestamps, to_datetime


class TestToDatetime:
    def test_date_only(self):
        assert to_datetime("2024-01-15") == datetime(2024, 1, 15)

    def test_date_and_time(self):
        assert to_datetime("2024-01-15", "9:05") == datetime(2024, 1, 15, 9, 5)

    def test_impossible_date_raises(self):
        with pytest.raises(ValueError):
            to_datetime("2024-02-30")


class TestParseTimestamps:
    def test_active(self):
        [ts] = parse_timestamps("Call <2024-01-15 Mon>")

        assert ts.type == "active"
        assert ts.datetime == "2024-01-15"
        assert ts.original_text == "<2024-01-15 Mon>"
        assert ts.start_date == datetime(2024, 1, 15)
        assert ts.end_date is None

    def test_active_with_time_span(self):
        [ts] = parse_timestamps("<2024-01-15 Mon 10:00-11:30>")

        assert ts.start_date == datetime(2024, 1, 15, 10, 0)
        assert ts.end_date == datetime(2024, 1, 15, 11, 30)

    def test_inactive(self):
        [ts] = parse_timestamps("Logged [2024-01-15 Mon 08:00]")

        assert ts.type == "inactive"
        assert ts.original_text == "[2024-01-15 Mon 08:00]"
        assert ts.start_date == datetime(2024, 1, 15, 8, 0)

    def test_scheduled_is_also_active(self):
        timestamps = parse_timestamps("SCHEDULED: <2024-01-15 Mon 10:30>")

        assert [t.type for t in timestamps] == ["active", "scheduled"]
        scheduled = timestamps[1]
        assert scheduled.original_text == "SCHEDULED: <2024-01-15 Mon 10:30>"
        assert scheduled.start_date == datetime(2024, 1, 15, 10, 30)

    def test_deadline_is_also_active(self):
        timestamps = parse_timestamps("DEADLINE: <2024-02-01 Thu>")
        assert [t.type for t in timestamps] == ["active", "deadline"]

    def test_range(self):
        timestamps = parse_timestamps("<2024-01-15 Mon 09:00>--<2024-01-17 Wed 17:00>")

        assert [t.type for t in timestamps] == ["active", "active", "range"]
        rng = timestamps[-1]
        assert rng.datetime == "2024-01-15"
        assert rng.start_date == datetime(2024, 1, 15, 9, 0)
        assert rng.end_date == datetime(2024, 1, 17, 17, 0)

    def test_grouped_by_pattern_not_position(self):
        timestamps = parse_timestamps("[2024-01-01 Mon] then <2024-01-02 Tue>")
        assert [t.type for t in timestamps] == ["active", "inactive"]

    def test_multiple_matches_in_text_order(self):
        timestamps = parse_timestamps("<2024-01-02 Tue> and <2024-01-01 Mon>")
        assert [t.datetime for t in timestamps] == ["2024-01-02", "2024-01-01"]

    def test_no_timestamps(self):
        assert parse_timestamps("plain text <not a date>") == []

    def test_invalid_date_is_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            timestamps = parse_timestamps("<2024-02-30 Fri> <2024-03-01 Fri>")

        assert [t.datetime for t in timestamps] == ["2024-03-01"]
        assert "Failed to parse timestamp" in caplog.text

    def test_invalid_time_is_dropped(self):
        assert parse_timestamps("<2024-01-15 Mon 25:00>") == []
