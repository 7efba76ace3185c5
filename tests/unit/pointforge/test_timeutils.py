# SPDX-License-Identifier: MIT
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pointforge.timeutils import (
    MAX_INSTANT,
    MIN_INSTANT,
    TimeRange,
    format_instant,
    parse_duration,
    parse_instant,
    parse_interval,
    parse_utc_offset,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-01-01T00:00:00Z", datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ("2024-01-01T10:30:00+10:00", datetime(2024, 1, 1, 0, 30, tzinfo=timezone.utc)),
        ("2024-01-01 12:00", datetime(2024, 1, 1, 12, tzinfo=timezone.utc)),
        ("2024-01-01", datetime(2024, 1, 1, tzinfo=timezone.utc)),
    ],
)
def test_parse_instant(text: str, expected: datetime) -> None:
    assert parse_instant(text) == expected


def test_parse_instant_applies_assumed_zone_to_naive_values() -> None:
    parsed = parse_instant("2024-01-01T10:00:00", assume=timezone(timedelta(hours=10)))

    assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parsed.tzinfo == timezone.utc


@pytest.mark.parametrize("text", ["", "yesterday", "2024-13-01"])
def test_parse_instant_rejects_garbage(text: str) -> None:
    with pytest.raises(ValueError):
        parse_instant(text)


def test_format_instant_uses_z_suffix() -> None:
    assert format_instant(datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)) == "2024-05-06T07:08:09Z"
    assert format_instant(MIN_INSTANT) == "0001-01-01T00:00:00Z"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("00:01:00", timedelta(minutes=1)),
        ("1.02:00:00", timedelta(days=1, hours=2)),
        ("PT15M", timedelta(minutes=15)),
        ("5min", timedelta(minutes=5)),
        ("00:00:00.5", timedelta(milliseconds=500)),
    ],
)
def test_parse_duration(text: str, expected: timedelta) -> None:
    assert parse_duration(text) == expected


def test_parse_duration_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_duration("soon")


@pytest.mark.parametrize(
    "text, minutes",
    [("Z", 0), ("+10:00", 600), ("-0330", -210), ("UTC+5", 300)],
)
def test_parse_utc_offset(text: str, minutes: int) -> None:
    assert parse_utc_offset(text).utcoffset(None) == timedelta(minutes=minutes)


def test_parse_utc_offset_rejects_out_of_range() -> None:
    with pytest.raises(ValueError):
        parse_utc_offset("+19:00")


def test_parse_interval_round_trips_through_str() -> None:
    interval = parse_interval("2024-01-01T00:00:00Z/2024-01-02T00:00:00Z")

    assert interval.start == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert str(interval) == "2024-01-01T00:00:00Z/2024-01-02T00:00:00Z"


def test_parse_interval_requires_two_instants() -> None:
    with pytest.raises(ValueError, match="invalid interval"):
        parse_interval("2024-01-01T00:00:00Z")


def test_time_range_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError, match="Invalid time range"):
        TimeRange(datetime(2024, 1, 2, tzinfo=timezone.utc), datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_time_range_payload() -> None:
    payload = TimeRange(MIN_INSTANT, MAX_INSTANT).to_payload()

    assert payload == {"Start": "0001-01-01T00:00:00Z", "End": "9999-12-31T23:59:59.999999Z"}
