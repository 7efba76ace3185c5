# SPDX-License-Identifier: MIT
"""Parsing and rendering of instants, intervals and durations."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pandas as pd

__all__ = [
    "MAX_INSTANT",
    "MIN_INSTANT",
    "TimeRange",
    "ensure_utc",
    "format_instant",
    "parse_duration",
    "parse_instant",
    "parse_interval",
    "parse_utc_offset",
]

MIN_INSTANT = datetime(1, 1, 1, tzinfo=timezone.utc)
MAX_INSTANT = datetime(9999, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

# [-]d.hh:mm:ss[.fffffff], the day-prefixed span syntax used by older exports
_DAY_SPAN = re.compile(r"^(?P<sign>-?)(?P<days>\d+)\.(?P<clock>\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?)$")
_OFFSET = re.compile(r"^(?:UTC)?(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$", re.IGNORECASE)


def ensure_utc(value: datetime, *, assume: timezone = timezone.utc) -> datetime:
    """Attach *assume* to naive values and convert the result to UTC."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=assume)
    return value.astimezone(timezone.utc)


def parse_instant(text: str, *, assume: timezone = timezone.utc) -> datetime:
    """Parse an ISO 8601 timestamp. Naive timestamps are taken in *assume*."""

    stripped = text.strip()
    if not stripped:
        raise ValueError("empty timestamp")
    if stripped[-1] in "zZ":
        stripped = stripped[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(stripped)
    except ValueError as exc:
        raise ValueError(f"'{text}' can't be parsed as an unambiguous date time") from exc
    return ensure_utc(parsed, assume=assume)


def format_instant(value: datetime) -> str:
    """Render *value* as round-trippable ISO 8601 UTC with a ``Z`` suffix."""

    rendered = ensure_utc(value).isoformat()
    if rendered.endswith("+00:00"):
        rendered = rendered[: -len("+00:00")] + "Z"
    return rendered


def parse_duration(text: str) -> timedelta:
    """Parse ``[d.]hh:mm:ss[.fff]``, ISO 8601 (``PT1M``) or pandas (``5min``) durations."""

    stripped = text.strip()
    match = _DAY_SPAN.match(stripped)
    if match:
        stripped = f"{match['sign']}{match['days']} days {match['clock']}"
    try:
        parsed = pd.Timedelta(stripped)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"'{text}' is not a valid duration") from exc
    if pd.isna(parsed):
        raise ValueError(f"'{text}' is not a valid duration")
    return parsed.to_pytimedelta()


def parse_utc_offset(text: str) -> timezone:
    """Parse ``+10:00``, ``-0330``, ``UTC+5`` or ``Z`` into a fixed offset."""

    stripped = text.strip()
    if stripped.upper() in {"Z", "UTC", "0"}:
        return timezone.utc
    match = _OFFSET.match(stripped)
    if not match:
        raise ValueError(f"'{text}' is not a valid UTC offset")
    minutes = int(match["hours"]) * 60 + int(match["minutes"] or 0)
    if minutes > 18 * 60:
        raise ValueError(f"'{text}' is outside the supported UTC offset range")
    if match["sign"] == "-":
        minutes = -minutes
    return timezone(timedelta(minutes=minutes))


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Half-open ``[start, end)`` interval of instants."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("time range bounds must be timezone-aware")
        if self.end < self.start:
            raise ValueError(
                f"Invalid time range: start={format_instant(self.start)} must be "
                f"less than or equal to end={format_instant(self.end)}"
            )

    def __str__(self) -> str:
        return f"{format_instant(self.start)}/{format_instant(self.end)}"

    def to_payload(self) -> dict[str, str]:
        return {"Start": format_instant(self.start), "End": format_instant(self.end)}


def parse_interval(text: str) -> TimeRange:
    """Parse ``StartInstant/EndInstant`` into a :class:`TimeRange`."""

    components = [part for part in text.split("/") if part.strip()]
    if len(components) != 2:
        raise ValueError(
            f"'{text}' is an invalid interval. Use 'StartInstant/EndInstant' "
            "(two ISO 8601 timestamps separated by a forward slash)"
        )
    return TimeRange(parse_instant(components[0]), parse_instant(components[1]))
