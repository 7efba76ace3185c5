# SPDX-License-Identifier: MIT
"""Canonical point representation flowing through the pipeline.

Points are produced by the sources, rewritten by the transformation pipeline
and consumed once by the CSV writer or the append batcher.  They are plain
frozen dataclasses rather than pydantic models: a single run may carry
millions of them and validation happens once at the source boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable

__all__ = ["Point", "PointKind", "shift_points"]


class PointKind(str, Enum):
    """Distinguishes measurements from explicit record breaks."""

    VALUE = "Point"
    GAP = "Gap"


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(value for value in values if value))


@dataclass(frozen=True, slots=True)
class Point:
    """One timestamped observation or gap marker."""

    time: datetime
    value: float | None = None
    grade_code: int | None = None
    qualifiers: tuple[str, ...] = field(default_factory=tuple)
    kind: PointKind = PointKind.VALUE

    def __post_init__(self) -> None:
        if self.time.tzinfo is None:
            raise ValueError("point time must be timezone-aware")
        if self.kind is PointKind.GAP:
            object.__setattr__(self, "value", None)
            object.__setattr__(self, "grade_code", None)
            object.__setattr__(self, "qualifiers", ())
            return
        if self.value is None:
            raise ValueError("value points require a numeric value")
        object.__setattr__(self, "qualifiers", _unique(self.qualifiers))

    @classmethod
    def gap(cls, time: datetime) -> "Point":
        return cls(time=time, kind=PointKind.GAP)

    @property
    def is_gap(self) -> bool:
        return self.kind is PointKind.GAP

    def with_metadata(
        self,
        *,
        grade_code: int | None,
        qualifiers: Iterable[str],
    ) -> "Point":
        if self.is_gap:
            return self
        return replace(self, grade_code=grade_code, qualifiers=tuple(qualifiers))

    def shifted(self, offset: timedelta) -> "Point":
        return replace(self, time=self.time + offset)


def shift_points(points: Iterable[Point], offset: timedelta) -> list[Point]:
    """Return *points* moved in time by a constant *offset*."""

    return [point.shifted(offset) for point in points]
