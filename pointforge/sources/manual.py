# SPDX-License-Identifier: MIT
from __future__ import annotations

from typing import Iterator

from ..config import ManualSpec
from ..models import Point

__all__ = ["ManualPointCollector"]


class ManualPointCollector:
    """Turn literal values and ``gap`` markers into points on a running clock.

    The clock starts at ``spec.start_time`` and advances by one interval after
    every literal, gap markers included.
    """

    def __init__(self, spec: ManualSpec) -> None:
        self._spec = spec

    def __len__(self) -> int:
        return len(self._spec.values)

    def __iter__(self) -> Iterator[Point]:
        spec = self._spec
        clock = spec.start_time
        for value in spec.values:
            if value is None:
                yield Point.gap(clock)
            else:
                yield Point(
                    time=clock,
                    value=value,
                    grade_code=spec.grade_code,
                    qualifiers=spec.qualifiers,
                )
            clock += spec.point_interval
