# SPDX-License-Identifier: MIT
"""Write points in the layout read back by the ``native`` tabular preset."""

from __future__ import annotations

import csv
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from . import __version__
from .exceptions import PointForgeError
from .models import Point
from .timeutils import format_instant
from .utils.logging import get_logger

__all__ = ["GAP_TEXT", "generated_filename", "resolve_csv_path", "write_points_csv"]

logger = get_logger(__name__)

GAP_TEXT = "Gap"

_UNSAFE = re.compile(r"[^\w.@+-]+")


def generated_filename(identifier: Optional[str], first_time: Optional[datetime]) -> str:
    """``<identifier>.<first point time>.csv`` with filesystem-unsafe characters replaced."""

    name = _UNSAFE.sub("_", identifier or "points").strip("_") or "points"
    stamp = (first_time or datetime.now(timezone.utc)).astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{name}.{stamp}.csv"


def resolve_csv_path(path: Path, identifier: Optional[str], points: Sequence[Point]) -> Path:
    if path.is_dir():
        return path / generated_filename(identifier, points[0].time if points else None)
    return path


def _row(point: Point, qualifier_delimiter: str) -> list[str]:
    if point.is_gap:
        return [format_instant(point.time), GAP_TEXT, "", ""]
    return [
        format_instant(point.time),
        repr(point.value),
        "" if point.grade_code is None else str(point.grade_code),
        qualifier_delimiter.join(point.qualifiers),
    ]


def write_points_csv(
    path: Path,
    points: Sequence[Point],
    *,
    identifier: Optional[str] = None,
    delimiter: str = ",",
    qualifier_delimiter: str = ",",
    comments: Iterable[str] = (),
) -> Path:
    """Write *points* to *path* (or a generated file inside it) and return the file written."""

    target = resolve_csv_path(Path(path), identifier, points)
    generated_at = format_instant(datetime.now(timezone.utc).replace(microsecond=0))
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8", newline="") as handle:
            handle.write(f"# {target.name} generated by pointforge v{__version__} at {generated_at}\n")
            if identifier:
                handle.write(f"# Time series: {identifier}\n")
            for comment in comments:
                handle.write(f"# {comment}\n")
            handle.write(f"# {delimiter.join(('Time', 'Value', 'Grade', 'Qualifiers'))}\n")
            writer = csv.writer(handle, delimiter=delimiter, lineterminator="\n")
            for point in points:
                writer.writerow(_row(point, qualifier_delimiter))
    except OSError as exc:
        raise PointForgeError(f"Unable to write '{target}': {exc}") from exc
    logger.info("Saved points to CSV", path=str(target), points=len(points))
    return target
