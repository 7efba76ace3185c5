# SPDX-License-Identifier: MIT
"""Delimited-text and Excel ingestion driven by a :class:`ColumnFormatSpec`."""

from __future__ import annotations

import csv
import math
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Iterator, Sequence

import pandas as pd

from ..config import ColumnFormatSpec
from ..exceptions import IngestionError, RowParseError
from ..mappings import parse_qualifier_list
from ..models import Point
from ..timeutils import ensure_utc, parse_instant
from ..utils.logging import get_logger

__all__ = ["EXCEL_SUFFIXES", "RowOutcome", "TabularIngestor", "TabularResult"]

logger = get_logger(__name__)

EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm", ".xls"})


@dataclass(frozen=True, slots=True)
class RowOutcome:
    """Result of parsing one non-comment row."""

    row_number: int
    point: Point | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class TabularResult:
    points: list[Point]
    skipped_rows: int


def _is_blank(cell: Any) -> bool:
    if cell is None or cell is pd.NaT:
        return True
    if isinstance(cell, float) and math.isnan(cell):
        return True
    return isinstance(cell, str) and not cell.strip()


def _clean(cell: Any) -> Any:
    if _is_blank(cell):
        return None
    if isinstance(cell, str):
        return cell.strip()
    if isinstance(cell, pd.Timestamp):
        return cell.to_pydatetime()
    return cell


class TabularIngestor:
    """Parse one CSV or Excel file into points.

    :meth:`iter_rows` reports every row individually and never raises for a
    malformed row; :meth:`load` applies the failure policy of the format.
    """

    def __init__(self, path: str | Path, column_format: ColumnFormatSpec) -> None:
        self.path = Path(path)
        self.format = column_format

    @property
    def is_excel(self) -> bool:
        return self.path.suffix.lower() in EXCEL_SUFFIXES

    def iter_rows(self) -> Iterator[RowOutcome]:
        if not self.path.is_file():
            raise IngestionError(f"'{self.path}' does not exist")
        rows = self._excel_rows() if self.is_excel else self._text_rows()
        for row_number, cells in rows:
            if row_number <= self.format.skip_rows:
                continue
            cells = [_clean(cell) for cell in cells]
            if all(cell is None for cell in cells):
                continue
            if self._is_comment(cells[0]):
                continue
            try:
                point = self._parse(cells)
            except (TypeError, ValueError, OverflowError) as exc:
                yield RowOutcome(row_number, error=str(exc))
                continue
            yield RowOutcome(row_number, point=point)

    def load(self) -> TabularResult:
        points: list[Point] = []
        skipped = 0
        for outcome in self.iter_rows():
            if outcome.point is not None:
                points.append(outcome.point)
                continue
            if not self.format.ignore_invalid_rows:
                raise RowParseError(str(self.path), outcome.row_number, outcome.error or "invalid row")
            skipped += 1
            logger.warning(
                "Skipping malformed row",
                path=str(self.path),
                row=outcome.row_number,
                reason=outcome.error,
            )
        logger.info("Loaded tabular points", path=str(self.path), points=len(points), skipped_rows=skipped)
        return TabularResult(points=points, skipped_rows=skipped)

    def __iter__(self) -> Iterator[Point]:
        return iter(self.load().points)

    def _text_rows(self) -> Iterator[tuple[int, Sequence[Any]]]:
        delimiter = self.format.delimiter
        try:
            with self.path.open("r", encoding="utf-8-sig", newline="") as handle:
                reader = csv.reader(handle, delimiter=delimiter)
                for cells in reader:
                    if not cells:
                        continue
                    yield reader.line_num, cells
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise IngestionError(f"Unable to read '{self.path}': {exc}") from exc

    def _excel_rows(self) -> Iterator[tuple[int, Sequence[Any]]]:
        sheet: int | str = self.format.sheet_name or self.format.sheet_number
        try:
            frame = pd.read_excel(self.path, sheet_name=sheet, header=None, dtype=object)
        except (OSError, ValueError, KeyError, ImportError) as exc:
            raise IngestionError(f"Unable to read '{self.path}' sheet {sheet!r}: {exc}") from exc
        for offset, row in enumerate(frame.itertuples(index=False, name=None)):
            yield offset + 1, list(row)

    def _is_comment(self, first_cell: Any) -> bool:
        prefix = self.format.comment_prefix
        return bool(prefix) and isinstance(first_cell, str) and first_cell.startswith(prefix)

    @staticmethod
    def _field(cells: Sequence[Any], index: int) -> Any:
        if index <= 0 or index > len(cells):
            return None
        return cells[index - 1]

    def _parse(self, cells: Sequence[Any]) -> Point:
        fmt = self.format
        timestamp = self._timestamp(cells)

        raw_value = self._field(cells, fmt.value_field)
        if raw_value is None:
            raise ValueError(f"missing value in column {fmt.value_field}")
        if fmt.nan_value is not None and str(raw_value) == fmt.nan_value:
            return Point.gap(timestamp)
        value = float(raw_value)
        if not math.isfinite(value):
            raise ValueError(f"'{raw_value}' is not a finite number")

        grade_code = None
        raw_grade = self._field(cells, fmt.grade_field)
        if raw_grade is not None:
            grade_code = self._grade(raw_grade)

        qualifiers: tuple[str, ...] = ()
        raw_qualifiers = self._field(cells, fmt.qualifiers_field)
        if raw_qualifiers is not None:
            qualifiers = parse_qualifier_list(str(raw_qualifiers), fmt.qualifier_delimiter)

        return Point(time=timestamp, value=value, grade_code=grade_code, qualifiers=qualifiers)

    @staticmethod
    def _grade(raw: Any) -> int:
        if isinstance(raw, float):
            if not raw.is_integer():
                raise ValueError(f"'{raw}' is not an integer grade code")
            return int(raw)
        return int(str(raw))

    def _timestamp(self, cells: Sequence[Any]) -> datetime:
        fmt = self.format
        tz = fmt.tzinfo
        if fmt.date_time_field:
            raw = self._field(cells, fmt.date_time_field)
            if raw is None:
                raise ValueError(f"missing timestamp in column {fmt.date_time_field}")
            if isinstance(raw, datetime):
                return ensure_utc(raw, assume=tz)
            text = str(raw)
            if fmt.date_time_format:
                return ensure_utc(datetime.strptime(text, fmt.date_time_format), assume=tz)
            return parse_instant(text, assume=tz)

        raw_date = self._field(cells, fmt.date_only_field)
        if raw_date is None:
            raise ValueError(f"missing date in column {fmt.date_only_field}")
        day = self._date(raw_date)
        raw_time = self._field(cells, fmt.time_only_field)
        if raw_time is None:
            raw_time = fmt.default_time_of_day
        return ensure_utc(datetime.combine(day, self._time(raw_time)), assume=tz)

    def _date(self, raw: Any) -> date:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if self.format.date_only_format:
            return datetime.strptime(str(raw), self.format.date_only_format).date()
        return date.fromisoformat(str(raw))

    def _time(self, raw: Any) -> time:
        if isinstance(raw, datetime):
            return raw.time()
        if isinstance(raw, time):
            return raw
        if self.format.time_only_format:
            return datetime.strptime(str(raw), self.format.time_only_format).time()
        return time.fromisoformat(str(raw))
