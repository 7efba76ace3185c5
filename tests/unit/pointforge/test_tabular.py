# SPDX-License-Identifier: MIT
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
import pytest

from pointforge.config import ColumnFormatSpec, CsvFormat
from pointforge.exceptions import IngestionError, RowParseError
from pointforge.sources.tabular import TabularIngestor


def _write(tmp_path: Path, text: str, name: str = "points.csv") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_ng_export_skips_header_and_comments(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "# Exported from the store\n"
        "ISO 8601 UTC, Timestamp (UTC+12:00), Value, Approval Level, Grade, Qualifiers\n"
        "2024-01-01T00:00:00Z,2024-01-01T12:00:00+12:00,1.5,Working,200,\"ICE,EST\"\n"
        "\n"
        "2024-01-01T00:15:00Z,2024-01-01T12:15:00+12:00,2.5,Working,,\n",
    )

    result = TabularIngestor(path, ColumnFormatSpec.from_preset(CsvFormat.NG)).load()

    assert result.skipped_rows == 1
    first, second = result.points
    assert first.time == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert first.value == 1.5
    assert first.grade_code == 200
    assert first.qualifiers == ("ICE", "EST")
    assert second.grade_code is None
    assert second.qualifiers == ()


def test_legacy_export_uses_format_and_skips_title_rows(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "Stage.Working@A1\n"
        "Date-Time,Value,Grade,Approval,Interpolation Code\n"
        "01/02/2024 03:04:05,7.25,10,1,1\n",
    )

    points = list(TabularIngestor(path, ColumnFormatSpec.from_preset(CsvFormat.LEGACY_3X)))

    assert len(points) == 1
    assert points[0].time == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert points[0].grade_code == 10


def test_malformed_row_fails_by_default(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-01-01T00:00:00Z,1\nnot-a-time,2\n2024-01-01T00:02:00Z,3\n")
    spec = ColumnFormatSpec(date_time_field=1, value_field=2)

    with pytest.raises(RowParseError) as excinfo:
        TabularIngestor(path, spec).load()

    assert excinfo.value.row_number == 2


def test_malformed_row_is_skipped_when_ignored(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-01-01T00:00:00Z,1\n2024-01-01T00:01:00Z,abc\n2024-01-01T00:02:00Z,3\n")
    spec = ColumnFormatSpec(date_time_field=1, value_field=2, ignore_invalid_rows=True)

    result = TabularIngestor(path, spec).load()

    assert [p.value for p in result.points] == [1.0, 3.0]
    assert result.skipped_rows == 1


def test_iter_rows_reports_each_row(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-01-01T00:00:00Z,1\n2024-01-01T00:01:00Z,\n")
    spec = ColumnFormatSpec(date_time_field=1, value_field=2)

    outcomes = list(TabularIngestor(path, spec).iter_rows())

    assert [o.row_number for o in outcomes] == [1, 2]
    assert outcomes[0].ok
    assert not outcomes[1].ok
    assert "missing value" in (outcomes[1].error or "")


def test_quoted_field_may_span_lines(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "2024-01-01T00:00:00Z,1,\"ICE\nEST\"\n"
        "2024-01-01T00:01:00Z,2,\n",
    )
    spec = ColumnFormatSpec(date_time_field=1, value_field=2, qualifiers_field=3)

    outcomes = list(TabularIngestor(path, spec).iter_rows())

    assert [o.row_number for o in outcomes] == [2, 3]
    assert all(o.ok for o in outcomes)
    assert outcomes[0].point is not None
    assert outcomes[0].point.qualifiers == ("ICE\nEST",)
    assert [o.point.value for o in outcomes if o.point] == [1.0, 2.0]


def test_nan_sentinel_produces_gap(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-01-01T00:00:00Z;NaN\n2024-01-01T00:01:00Z;4\n")
    spec = ColumnFormatSpec(date_time_field=1, value_field=2, delimiter=";", nan_value="NaN")

    points = TabularIngestor(path, spec).load().points

    assert points[0].is_gap
    assert points[1].value == 4.0


def test_date_and_time_columns_with_default_time(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-03-01,06:30,1\n2024-03-02,,2\n")
    spec = ColumnFormatSpec(date_only_field=1, time_only_field=2, value_field=3, default_time_of_day="12:00")

    points = TabularIngestor(path, spec).load().points

    assert points[0].time == datetime(2024, 3, 1, 6, 30, tzinfo=timezone.utc)
    assert points[1].time == datetime(2024, 3, 2, 12, 0, tzinfo=timezone.utc)


def test_utc_offset_applies_to_naive_timestamps(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-01-01T10:00:00,1\n2024-01-01T10:00:00Z,2\n")
    spec = ColumnFormatSpec(date_time_field=1, value_field=2, utc_offset_minutes=600)

    points = TabularIngestor(path, spec).load().points

    assert points[0].time == datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
    assert points[1].time == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def test_tab_delimited_with_secondary_qualifier_delimiter(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-01-01T00:00:00Z\t1\tA;B\n")
    spec = ColumnFormatSpec(
        date_time_field=1, value_field=2, qualifiers_field=3, delimiter="\t", qualifier_delimiter=";"
    )

    (point,) = TabularIngestor(path, spec).load().points

    assert point.qualifiers == ("A", "B")


def test_order_is_preserved_without_sorting(tmp_path: Path) -> None:
    path = _write(tmp_path, "2024-01-01T00:05:00Z,1\n2024-01-01T00:00:00Z,2\n")
    spec = ColumnFormatSpec(date_time_field=1, value_field=2)

    points = TabularIngestor(path, spec).load().points

    assert [p.value for p in points] == [1.0, 2.0]


def test_missing_file_raises_ingestion_error(tmp_path: Path) -> None:
    with pytest.raises(IngestionError):
        TabularIngestor(tmp_path / "absent.csv", ColumnFormatSpec(date_time_field=1)).load()


def test_excel_workbook_uses_datetime_cells(tmp_path: Path) -> None:
    path = tmp_path / "points.xlsx"
    frame = pd.DataFrame(
        {
            "time": [datetime(2024, 1, 1, 0, 0), datetime(2024, 1, 1, 0, 1)],
            "value": [1.25, 2.5],
            "grade": [5, 6],
        }
    )
    frame.to_excel(path, sheet_name="Data", index=False)
    spec = ColumnFormatSpec(date_time_field=1, value_field=2, grade_field=3, skip_rows=1, sheet_name="Data")

    points = TabularIngestor(path, spec).load().points

    assert [p.time for p in points] == [
        datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc),
        datetime(2024, 1, 1, 0, 1, tzinfo=timezone.utc),
    ]
    assert [p.value for p in points] == [1.25, 2.5]
    assert [p.grade_code for p in points] == [5, 6]
