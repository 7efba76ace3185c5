# SPDX-License-Identifier: MIT
"""Immutable pydantic models describing one pointforge run."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    InstanceOf,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    field_validator,
    model_validator,
)

from .mappings import GradeMapping, QualifierMapping
from .retry import RetryPolicy
from .timeutils import TimeRange, ensure_utc

__all__ = [
    "AppendBatchPolicy",
    "ColumnFormatSpec",
    "CommandType",
    "ConnectionSettings",
    "CsvFormat",
    "ManualSpec",
    "RunConfig",
    "SourceCopySpec",
    "TransformOptions",
    "WaveformSpec",
    "WaveformType",
]


class _FrozenModel(BaseModel):
    """Base configuration shared by the immutable run models."""

    model_config = ConfigDict(frozen=True, extra="forbid")


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    return None if value is None else ensure_utc(value)


class CommandType(str, Enum):
    """Append operation issued against the target series."""

    AUTO = "auto"
    APPEND = "append"
    OVERWRITE_APPEND = "overwriteappend"
    REFLECTED = "reflected"
    DELETE_ALL_POINTS = "deleteallpoints"


class WaveformType(str, Enum):
    """Synthetic waveform shapes."""

    SINE = "sine"
    SQUARE = "square"
    SAWTOOTH = "sawtooth"
    LINEAR = "linear"
    TEXT = "text"


class CsvFormat(str, Enum):
    """Known tabular export layouts."""

    NG = "ng"
    LEGACY_3X = "3x"
    NATIVE = "native"


class ConnectionSettings(_FrozenModel):
    """Where the time-series store lives and how to authenticate."""

    server: str
    username: Optional[str] = None
    password: Optional[str] = None
    session_token: Optional[str] = None
    timeout_seconds: PositiveFloat = 30.0
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("server")
    @classmethod
    def _non_empty_server(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("server must be a non-empty host name or URL")
        return stripped

    @property
    def base_url(self) -> str:
        if "://" in self.server:
            return self.server.rstrip("/")
        return f"https://{self.server}"


class ManualSpec(_FrozenModel):
    """Literal values and gap markers supplied on the command line."""

    values: Tuple[Optional[float], ...]
    start_time: datetime
    point_interval: timedelta = timedelta(minutes=1)
    grade_code: Optional[int] = None
    qualifiers: Tuple[str, ...] = ()

    @field_validator("start_time")
    @classmethod
    def _start_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _aware(value)


class WaveformSpec(_FrozenModel):
    """Synthetic waveform generation parameters."""

    waveform_type: WaveformType = WaveformType.SINE
    start_time: datetime
    point_interval: timedelta = timedelta(minutes=1)
    number_of_points: NonNegativeInt = 0
    number_of_periods: NonNegativeFloat = 1.0
    period: PositiveFloat = 1440.0
    scalar: float = 1.0
    offset: float = 0.0
    phase: float = 0.0
    text_x: Optional[str] = None
    text_y: Optional[str] = None
    grade_code: Optional[int] = None
    qualifiers: Tuple[str, ...] = ()

    @field_validator("start_time")
    @classmethod
    def _start_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _aware(value)

    @field_validator("point_interval")
    @classmethod
    def _non_negative_interval(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("point_interval must not be negative")
        return value

    @model_validator(mode="after")
    def _validate_text_channel(self) -> "WaveformSpec":
        has_x = bool(self.text_x)
        has_y = bool(self.text_y)
        if self.waveform_type is WaveformType.TEXT:
            if has_x == has_y:
                raise ValueError("text waveforms require exactly one of text_x or text_y")
        elif has_x or has_y:
            raise ValueError("text_x/text_y are only valid for the text waveform")
        return self

    @property
    def text(self) -> Optional[str]:
        return self.text_x or self.text_y


_FORMAT_PRESETS: Dict[CsvFormat, Dict[str, Any]] = {
    # 201x export: "ISO 8601 UTC, Timestamp (UTC+12:00), Value, Approval Level, Grade, Qualifiers"
    CsvFormat.NG: {
        "date_time_field": 1,
        "date_time_format": None,
        "value_field": 3,
        "grade_field": 5,
        "qualifiers_field": 6,
        "comment_prefix": "#",
        "skip_rows": 0,
        "ignore_invalid_rows": True,
    },
    # 3.x export: two title rows, then "Date-Time,Value,Grade,Approval,Interpolation Code"
    CsvFormat.LEGACY_3X: {
        "date_time_field": 1,
        "date_time_format": "%m/%d/%Y %H:%M:%S",
        "value_field": 2,
        "grade_field": 3,
        "qualifiers_field": 0,
        "comment_prefix": None,
        "skip_rows": 2,
        "ignore_invalid_rows": True,
    },
    # Written by pointforge.csv_writer
    CsvFormat.NATIVE: {
        "date_time_field": 1,
        "date_time_format": None,
        "value_field": 2,
        "grade_field": 3,
        "qualifiers_field": 4,
        "comment_prefix": "#",
        "skip_rows": 0,
        "nan_value": "Gap",
        "ignore_invalid_rows": False,
    },
}


class ColumnFormatSpec(_FrozenModel):
    """How one delimited row maps onto a point. Column indexes are 1-based, 0 is unused."""

    date_time_field: NonNegativeInt = 0
    date_time_format: Optional[str] = None
    date_only_field: NonNegativeInt = 0
    date_only_format: Optional[str] = None
    time_only_field: NonNegativeInt = 0
    time_only_format: Optional[str] = None
    default_time_of_day: str = "00:00"
    value_field: PositiveInt = 2
    grade_field: NonNegativeInt = 0
    qualifiers_field: NonNegativeInt = 0
    comment_prefix: Optional[str] = "#"
    skip_rows: NonNegativeInt = 0
    delimiter: str = ","
    qualifier_delimiter: str = ","
    nan_value: Optional[str] = None
    ignore_invalid_rows: bool = False
    utc_offset_minutes: int = Field(0, ge=-18 * 60, le=18 * 60)
    sheet_number: NonNegativeInt = 0
    sheet_name: Optional[str] = None

    @classmethod
    def from_preset(cls, preset: CsvFormat = CsvFormat.NG, **overrides: Any) -> "ColumnFormatSpec":
        """Start from a known layout, letting non-``None`` overrides win."""

        values = dict(_FORMAT_PRESETS[CsvFormat(preset)])
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @field_validator("delimiter")
    @classmethod
    def _single_character_delimiter(cls, value: str) -> str:
        if len(value) != 1:
            raise ValueError("delimiter must be a single character")
        return value

    @field_validator("qualifier_delimiter")
    @classmethod
    def _non_empty_qualifier_delimiter(cls, value: str) -> str:
        if not value:
            raise ValueError("qualifier_delimiter must not be empty")
        return value

    @model_validator(mode="after")
    def _validate_timestamp_columns(self) -> "ColumnFormatSpec":
        if self.date_time_field and self.date_only_field:
            raise ValueError("date_time_field and date_only_field are mutually exclusive")
        if not self.date_time_field and not self.date_only_field:
            raise ValueError("one of date_time_field or date_only_field is required")
        if self.time_only_field and not self.date_only_field:
            raise ValueError("time_only_field requires date_only_field")
        return self

    @property
    def tzinfo(self) -> timezone:
        return timezone(timedelta(minutes=self.utc_offset_minutes))


_SERVER_PREFIX = re.compile(r"^\[(?P<server>[^:\]]+)(?::(?P<username>[^:\]]*):(?P<password>[^\]]*))?\](?P<identifier>.+)$")


class SourceCopySpec(_FrozenModel):
    """Another time series to copy points from."""

    identifier: str
    server: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    query_from: Optional[datetime] = None
    query_to: Optional[datetime] = None

    @field_validator("query_from", "query_to")
    @classmethod
    def _bounds_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _aware(value)

    @classmethod
    def parse(cls, text: str, **kwargs: Any) -> "SourceCopySpec":
        """Parse ``[server]identifier`` or ``[server:username:password]identifier``."""

        stripped = text.strip()
        match = _SERVER_PREFIX.match(stripped)
        if not match:
            return cls(identifier=stripped, **kwargs)
        return cls(
            identifier=match["identifier"].strip(),
            server=match["server"].strip(),
            username=match["username"] or None,
            password=match["password"] or None,
            **kwargs,
        )

    @model_validator(mode="after")
    def _validate_bounds(self) -> "SourceCopySpec":
        if not self.identifier:
            raise ValueError("source identifier must not be empty")
        if self.query_from and self.query_to and self.query_to < self.query_from:
            raise ValueError("query_from must be less than or equal to query_to")
        return self

    def connection(self, primary: Optional[ConnectionSettings]) -> ConnectionSettings:
        """Connection for the source series, defaulting to the run's primary server."""

        if self.server is None:
            if primary is None:
                raise ValueError("a primary server is required to load the source time series")
            return primary
        base = primary.model_dump(exclude={"server", "username", "password", "session_token"}) if primary else {}
        return ConnectionSettings(server=self.server, username=self.username, password=self.password, **base)


class AppendBatchPolicy(_FrozenModel):
    """Batch sizing and completion-wait behaviour for appends."""

    batch_size: PositiveInt = 500_000
    wait: bool = True
    timeout: timedelta = timedelta(minutes=5)
    poll_interval: PositiveFloat = 0.5
    max_poll_interval: PositiveFloat = 5.0

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("timeout must be a positive duration")
        return value


class TransformOptions(_FrozenModel):
    """Flags for the point transformation pipeline."""

    ignore_grades: bool = False
    ignore_qualifiers: bool = False
    grade_mapping: InstanceOf[GradeMapping] = Field(default_factory=GradeMapping)
    qualifier_mapping: InstanceOf[QualifierMapping] = Field(default_factory=QualifierMapping)
    realign: bool = False
    remove_duplicates: bool = False
    start_time: Optional[datetime] = None

    @field_validator("start_time")
    @classmethod
    def _start_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _aware(value)

    @model_validator(mode="after")
    def _validate_realign(self) -> "TransformOptions":
        if self.realign and self.start_time is None:
            raise ValueError("realign requires a start_time")
        return self


class RunConfig(_FrozenModel):
    """Fully validated context threaded through a single run."""

    connection: Optional[ConnectionSettings] = None
    time_series: Optional[str] = None
    command: CommandType = CommandType.AUTO
    time_range: Optional[InstanceOf[TimeRange]] = None
    manual: Optional[ManualSpec] = None
    waveform: Optional[WaveformSpec] = None
    csv_files: Tuple[Path, ...] = ()
    csv_format: ColumnFormatSpec = Field(default_factory=ColumnFormatSpec.from_preset)
    source_copy: Optional[SourceCopySpec] = None
    transform: TransformOptions = Field(default_factory=TransformOptions)
    batch_policy: AppendBatchPolicy = Field(default_factory=AppendBatchPolicy)
    save_csv_path: Optional[Path] = None
    stop_after_saving_csv: bool = False

    @model_validator(mode="after")
    def _validate_targets(self) -> "RunConfig":
        if self.stop_after_saving_csv and self.save_csv_path is None:
            raise ValueError("stop_after_saving_csv requires save_csv_path")
        if self.source_copy is not None and self.source_copy.server is None and self.connection is None:
            raise ValueError("a server is required to load the source time series")
        if not self.stop_after_saving_csv:
            if self.connection is None:
                raise ValueError("a server is required")
            if not self.time_series:
                raise ValueError("a target time series is required")
        return self

    @property
    def delivers(self) -> bool:
        return not self.stop_after_saving_csv
