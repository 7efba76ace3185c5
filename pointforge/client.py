# SPDX-License-Identifier: MIT
"""Synchronous HTTP client for the remote time-series store.

Read endpoints live under ``/publish/v2`` and are retried on transient
failures; append endpoints live under ``/acquisition/v2`` and are issued
exactly once.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

import httpx

from .config import CommandType, ConnectionSettings
from .exceptions import (
    AmbiguousSeriesError,
    ConfigurationError,
    RemoteError,
    SeriesNotFoundError,
)
from .models import Point
from .timeutils import TimeRange, format_instant, parse_instant
from .utils.logging import get_logger

__all__ = [
    "AppendState",
    "AppendStatus",
    "SeriesDescription",
    "SeriesIdentifier",
    "TimeSeriesClient",
    "is_unique_id",
    "parse_series_identifier",
]

logger = get_logger(__name__)

PUBLISH_ROOT = "/publish/v2"
ACQUISITION_ROOT = "/acquisition/v2"
TOKEN_HEADER = "X-Authentication-Token"

_IDENTIFIER = re.compile(r"^(?P<parameter>[^.@]+)\.(?P<label>[^@]+)@(?P<location>.+)$")

_APPEND_PATHS: Mapping[CommandType, str] = {
    CommandType.APPEND: "append",
    CommandType.OVERWRITE_APPEND: "overwriteappend",
    CommandType.REFLECTED: "reflected",
}


@dataclass(frozen=True, slots=True)
class SeriesIdentifier:
    """``Parameter.Label@Location`` split into its parts."""

    parameter: str
    label: str
    location: str

    def __str__(self) -> str:
        return f"{self.parameter}.{self.label}@{self.location}"


def parse_series_identifier(text: str) -> SeriesIdentifier:
    match = _IDENTIFIER.match(text.strip())
    if not match:
        raise ConfigurationError(f"'{text}' is not a valid time series identifier. Use Parameter.Label@Location")
    return SeriesIdentifier(match["parameter"], match["label"], match["location"])


def is_unique_id(text: str) -> bool:
    try:
        uuid.UUID(text.strip())
    except ValueError:
        return False
    return True


@dataclass(frozen=True, slots=True)
class SeriesDescription:
    identifier: str
    unique_id: str
    series_type: Optional[str] = None

    @property
    def is_reflected(self) -> bool:
        return (self.series_type or "").lower() == "reflected"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SeriesDescription":
        return cls(
            identifier=str(payload.get("Identifier", "")),
            unique_id=str(payload["UniqueId"]),
            series_type=payload.get("TimeSeriesType"),
        )


class AppendState(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILURE = "Failure"


@dataclass(frozen=True, slots=True)
class AppendStatus:
    """Server-side progress of one append request."""

    append_id: str
    state: AppendState
    points_appended: int = 0
    points_deleted: int = 0
    error: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.state is not AppendState.PENDING


def _interval_covering(intervals: Sequence[tuple[datetime, datetime, Any]], time: datetime) -> Iterable[Any]:
    return (value for start, end, value in intervals if start <= time < end)


def _metadata_intervals(entries: Iterable[Mapping[str, Any]], key: str) -> list[tuple[datetime, datetime, Any]]:
    intervals = []
    for entry in entries:
        value = entry.get(key)
        if value is None or value == "":
            continue
        intervals.append((parse_instant(entry["StartTime"]), parse_instant(entry["EndTime"]), value))
    intervals.sort(key=lambda item: item[0])
    return intervals


def points_from_corrected_data(payload: Mapping[str, Any]) -> list[Point]:
    """Convert a corrected-data response into points with grades and qualifiers attached.

    Grade and qualifier metadata arrive as ``[StartTime, EndTime)`` ranges; a
    point takes the grade of the range containing it and every qualifier whose
    range contains it. Points without a numeric value become gaps.
    """

    grades = _metadata_intervals(payload.get("Grades") or (), "GradeCode")
    qualifiers = _metadata_intervals(payload.get("Qualifiers") or (), "Identifier")

    points: list[Point] = []
    for entry in payload.get("Points") or ():
        time = parse_instant(entry["Timestamp"])
        numeric = (entry.get("Value") or {}).get("Numeric")
        if numeric is None:
            points.append(Point.gap(time))
            continue
        grade = next(iter(_interval_covering(grades, time)), None)
        points.append(
            Point(
                time=time,
                value=float(numeric),
                grade_code=None if grade is None else int(grade),
                qualifiers=tuple(str(code) for code in _interval_covering(qualifiers, time)),
            )
        )
    return points


def _point_payload(point: Point) -> dict[str, Any]:
    if point.is_gap:
        return {"Type": "Gap"}
    payload: dict[str, Any] = {"Time": format_instant(point.time), "Value": point.value}
    if point.grade_code is not None:
        payload["GradeCode"] = point.grade_code
    if point.qualifiers:
        payload["Qualifiers"] = list(point.qualifiers)
    return payload


def _remote_error(response: httpx.Response, *, error_type: type[RemoteError] = RemoteError) -> RemoteError:
    error_code = None
    message = response.reason_phrase or "request failed"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, Mapping):
        status = body.get("ResponseStatus") or {}
        error_code = status.get("ErrorCode") or None
        message = status.get("Message") or message
    elif response.text:
        message = response.text.strip()
    return error_type(message, status_code=response.status_code, error_code=error_code)


class TimeSeriesClient:
    """Session-scoped client. Use as a context manager to sign in and out."""

    def __init__(
        self,
        settings: ConnectionSettings,
        *,
        http_client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            transport=transport,
        )
        self._signed_in = False

    def __enter__(self) -> "TimeSeriesClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def connect(self) -> None:
        settings = self.settings
        if settings.session_token:
            self._client.headers[TOKEN_HEADER] = settings.session_token
            return
        if not settings.username:
            return
        response = self._send(
            "POST",
            f"{PUBLISH_ROOT}/session",
            json={"Username": settings.username, "Password": settings.password or ""},
        )
        self._client.headers[TOKEN_HEADER] = response.text.strip().strip('"')
        self._signed_in = True
        logger.info("Connected to time-series store", server=settings.base_url, username=settings.username)

    def close(self) -> None:
        try:
            if self._signed_in:
                self._signed_in = False
                try:
                    self._client.delete(f"{PUBLISH_ROOT}/session")
                except httpx.HTTPError as exc:
                    logger.warning("Unable to sign out", server=self.settings.base_url, error=str(exc))
        finally:
            if self._owns_client:
                self._client.close()

    def resolve_series(self, name_or_id: str) -> SeriesDescription:
        """Look up a series by ``Parameter.Label@Location`` or unique id."""

        if is_unique_id(name_or_id):
            unique_id = uuid.UUID(name_or_id.strip()).hex
            payload = self._get(
                f"{PUBLISH_ROOT}/GetTimeSeriesDescriptionListByUniqueId",
                params={"TimeSeriesUniqueIds": unique_id},
            )
            matches = [
                SeriesDescription.from_payload(item)
                for item in payload.get("TimeSeriesDescriptions") or ()
                if uuid.UUID(str(item.get("UniqueId"))).hex == unique_id
            ]
        else:
            identifier = parse_series_identifier(name_or_id)
            payload = self._get(
                f"{PUBLISH_ROOT}/GetTimeSeriesDescriptionList",
                params={"LocationIdentifier": identifier.location, "Parameter": identifier.parameter},
            )
            matches = [
                SeriesDescription.from_payload(item)
                for item in payload.get("TimeSeriesDescriptions") or ()
                if item.get("Identifier") == str(identifier)
            ]

        if not matches:
            raise SeriesNotFoundError(f"Can't find time series '{name_or_id}'")
        if len(matches) > 1:
            raise AmbiguousSeriesError(f"'{name_or_id}' matches {len(matches)} time series")
        logger.debug("Resolved time series", identifier=matches[0].identifier, unique_id=matches[0].unique_id)
        return matches[0]

    def get_series_points(
        self,
        unique_id: str,
        query_from: Optional[datetime] = None,
        query_to: Optional[datetime] = None,
    ) -> list[Point]:
        params = {"TimeSeriesUniqueId": unique_id}
        if query_from is not None:
            params["QueryFrom"] = format_instant(query_from)
        if query_to is not None:
            params["QueryTo"] = format_instant(query_to)
        payload = self._get(f"{PUBLISH_ROOT}/GetTimeSeriesCorrectedData", params=params)
        return points_from_corrected_data(payload)

    def append_points(
        self,
        unique_id: str,
        points: Sequence[Point],
        *,
        command: CommandType,
        time_range: Optional[TimeRange] = None,
    ) -> str:
        """Submit one append request and return its append identifier."""

        try:
            path = _APPEND_PATHS[command]
        except KeyError:
            raise ConfigurationError(f"'{command.value}' is not an append command") from None
        body: dict[str, Any] = {"Points": [_point_payload(point) for point in points]}
        if command is not CommandType.APPEND:
            if time_range is None:
                raise ConfigurationError(f"{command.value} requires a time range")
            body["TimeRange"] = time_range.to_payload()
        response = self._send("POST", f"{ACQUISITION_ROOT}/timeseries/{unique_id}/{path}", json=body)
        return str(response.json()["AppendRequestIdentifier"])

    def get_append_status(self, append_id: str) -> AppendStatus:
        payload = self._get(f"{ACQUISITION_ROOT}/timeseries/appendstatus/{append_id}")
        return AppendStatus(
            append_id=append_id,
            state=AppendState(payload.get("AppendStatus", AppendState.PENDING.value)),
            points_appended=int(payload.get("NumberOfPointsAppended") or 0),
            points_deleted=int(payload.get("NumberOfPointsDeleted") or 0),
            error=payload.get("ErrorMessage") or None,
        )

    def _get(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        def _call() -> httpx.Response:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response

        try:
            response = self.settings.retry.call(_call, logger=logger.logger)
        except httpx.HTTPStatusError as exc:
            raise _remote_error(exc.response) from exc
        except httpx.TransportError as exc:
            raise RemoteError(f"Unable to reach {self.settings.base_url}: {exc}") from exc
        return response.json()

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise RemoteError(f"Unable to reach {self.settings.base_url}: {exc}") from exc
        if response.is_error:
            raise _remote_error(response)
        return response
