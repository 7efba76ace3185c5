# SPDX-License-Identifier: MIT
"""In-memory stand-in for the time-series store, served through ``httpx.MockTransport``."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from pointforge.client import TimeSeriesClient
from pointforge.config import ConnectionSettings
from pointforge.retry import RetryPolicy

SESSION_TOKEN = "token-123"


def make_series(identifier: str, series_type: str = "ProcessorBasic") -> Dict[str, Any]:
    return {"Identifier": identifier, "UniqueId": uuid.uuid4().hex, "TimeSeriesType": series_type}


def fast_settings(server: str = "store.example.com", **kwargs: Any) -> ConnectionSettings:
    kwargs.setdefault("username", "admin")
    kwargs.setdefault("password", "secret")
    return ConnectionSettings(
        server=server,
        retry=RetryPolicy(attempts=2, initial_backoff=0.001, max_backoff=0.001, max_jitter=0),
        **kwargs,
    )


@dataclass
class FakeStore:
    series: List[Dict[str, Any]] = field(default_factory=list)
    corrected_data: Dict[str, Any] = field(default_factory=lambda: {"Points": []})
    status_sequence: List[str] = field(default_factory=lambda: ["Completed"])
    fail_append_at: Optional[int] = None
    requests: List[httpx.Request] = field(default_factory=list)
    appends: List[Dict[str, Any]] = field(default_factory=list)
    status_polls: int = 0

    def add_series(self, identifier: str, series_type: str = "ProcessorBasic") -> Dict[str, Any]:
        entry = make_series(identifier, series_type)
        self.series.append(entry)
        return entry

    def requests_to(self, suffix: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path.endswith(suffix)]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client_factory(self) -> Callable[[ConnectionSettings], TimeSeriesClient]:
        def factory(settings: ConnectionSettings) -> TimeSeriesClient:
            return TimeSeriesClient(settings, transport=self.transport())

        return factory

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/publish/v2/session":
            if request.method == "POST":
                return httpx.Response(200, text=SESSION_TOKEN)
            return httpx.Response(204)
        if request.headers.get("X-Authentication-Token") != SESSION_TOKEN:
            return httpx.Response(401, json={"ResponseStatus": {"ErrorCode": "Unauthorized", "Message": "no session"}})
        if path == "/publish/v2/GetTimeSeriesDescriptionList":
            location = request.url.params.get("LocationIdentifier")
            parameter = request.url.params.get("Parameter")
            matches = [
                item
                for item in self.series
                if item["Identifier"].endswith(f"@{location}") and item["Identifier"].startswith(f"{parameter}.")
            ]
            return httpx.Response(200, json={"TimeSeriesDescriptions": matches})
        if path == "/publish/v2/GetTimeSeriesDescriptionListByUniqueId":
            wanted = request.url.params.get("TimeSeriesUniqueIds")
            matches = [item for item in self.series if item["UniqueId"] == wanted]
            return httpx.Response(200, json={"TimeSeriesDescriptions": matches})
        if path == "/publish/v2/GetTimeSeriesCorrectedData":
            payload = dict(self.corrected_data)
            if request.url.params.get("GetParts") == "PointsOnly":
                payload.pop("Grades", None)
                payload.pop("Qualifiers", None)
            return httpx.Response(200, json=payload)
        if path.startswith("/acquisition/v2/timeseries/appendstatus/"):
            return self._append_status(path.rsplit("/", 1)[-1])
        if path.startswith("/acquisition/v2/timeseries/") and request.method == "POST":
            return self._append(request)
        return httpx.Response(404, json={"ResponseStatus": {"ErrorCode": "NotFound", "Message": path}})

    def _append(self, request: httpx.Request) -> httpx.Response:
        _, unique_id, command = request.url.path.rsplit("/", 2)
        body = json.loads(request.content)
        if self.fail_append_at is not None and len(self.appends) + 1 == self.fail_append_at:
            return httpx.Response(
                400,
                json={"ResponseStatus": {"ErrorCode": "ArgumentException", "Message": "batch rejected"}},
            )
        self.appends.append({"unique_id": unique_id, "command": command, "body": body})
        return httpx.Response(200, json={"AppendRequestIdentifier": str(len(self.appends))})

    def _append_status(self, append_id: str) -> httpx.Response:
        index = min(self.status_polls, len(self.status_sequence) - 1)
        self.status_polls += 1
        state = self.status_sequence[index]
        points = len(self.appends[int(append_id) - 1]["body"]["Points"])
        payload: Dict[str, Any] = {
            "AppendStatus": state,
            "NumberOfPointsAppended": points if state == "Completed" else 0,
            "NumberOfPointsDeleted": 0,
        }
        if state == "Failure":
            payload["ErrorMessage"] = "points rejected by the store"
        return httpx.Response(200, json=payload)


class FakeClock:
    """Monotonic clock advanced only by the injected sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
