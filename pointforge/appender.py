# SPDX-License-Identifier: MIT
"""Size-bounded batch delivery of points with optional completion wait."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, List, Optional, Protocol, Sequence

from .client import AppendState, AppendStatus, SeriesDescription
from .config import AppendBatchPolicy, CommandType
from .exceptions import AppendBatchError, ConfigurationError, RemoteError
from .models import Point
from .timeutils import MAX_INSTANT, MIN_INSTANT, TimeRange
from .utils.logging import get_logger

__all__ = ["AppendBatcher", "AppendResult", "partition", "resolve_command"]

logger = get_logger(__name__)

# Smallest representable step; makes the last point fall inside a half-open range.
TICK = timedelta(microseconds=1)


class AppendTarget(Protocol):
    def append_points(
        self,
        unique_id: str,
        points: Sequence[Point],
        *,
        command: CommandType,
        time_range: Optional[TimeRange] = None,
    ) -> str: ...

    def get_append_status(self, append_id: str) -> AppendStatus: ...


@dataclass(frozen=True, slots=True)
class AppendResult:
    """Outcome of delivering one point sequence."""

    command: CommandType
    points_delivered: int = 0
    batches: int = 0
    append_ids: tuple[str, ...] = ()
    statuses: tuple[AppendStatus, ...] = field(default_factory=tuple)
    timed_out: bool = False

    @property
    def points_appended(self) -> int:
        return sum(status.points_appended for status in self.statuses)

    @property
    def points_deleted(self) -> int:
        return sum(status.points_deleted for status in self.statuses)


def partition(points: Sequence[Point], batch_size: int) -> List[Sequence[Point]]:
    """Split *points* into consecutive slices of at most *batch_size*."""

    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    return [points[start : start + batch_size] for start in range(0, len(points), batch_size)]


def resolve_command(command: CommandType, series: SeriesDescription) -> CommandType:
    if command is CommandType.AUTO:
        return CommandType.REFLECTED if series.is_reflected else CommandType.OVERWRITE_APPEND
    return command


def batch_ranges(batches: Sequence[Sequence[Point]], overall: TimeRange) -> List[TimeRange]:
    """Non-overlapping overwrite ranges, one per batch, spanning *overall*."""

    ranges: List[TimeRange] = []
    for index, batch in enumerate(batches):
        start = overall.start if index == 0 else batch[0].time
        end = overall.end if index == len(batches) - 1 else batches[index + 1][0].time
        try:
            ranges.append(TimeRange(start, end))
        except ValueError as exc:
            raise ConfigurationError(f"points must be in time order to overwrite in batches: {exc}") from exc
    return ranges


class AppendBatcher:
    """Deliver points to one series, one request per batch, in order.

    Clock and sleep are injectable so the completion wait can be tested
    without real delays.
    """

    def __init__(
        self,
        client: AppendTarget,
        policy: AppendBatchPolicy,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._policy = policy
        self._clock = clock
        self._sleep = sleeper

    def append(
        self,
        series: SeriesDescription,
        points: Sequence[Point],
        *,
        command: CommandType = CommandType.AUTO,
        time_range: Optional[TimeRange] = None,
    ) -> AppendResult:
        command = resolve_command(command, series)
        if command is CommandType.DELETE_ALL_POINTS:
            return self.delete_all_points(series)
        if not points:
            logger.info("No points to append", series=series.identifier)
            return AppendResult(command=command)

        batches = partition(points, self._policy.batch_size)
        ranges: List[Optional[TimeRange]]
        if command is CommandType.APPEND:
            ranges = [None] * len(batches)
        else:
            times = [point.time for point in points]
            overall = time_range or TimeRange(min(times), max(times) + TICK)
            ranges = list(batch_ranges(batches, overall))

        append_ids: List[str] = []
        accepted = 0
        for index, (batch, batch_range) in enumerate(zip(batches, ranges), start=1):
            try:
                append_id = self._client.append_points(
                    series.unique_id,
                    batch,
                    command=command,
                    time_range=batch_range,
                )
            except RemoteError as exc:
                raise AppendBatchError(
                    f"Batch {index} of {len(batches)} was rejected after {accepted} points were accepted: {exc}",
                    accepted_count=accepted,
                    batch_index=index,
                    status_code=exc.status_code,
                    error_code=exc.error_code,
                ) from exc
            accepted += len(batch)
            append_ids.append(append_id)
            logger.info(
                "Submitted batch",
                series=series.identifier,
                command=command.value,
                batch=index,
                batches=len(batches),
                points=len(batch),
                time_range=str(batch_range) if batch_range else None,
                append_id=append_id,
            )

        statuses, timed_out = self._await(append_ids)
        return AppendResult(
            command=command,
            points_delivered=accepted,
            batches=len(batches),
            append_ids=tuple(append_ids),
            statuses=statuses,
            timed_out=timed_out,
        )

    def delete_all_points(self, series: SeriesDescription) -> AppendResult:
        """Overwrite the whole representable range with nothing."""

        append_id = self._client.append_points(
            series.unique_id,
            (),
            command=CommandType.OVERWRITE_APPEND,
            time_range=TimeRange(MIN_INSTANT, MAX_INSTANT),
        )
        logger.info("Submitted delete of all points", series=series.identifier, append_id=append_id)
        statuses, timed_out = self._await([append_id])
        return AppendResult(
            command=CommandType.DELETE_ALL_POINTS,
            batches=1,
            append_ids=(append_id,),
            statuses=statuses,
            timed_out=timed_out,
        )

    def _await(self, append_ids: Sequence[str]) -> tuple[tuple[AppendStatus, ...], bool]:
        if not self._policy.wait or not append_ids:
            return (), False

        deadline = self._clock() + self._policy.timeout.total_seconds()
        statuses: List[AppendStatus] = []
        for append_id in append_ids:
            status = self._poll(append_id, deadline)
            statuses.append(status)
            if not status.is_finished:
                logger.warning(
                    "Timed out waiting for append completion",
                    append_id=append_id,
                    timeout_seconds=self._policy.timeout.total_seconds(),
                )
                return tuple(statuses), True
        return tuple(statuses), False

    def _poll(self, append_id: str, deadline: float) -> AppendStatus:
        interval = self._policy.poll_interval
        while True:
            status = self._client.get_append_status(append_id)
            logger.debug("Polled append status", append_id=append_id, state=status.state.value)
            if status.state is AppendState.FAILURE:
                raise RemoteError(f"Append {append_id} failed: {status.error or 'no details reported'}")
            if status.is_finished:
                logger.info(
                    "Append completed",
                    append_id=append_id,
                    points_appended=status.points_appended,
                    points_deleted=status.points_deleted,
                )
                return status
            remaining = deadline - self._clock()
            if remaining <= 0:
                return status
            self._sleep(min(interval, remaining))
            interval = min(interval * 2, self._policy.max_poll_interval)
