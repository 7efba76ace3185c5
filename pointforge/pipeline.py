# SPDX-License-Identifier: MIT
"""Source collection, point transformation and the end-to-end run."""

from __future__ import annotations

import itertools
import time
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from .appender import AppendBatcher, AppendResult
from .client import AppendStatus, TimeSeriesClient
from .config import CommandType, RunConfig, TransformOptions
from .csv_writer import write_points_csv
from .exceptions import ConfigurationError
from .models import Point
from .sources import (
    ManualPointCollector,
    SourceCopyExtractor,
    TabularIngestor,
    WaveformGenerator,
)
from .sources.source_copy import ClientFactory
from .utils.logging import get_logger, run_context

__all__ = ["CollectedPoints", "RunResult", "collect_points", "run", "transform_points"]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CollectedPoints:
    points: List[Point]
    skipped_rows: int = 0


@dataclass(frozen=True, slots=True)
class RunResult:
    """What a run produced and delivered."""

    points: int
    skipped_rows: int = 0
    csv_path: Optional[Path] = None
    append: Optional[AppendResult] = None

    @property
    def points_delivered(self) -> int:
        return self.append.points_delivered if self.append else 0

    @property
    def batches(self) -> int:
        return self.append.batches if self.append else 0

    @property
    def timed_out(self) -> bool:
        return bool(self.append and self.append.timed_out)

    @property
    def append_status(self) -> tuple[AppendStatus, ...]:
        return self.append.statuses if self.append else ()


def _apply_metadata(point: Point, options: TransformOptions) -> Point:
    if point.is_gap:
        return point
    grade_code = None if options.ignore_grades else point.grade_code
    qualifiers = () if options.ignore_qualifiers else point.qualifiers
    grade_code = options.grade_mapping.map(grade_code)
    qualifiers = options.qualifier_mapping.map(qualifiers)
    if grade_code == point.grade_code and qualifiers == point.qualifiers:
        return point
    return point.with_metadata(grade_code=grade_code, qualifiers=qualifiers)


def _realign(points: Iterator[Point], start_time: datetime) -> Iterator[Point]:
    first = next(points, None)
    if first is None:
        return
    offset = start_time - first.time
    yield first.shifted(offset)
    for point in points:
        yield point.shifted(offset)


def _deduplicate(points: Iterable[Point]) -> Iterator[Point]:
    previous: Optional[datetime] = None
    for point in points:
        if point.is_gap:
            yield point
            continue
        if point.time == previous:
            continue
        previous = point.time
        yield point


def transform_points(points: Iterable[Point], options: TransformOptions) -> Iterator[Point]:
    """Lazily apply ignore flags, mappings, realignment and deduplication, in that order.

    Input order is preserved; points are expected to already be in time order.
    """

    stream: Iterator[Point] = (_apply_metadata(point, options) for point in points)
    if options.realign and options.start_time is not None:
        stream = _realign(stream, options.start_time)
    if options.remove_duplicates:
        stream = _deduplicate(stream)
    return stream


def collect_points(
    config: RunConfig,
    *,
    client: Optional[TimeSeriesClient] = None,
    client_factory: ClientFactory = TimeSeriesClient,
) -> CollectedPoints:
    """Concatenate every configured source: manual, waveform, tabular files, then the source copy."""

    sources: List[Iterable[Point]] = []
    skipped = 0
    if config.manual is not None:
        sources.append(ManualPointCollector(config.manual))
    if config.waveform is not None:
        sources.append(WaveformGenerator(config.waveform))
    for path in config.csv_files:
        result = TabularIngestor(path, config.csv_format).load()
        skipped += result.skipped_rows
        sources.append(result.points)
    if config.source_copy is not None:
        extractor = SourceCopyExtractor(
            config.source_copy,
            primary=config.connection,
            client_factory=client_factory,
            client=client,
        )
        sources.append(extractor.extract())
    return CollectedPoints(points=list(itertools.chain.from_iterable(sources)), skipped_rows=skipped)


def _csv_identifier(config: RunConfig) -> Optional[str]:
    if config.time_series:
        return config.time_series
    if config.source_copy is not None:
        return config.source_copy.identifier
    return None


def run(
    config: RunConfig,
    *,
    client_factory: ClientFactory = TimeSeriesClient,
    clock: Callable[[], float] = time.monotonic,
    sleeper: Callable[[float], None] = time.sleep,
) -> RunResult:
    """Collect, transform, optionally save and deliver the points described by *config*."""

    with run_context() as run_id, ExitStack() as stack:
        logger.info("Starting run", run_id=run_id, target=config.time_series, command=config.command.value)

        client: Optional[TimeSeriesClient] = None
        copies_from_primary = config.source_copy is not None and config.source_copy.server is None
        if config.connection is not None and (config.delivers or copies_from_primary):
            client = stack.enter_context(client_factory(config.connection))

        target = None
        if config.delivers:
            if client is None or not config.time_series:
                raise ConfigurationError("a server and a target time series are required to deliver points")
            target = client.resolve_series(config.time_series)
            if config.command is CommandType.DELETE_ALL_POINTS:
                batcher = AppendBatcher(client, config.batch_policy, clock=clock, sleeper=sleeper)
                return RunResult(points=0, append=batcher.delete_all_points(target))

        collected = collect_points(config, client=client, client_factory=client_factory)
        points = list(transform_points(collected.points, config.transform))
        logger.info("Points ready", points=len(points), skipped_rows=collected.skipped_rows)

        csv_path = None
        if config.save_csv_path is not None:
            csv_path = write_points_csv(
                config.save_csv_path,
                points,
                identifier=_csv_identifier(config),
                delimiter=config.csv_format.delimiter,
                qualifier_delimiter=config.csv_format.qualifier_delimiter,
            )

        if target is None:
            return RunResult(points=len(points), skipped_rows=collected.skipped_rows, csv_path=csv_path)

        batcher = AppendBatcher(client, config.batch_policy, clock=clock, sleeper=sleeper)
        with logger.operation("append", series=target.identifier) as op:
            append = batcher.append(target, points, command=config.command, time_range=config.time_range)
            op["points"] = append.points_delivered
            op["batches"] = append.batches
        return RunResult(
            points=len(points),
            skipped_rows=collected.skipped_rows,
            csv_path=csv_path,
            append=append,
        )
