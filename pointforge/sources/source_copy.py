# SPDX-License-Identifier: MIT
from __future__ import annotations

from typing import Callable, Optional

from ..client import TimeSeriesClient
from ..config import ConnectionSettings, SourceCopySpec
from ..exceptions import ConfigurationError
from ..models import Point
from ..utils.logging import get_logger

__all__ = ["ClientFactory", "SourceCopyExtractor"]

logger = get_logger(__name__)

ClientFactory = Callable[[ConnectionSettings], TimeSeriesClient]


class SourceCopyExtractor:
    """Copy corrected points out of another time series.

    The source series lives on the primary server unless the spec names its
    own. When it does, a separate session is opened through *client_factory*
    and closed once the points are read.
    """

    def __init__(
        self,
        spec: SourceCopySpec,
        *,
        primary: Optional[ConnectionSettings] = None,
        client_factory: ClientFactory = TimeSeriesClient,
        client: Optional[TimeSeriesClient] = None,
    ) -> None:
        self._spec = spec
        self._primary = primary
        self._client_factory = client_factory
        self._client = client

    def extract(self) -> list[Point]:
        spec = self._spec
        if self._client is not None and spec.server is None:
            return self._read(self._client)
        try:
            settings = spec.connection(self._primary)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        with self._client_factory(settings) as client:
            return self._read(client)

    def _read(self, client: TimeSeriesClient) -> list[Point]:
        spec = self._spec
        with logger.operation("source copy", source=spec.identifier, server=client.settings.base_url) as op:
            series = client.resolve_series(spec.identifier)
            points = client.get_series_points(series.unique_id, spec.query_from, spec.query_to)
            op["points"] = len(points)
        return points
