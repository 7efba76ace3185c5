# SPDX-License-Identifier: MIT
"""Error taxonomy shared by every pointforge component."""

from __future__ import annotations

__all__ = [
    "AmbiguousSeriesError",
    "AppendBatchError",
    "AppendTimeoutError",
    "ConfigurationError",
    "IngestionError",
    "PointForgeError",
    "RemoteError",
    "RowParseError",
    "SeriesNotFoundError",
]


class PointForgeError(RuntimeError):
    """Base class for failures surfaced to the command line."""


class ConfigurationError(PointForgeError):
    """Invalid or contradictory options. Raised before any IO is attempted."""


class IngestionError(PointForgeError):
    """A tabular source could not be turned into points."""


class RowParseError(IngestionError):
    """A single tabular row is malformed."""

    def __init__(self, source: str, row_number: int, reason: str) -> None:
        super().__init__(f"{source}:{row_number}: {reason}")
        self.source = source
        self.row_number = row_number
        self.reason = reason


class RemoteError(PointForgeError):
    """The time-series store rejected a request or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is None:
            return message
        prefix = f"API: ({self.status_code})"
        if self.error_code:
            prefix = f"{prefix} {self.error_code}"
        return f"{prefix}: {message}"


class SeriesNotFoundError(RemoteError):
    """No time series matches the requested identifier."""


class AmbiguousSeriesError(RemoteError):
    """More than one time series matches the requested identifier."""


class AppendBatchError(RemoteError):
    """An append batch was rejected; later batches were not submitted."""

    def __init__(
        self,
        message: str,
        *,
        accepted_count: int,
        batch_index: int,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, error_code=error_code)
        self.accepted_count = accepted_count
        self.batch_index = batch_index


class AppendTimeoutError(PointForgeError):
    """The store did not report append completion before the deadline."""
