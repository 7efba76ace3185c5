# SPDX-License-Identifier: MIT
"""pointforge: generate, ingest, transform and upload time-series points."""

__version__ = "0.1.0"

from .exceptions import (  # noqa: E402
    ConfigurationError,
    IngestionError,
    PointForgeError,
    RemoteError,
)
from .models import Point, PointKind  # noqa: E402

__all__ = [
    "ConfigurationError",
    "IngestionError",
    "Point",
    "PointForgeError",
    "PointKind",
    "RemoteError",
    "__version__",
]
