# SPDX-License-Identifier: MIT
"""Point sources: manual literals, waveforms, tabular files and other series."""

from .manual import ManualPointCollector
from .source_copy import SourceCopyExtractor
from .tabular import RowOutcome, TabularIngestor, TabularResult
from .waveform import WaveformGenerator

__all__ = [
    "ManualPointCollector",
    "RowOutcome",
    "SourceCopyExtractor",
    "TabularIngestor",
    "TabularResult",
    "WaveformGenerator",
]
