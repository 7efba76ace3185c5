# SPDX-License-Identifier: MIT
"""Synthetic waveform generation.

Samples are evaluated in one vectorised pass and turned into points lazily,
so a generator can be iterated repeatedly and always yields the same finite
sequence.
"""

from __future__ import annotations

import math
from typing import Iterator

import numpy as np
from numpy.typing import NDArray

from ..config import WaveformSpec, WaveformType
from ..models import Point
from .glyphs import glyph_path

__all__ = ["WaveformGenerator"]

NDArrayF64 = NDArray[np.float64]


class WaveformGenerator:
    """Iterable of value points sampled from a periodic shape."""

    def __init__(self, spec: WaveformSpec) -> None:
        self._spec = spec
        self._path: NDArrayF64 | None = None
        if spec.waveform_type is WaveformType.TEXT:
            path = glyph_path(spec.text or "")
            self._path = np.asarray(path, dtype=np.float64).reshape(-1, 2)

    @property
    def spec(self) -> WaveformSpec:
        return self._spec

    @property
    def samples_per_period(self) -> float:
        if self._path is not None:
            return float(len(self._path))
        return self._spec.period

    def __len__(self) -> int:
        spec = self._spec
        if spec.point_interval.total_seconds() <= 0:
            return 0
        if self._path is not None and len(self._path) == 0:
            return 0
        if spec.number_of_points > 0:
            return spec.number_of_points
        return int(spec.number_of_periods * self.samples_per_period)

    def values(self) -> NDArrayF64:
        """Return every sample value as a float64 array."""

        count = len(self)
        spec = self._spec
        if count == 0:
            return np.empty(0, dtype=np.float64)

        index = np.arange(count, dtype=np.float64)
        if self._path is not None:
            raw = self._text_channel(count)
        else:
            cycles = index / self.samples_per_period + spec.phase
            fraction = np.mod(cycles, 1.0)
            if spec.waveform_type is WaveformType.SINE:
                raw = np.sin(2.0 * math.pi * cycles)
            elif spec.waveform_type is WaveformType.SQUARE:
                raw = np.where(fraction < 0.5, 1.0, -1.0)
            elif spec.waveform_type is WaveformType.SAWTOOTH:
                raw = 2.0 * fraction - 1.0
            else:
                raw = cycles
        return spec.offset + spec.scalar * raw

    def _text_channel(self, count: int) -> NDArrayF64:
        assert self._path is not None
        spec = self._spec
        channel = 0 if spec.text_x else 1
        length = len(self._path)
        start = int(round(spec.phase * length)) % length
        vertices = (np.arange(count) + start) % length
        return self._path[vertices, channel]

    def __iter__(self) -> Iterator[Point]:
        spec = self._spec
        for index, value in enumerate(self.values()):
            yield Point(
                time=spec.start_time + index * spec.point_interval,
                value=float(value),
                grade_code=spec.grade_code,
                qualifiers=spec.qualifiers,
            )
