# SPDX-License-Identifier: MIT
from __future__ import annotations

from datetime import datetime, timedelta

import numpy as np
import pytest

from pointforge.config import WaveformSpec, WaveformType
from pointforge.sources.glyphs import glyph_path
from pointforge.sources.waveform import WaveformGenerator


def _spec(t0: datetime, **kwargs) -> WaveformSpec:
    return WaveformSpec(start_time=t0, **kwargs)


def test_number_of_points_controls_length_and_spacing(t0: datetime) -> None:
    points = list(WaveformGenerator(_spec(t0, number_of_points=10, point_interval=timedelta(minutes=15))))

    assert len(points) == 10
    assert points[0].time == t0
    assert all(b.time - a.time == timedelta(minutes=15) for a, b in zip(points, points[1:]))


def test_sample_count_derived_from_periods(t0: datetime) -> None:
    generator = WaveformGenerator(_spec(t0, period=24, number_of_periods=2.5))

    assert len(generator) == 60


def test_sine_zero_and_quarter_period(t0: datetime) -> None:
    values = WaveformGenerator(_spec(t0, period=4, number_of_points=4)).values()

    assert values[0] == pytest.approx(0.0, abs=1e-12)
    assert values[1] == pytest.approx(1.0)
    assert values[3] == pytest.approx(-1.0)


def test_scalar_offset_and_phase(t0: datetime) -> None:
    values = WaveformGenerator(_spec(t0, period=4, number_of_points=2, scalar=2.0, offset=10.0, phase=0.25)).values()

    assert values[0] == pytest.approx(12.0)
    assert values[1] == pytest.approx(10.0, abs=1e-9)


def test_square_wave(t0: datetime) -> None:
    values = WaveformGenerator(_spec(t0, waveform_type=WaveformType.SQUARE, period=4, number_of_points=8)).values()

    np.testing.assert_allclose(values, [1, 1, -1, -1, 1, 1, -1, -1])


def test_sawtooth_wave(t0: datetime) -> None:
    values = WaveformGenerator(_spec(t0, waveform_type=WaveformType.SAWTOOTH, period=4, number_of_points=5)).values()

    np.testing.assert_allclose(values, [-1.0, -0.5, 0.0, 0.5, -1.0])


def test_linear_ramp_is_unbounded(t0: datetime) -> None:
    values = WaveformGenerator(_spec(t0, waveform_type=WaveformType.LINEAR, period=2, number_of_points=5)).values()

    np.testing.assert_allclose(values, [0.0, 0.5, 1.0, 1.5, 2.0])


def test_zero_interval_yields_nothing(t0: datetime) -> None:
    generator = WaveformGenerator(_spec(t0, number_of_points=5, point_interval=timedelta(0)))

    assert len(generator) == 0
    assert list(generator) == []


def test_zero_periods_yields_nothing(t0: datetime) -> None:
    assert list(WaveformGenerator(_spec(t0, number_of_periods=0))) == []


def test_generator_is_restartable(t0: datetime) -> None:
    generator = WaveformGenerator(_spec(t0, number_of_points=6, period=6))

    assert list(generator) == list(generator)


def test_default_grade_and_qualifiers_are_stamped(t0: datetime) -> None:
    points = list(WaveformGenerator(_spec(t0, number_of_points=3, grade_code=7, qualifiers=("EST",))))

    assert {p.grade_code for p in points} == {7}
    assert {p.qualifiers for p in points} == {("EST",)}


def test_text_waveform_walks_the_glyph_path(t0: datetime) -> None:
    path = glyph_path("L")
    generator = WaveformGenerator(_spec(t0, waveform_type=WaveformType.TEXT, text_y="L"))

    assert generator.samples_per_period == len(path)
    assert len(generator) == len(path)
    np.testing.assert_allclose(generator.values(), [y for _, y in path])


def test_text_waveform_phase_offsets_start_vertex(t0: datetime) -> None:
    path = glyph_path("T")
    generator = WaveformGenerator(
        _spec(t0, waveform_type=WaveformType.TEXT, text_x="T", phase=1 / len(path), number_of_points=len(path))
    )

    expected = [x for x, _ in path[1:]] + [path[0][0]]
    np.testing.assert_allclose(generator.values(), expected)


def test_glyph_path_is_normalised_to_unit_height() -> None:
    path = glyph_path("HELLO 123")

    ys = [y for _, y in path]
    assert min(ys) == 0.0
    assert max(ys) == 1.0


def test_unknown_characters_render_as_question_mark() -> None:
    assert glyph_path("~") == glyph_path("?")
    assert glyph_path("abc") == glyph_path("ABC")
