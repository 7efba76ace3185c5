# SPDX-License-Identifier: MIT
"""Single-stroke vector font used by the text waveform.

Each glyph is drawn on a 4 x 6 grid (x right, y up) as one or more strokes
separated by ``|``; a stroke is a flat list of ``x y`` vertex pairs. The path
for a string walks every stroke of every glyph in order, so consecutive
strokes are joined by straight pen moves.
"""

from __future__ import annotations

from functools import lru_cache

__all__ = ["GLYPH_ADVANCE", "GLYPH_HEIGHT", "glyph_path"]

GLYPH_HEIGHT = 6.0
GLYPH_ADVANCE = 6.0

_GLYPHS: dict[str, str] = {
    "A": "0 0 0 4 2 6 4 4 4 0|0 3 4 3",
    "B": "0 0 0 6 3 6 4 5 4 4 3 3 0 3|3 3 4 2 4 1 3 0 0 0",
    "C": "4 6 0 6 0 0 4 0",
    "D": "0 0 0 6 3 6 4 5 4 1 3 0 0 0",
    "E": "4 6 0 6 0 0 4 0|0 3 3 3",
    "F": "4 6 0 6 0 0|0 3 3 3",
    "G": "4 6 0 6 0 0 4 0 4 3 2 3",
    "H": "0 6 0 0|4 6 4 0|0 3 4 3",
    "I": "1 6 3 6|2 6 2 0|1 0 3 0",
    "J": "4 6 4 0 0 0 0 2",
    "K": "0 6 0 0|4 6 0 3 4 0",
    "L": "0 6 0 0 4 0",
    "M": "0 0 0 6 2 3 4 6 4 0",
    "N": "0 0 0 6 4 0 4 6",
    "O": "0 0 0 6 4 6 4 0 0 0",
    "P": "0 0 0 6 4 6 4 3 0 3",
    "Q": "0 0 0 6 4 6 4 0 0 0|2 2 4 0",
    "R": "0 0 0 6 4 6 4 3 0 3 4 0",
    "S": "4 6 0 6 0 3 4 3 4 0 0 0",
    "T": "0 6 4 6|2 6 2 0",
    "U": "0 6 0 0 4 0 4 6",
    "V": "0 6 2 0 4 6",
    "W": "0 6 1 0 2 3 3 0 4 6",
    "X": "0 6 4 0|4 6 0 0",
    "Y": "0 6 2 3 4 6|2 3 2 0",
    "Z": "0 6 4 6 0 0 4 0",
    "0": "0 0 0 6 4 6 4 0 0 0 4 6",
    "1": "1 5 2 6 2 0|1 0 3 0",
    "2": "0 6 4 6 4 3 0 3 0 0 4 0",
    "3": "0 6 4 6 4 0 0 0|0 3 4 3",
    "4": "0 6 0 3 4 3|4 6 4 0",
    "5": "4 6 0 6 0 3 4 3 4 0 0 0",
    "6": "4 6 0 6 0 0 4 0 4 3 0 3",
    "7": "0 6 4 6 1 0",
    "8": "0 0 0 6 4 6 4 0 0 0|0 3 4 3",
    "9": "4 3 0 3 0 6 4 6 4 0 0 0",
    "-": "1 3 3 3",
    "+": "0 3 4 3|2 1 2 5",
    ".": "2 0 2 1",
    ":": "2 1 2 2|2 4 2 5",
    "!": "2 6 2 2|2 1 2 0",
    "?": "0 6 4 6 4 3 2 3 2 2|2 1 2 0",
    "/": "0 0 4 6",
    "_": "0 0 4 0",
    " ": "",
}


def _strokes(definition: str) -> list[tuple[float, float]]:
    vertices: list[tuple[float, float]] = []
    for stroke in definition.split("|"):
        numbers = [float(token) for token in stroke.split()]
        vertices.extend(zip(numbers[0::2], numbers[1::2]))
    return vertices


@lru_cache(maxsize=64)
def glyph_path(text: str) -> tuple[tuple[float, float], ...]:
    """Vertices tracing *text*, normalised so one glyph is 1.0 high.

    Characters without a glyph are drawn as ``?``. Lower case is folded to
    upper case.
    """

    path: list[tuple[float, float]] = []
    for index, character in enumerate(text.upper()):
        definition = _GLYPHS.get(character, _GLYPHS["?"])
        origin = index * GLYPH_ADVANCE
        path.extend(((origin + x) / GLYPH_HEIGHT, y / GLYPH_HEIGHT) for x, y in _strokes(definition))
    return tuple(path)
