# SPDX-License-Identifier: MIT
"""Sparse grade and qualifier remapping rules.

Grade rules use ``low,high:mapped`` syntax and are expanded eagerly into one
entry per source grade, so lookups are plain dictionary hits. A rule with no
source (``:mapped``) sets the default applied to every unlisted grade,
including points that carry no grade at all. An empty mapped value means
"no grade" (or, for qualifiers, "remove").
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from .exceptions import ConfigurationError

__all__ = ["GradeMapping", "QualifierMapping", "parse_qualifier_list"]

MAX_GRADE_RANGE_SPAN = 100_000


def _split_rule(text: str) -> tuple[str, str]:
    source, separator, mapped = text.partition(":")
    if not separator:
        raise ConfigurationError(f"'{text}' is not in sourceValue:mappedValue syntax.")
    return source.strip(), mapped.strip()


def _parse_int(text: str, rule: str) -> int:
    try:
        return int(text.strip())
    except ValueError as exc:
        raise ConfigurationError(f"'{rule}' is not in sourceValue:mappedValue syntax.") from exc


def parse_qualifier_list(text: str | None, delimiter: str = ",") -> tuple[str, ...]:
    """Split a delimited qualifier list, dropping blanks and duplicates."""

    if not text:
        return ()
    return tuple(dict.fromkeys(part.strip() for part in text.split(delimiter) if part.strip()))


@dataclass(frozen=True, slots=True)
class GradeMapping:
    """Source grade → mapped grade, with a default for unlisted grades."""

    entries: Mapping[int, int | None] = field(default_factory=lambda: MappingProxyType({}))
    default: int | None = None
    enabled: bool = False

    @classmethod
    def from_rules(cls, rules: Iterable[str]) -> "GradeMapping":
        entries: dict[int, int | None] = {}
        default: int | None = None
        enabled = False
        for rule in rules:
            source_text, mapped_text = _split_rule(rule)
            mapped = _parse_int(mapped_text, rule) if mapped_text else None
            enabled = True
            if not source_text:
                default = mapped
                continue
            bounds = sorted(_parse_int(part, rule) for part in source_text.split(",", 1))
            low, high = bounds[0], bounds[-1]
            if high - low >= MAX_GRADE_RANGE_SPAN:
                raise ConfigurationError(f"'{rule}' spans more than {MAX_GRADE_RANGE_SPAN} grades.")
            for source in range(low, high + 1):
                entries[source] = mapped
        return cls(entries=MappingProxyType(entries), default=default, enabled=enabled)

    def map(self, grade_code: int | None) -> int | None:
        if not self.enabled:
            return grade_code
        if grade_code is None:
            return self.default
        return self.entries.get(grade_code, self.default)


@dataclass(frozen=True, slots=True)
class QualifierMapping:
    """Source qualifier → mapped qualifier, with a default list."""

    entries: Mapping[str, str | None] = field(default_factory=lambda: MappingProxyType({}))
    default: tuple[str, ...] = ()
    enabled: bool = False

    @classmethod
    def from_rules(cls, rules: Iterable[str]) -> "QualifierMapping":
        entries: dict[str, str | None] = {}
        default: tuple[str, ...] = ()
        enabled = False
        for rule in rules:
            source, mapped = _split_rule(rule)
            enabled = True
            if not source:
                default = parse_qualifier_list(mapped)
                continue
            entries[source] = mapped or None
        return cls(entries=MappingProxyType(entries), default=default, enabled=enabled)

    def map(self, qualifiers: tuple[str, ...]) -> tuple[str, ...]:
        if not self.enabled:
            return qualifiers
        if not qualifiers:
            return self.default
        mapped: list[str] = []
        for qualifier in qualifiers:
            if qualifier not in self.entries:
                mapped.append(qualifier)
                continue
            replacement = self.entries[qualifier]
            if replacement:
                mapped.append(replacement)
        return tuple(dict.fromkeys(mapped))
