# SPDX-License-Identifier: MIT
from __future__ import annotations

import pytest

from pointforge.exceptions import ConfigurationError
from pointforge.mappings import GradeMapping, QualifierMapping, parse_qualifier_list


def test_grade_range_maps_inside_and_clears_outside() -> None:
    mapping = GradeMapping.from_rules(["200,299:5"])

    assert mapping.enabled
    assert mapping.map(250) == 5
    assert mapping.map(200) == 5
    assert mapping.map(299) == 5
    assert mapping.map(100) is None


def test_grade_range_bounds_in_either_order() -> None:
    mapping = GradeMapping.from_rules(["30,10:1"])

    assert mapping.map(10) == 1
    assert mapping.map(30) == 1


def test_grade_default_applies_to_unlisted_and_missing_grades() -> None:
    mapping = GradeMapping.from_rules(["1:2", ":99"])

    assert mapping.map(1) == 2
    assert mapping.map(7) == 99
    assert mapping.map(None) == 99


def test_grade_empty_mapped_value_means_no_grade() -> None:
    mapping = GradeMapping.from_rules(["5,6:", ":3"])

    assert mapping.map(5) is None
    assert mapping.map(4) == 3


def test_disabled_grade_mapping_is_identity() -> None:
    mapping = GradeMapping()

    assert not mapping.enabled
    assert mapping.map(42) == 42
    assert mapping.map(None) is None


@pytest.mark.parametrize("rule", ["200", "a:b", "1,x:2", "0,100000:1"])
def test_invalid_grade_rules(rule: str) -> None:
    with pytest.raises(ConfigurationError):
        GradeMapping.from_rules([rule])


def test_qualifier_rules_map_each_qualifier_and_retain_unmatched() -> None:
    mapping = QualifierMapping.from_rules(["A:B"])

    assert mapping.map(("A", "C")) == ("B", "C")


def test_qualifier_empty_mapped_value_removes_it() -> None:
    mapping = QualifierMapping.from_rules(["ICE:", "EST:ESTIMATED"])

    assert mapping.map(("ICE", "EST", "OTHER")) == ("ESTIMATED", "OTHER")


def test_qualifier_default_only_applies_when_none_present() -> None:
    mapping = QualifierMapping.from_rules([":X,Y", "A:B"])

    assert mapping.map(()) == ("X", "Y")
    assert mapping.map(("Q",)) == ("Q",)


def test_qualifier_mapping_collapses_duplicates() -> None:
    mapping = QualifierMapping.from_rules(["A:C"])

    assert mapping.map(("A", "C")) == ("C",)


def test_qualifier_rule_requires_separator() -> None:
    with pytest.raises(ConfigurationError):
        QualifierMapping.from_rules(["nope"])


def test_parse_qualifier_list() -> None:
    assert parse_qualifier_list(" A, B ,,A ") == ("A", "B")
    assert parse_qualifier_list("A;B", ";") == ("A", "B")
    assert parse_qualifier_list(None) == ()
