from __future__ import annotations

import pytest

from risk_core.errors import StaleReferenceWarning
from risk_core.responses import ResponseSet
from risk_core.scoring import score
from risk_core.types import Multiple, Single


def test_multiple_toggle_walk(snapshot):
    rs = ResponseSet()
    for oid in ("F", "G", "H"):
        assert rs.toggle(3, oid) is True
    assert rs.get(3) == Multiple(("F", "G", "H"))
    assert score(rs, snapshot.catalog) == 13

    assert rs.toggle(3, "G") is False
    assert score(rs, snapshot.catalog) == 9
    rs.toggle(3, "F")
    assert score(rs, snapshot.catalog) == 6

    rs.toggle(3, "H")
    assert 3 not in rs
    assert not rs.is_answered(3)
    assert score(rs, snapshot.catalog) == 0


def test_single_select_replaces():
    rs = ResponseSet()
    rs.select(1, "A")
    rs.select(1, "C")
    assert rs.get(1) == Single("C")
    assert rs.answered_count() == 1


def test_empty_entries_are_dropped():
    rs = ResponseSet({1: Single("A"), 3: Multiple(())})
    assert list(rs) == [1]


def test_copy_is_independent():
    rs = ResponseSet({1: Single("A")})
    other = rs.copy()
    other.select(2, "D")
    assert rs != other
    assert len(rs) == 1


def test_rebuild_from_flat_ids(snapshot):
    rs = ResponseSet.from_option_ids(["B", "E", "F", "H"], snapshot.catalog, snapshot.modes)
    assert rs.get(1) == Single("B")
    assert rs.get(2) == Single("E")
    assert rs.get(3) == Multiple(("F", "H"))
    assert sorted(rs.option_ids()) == ["B", "E", "F", "H"]


def test_rebuild_skips_stale_ids(snapshot):
    with pytest.warns(StaleReferenceWarning):
        rs = ResponseSet.from_option_ids(["A", "retired", "D"], snapshot.catalog, snapshot.modes)
    assert rs.option_ids() == ["A", "D"]


def test_rebuild_single_select_keeps_last(snapshot):
    rs = ResponseSet.from_option_ids(["A", "C"], snapshot.catalog, snapshot.modes)
    assert rs.get(1) == Single("C")
