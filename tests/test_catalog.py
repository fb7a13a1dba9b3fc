from __future__ import annotations

import pytest

from risk_core.catalog import CriteriaCatalog, SelectionModeRegistry, load_default_catalog, parse_thresholds
from risk_core.errors import ConfigurationError
from risk_core.gateway import build_snapshot
from risk_core.types import SelectionMode
from tests.conftest import build_synthetic_criteria


def test_index_lookups():
    cat = CriteriaCatalog.from_raw(build_synthetic_criteria())
    assert len(cat) == 3
    assert cat.points_of("E") == 8
    assert cat.owner_of("H") == 3
    assert cat.points_of("nope") is None
    assert cat.index_of(2) == 1
    assert cat.get(1).category == "Income"
    assert cat.to_list()[2]["options"][0] == {"id": "F", "label": "Retail", "points": 3}


@pytest.mark.parametrize(
    "raw, fragment",
    [
        ([], "no criteria"),
        ([{"id": 1, "category": "X", "options": []}], "no options"),
        (
            [
                {"id": 1, "category": "X", "options": [{"id": "a", "label": "a", "points": 1}]},
                {"id": 1, "category": "Y", "options": [{"id": "b", "label": "b", "points": 1}]},
            ],
            "duplicate criterion",
        ),
        (
            [
                {"id": 1, "category": "X", "options": [{"id": "a", "label": "a", "points": 1}]},
                {"id": 2, "category": "Y", "options": [{"id": "a", "label": "a", "points": 1}]},
            ],
            "appears in criterion",
        ),
        ([{"id": 1, "category": "X", "options": [{"id": "a", "label": "a", "points": -1}]}], "negative"),
        ([{"id": 1, "category": "X", "options": [{"id": "a", "label": "a", "points": 1.5}]}], "non-integer"),
        ([{"id": 1, "category": "X", "options": [{"id": "a", "label": "a", "points": True}]}], "non-integer"),
    ],
)
def test_invalid_catalogs_rejected(raw, fragment):
    with pytest.raises(ConfigurationError) as exc:
        CriteriaCatalog.from_raw(raw)
    assert fragment in str(exc.value)


def test_selection_mode_defaults_to_single():
    modes = SelectionModeRegistry({"7": "multiple", 8: "Multiple"})
    assert modes.mode_of(7) is SelectionMode.MULTIPLE
    assert modes.is_multiple("8")
    assert modes.mode_of(1) is SelectionMode.SINGLE
    assert SelectionModeRegistry(None).to_dict() == {}


def test_unknown_selection_mode_rejected():
    with pytest.raises(ConfigurationError):
        SelectionModeRegistry({"1": "several"})


@pytest.mark.parametrize(
    "raw",
    [
        {"low_threshold": 16, "moderate_threshold": 10, "high_threshold": 19},
        {"low_threshold": 10, "moderate_threshold": 10, "high_threshold": 19},
        {"low_threshold": 0, "moderate_threshold": 10, "high_threshold": 19},
        {"low_threshold": 10, "moderate_threshold": 16},
        {"low_threshold": "ten", "moderate_threshold": 16, "high_threshold": 19},
    ],
)
def test_malformed_thresholds_rejected(raw):
    with pytest.raises(ConfigurationError):
        parse_thresholds(raw)


def test_thresholds_accept_numeric_strings():
    table = parse_thresholds({"low_threshold": "10", "moderate_threshold": 16, "high_threshold": 19})
    assert table.to_dict() == {"low_threshold": 10, "moderate_threshold": 16, "high_threshold": 19}


def test_bundled_catalog_builds():
    raw = load_default_catalog()
    snap = build_snapshot(raw["criteria"], raw["selection_config"], raw["risk_thresholds"])
    assert len(snap.catalog) == 9
    assert snap.modes.is_multiple(7) and snap.modes.is_multiple(8)
    assert snap.thresholds.moderate_threshold == 16
