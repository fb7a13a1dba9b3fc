from __future__ import annotations

import copy
from typing import Any

import pytest

from risk_core.gateway import SessionSnapshot, build_snapshot


def build_synthetic_criteria(*, extra_options: bool = False) -> list[dict[str, Any]]:
    """Income A/B/C, Source D/E and a multiple-select Occupations F/G/H."""

    income = [
        {"id": "A", "label": "Under 10k", "points": 0},
        {"id": "B", "label": "10k to 50k", "points": 5},
        {"id": "C", "label": "Over 50k", "points": 10},
    ]
    if extra_options:
        income.append({"id": "C2", "label": "Undisclosed", "points": 12})
    return [
        {"id": 1, "category": "Income", "options": income},
        {
            "id": 2,
            "category": "Source",
            "options": [
                {"id": "D", "label": "Salary", "points": 0},
                {"id": "E", "label": "Remittance", "points": 8},
            ],
        },
        {
            "id": 3,
            "category": "Occupations",
            "options": [
                {"id": "F", "label": "Retail", "points": 3},
                {"id": "G", "label": "Transport", "points": 4},
                {"id": "H", "label": "Money service", "points": 6},
            ],
        },
    ]


SYNTHETIC_MODES = {"3": "multiple"}
SYNTHETIC_THRESHOLDS = {"low_threshold": 10, "moderate_threshold": 16, "high_threshold": 19}


def build_synthetic_snapshot(**kwargs: Any) -> SessionSnapshot:
    return build_snapshot(build_synthetic_criteria(**kwargs), SYNTHETIC_MODES, SYNTHETIC_THRESHOLDS)


class FakeBackend:
    """AssessmentBackend double that keeps records in memory."""

    def __init__(self, *, fail_submit: bool = False, update_success: bool = True):
        self.criteria = build_synthetic_criteria()
        self.modes = dict(SYNTHETIC_MODES)
        self.thresholds = dict(SYNTHETIC_THRESHOLDS)
        self.records: dict[str, dict[str, Any]] = {}
        self.submitted: list[dict[str, Any]] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_submit = fail_submit
        self.update_success = update_success

    def get_criteria(self):
        return copy.deepcopy(self.criteria)

    def get_selection_config(self):
        return dict(self.modes)

    def get_risk_thresholds(self):
        return dict(self.thresholds)

    def get_existing_assessment(self, record_id):
        return copy.deepcopy(self.records[record_id])

    def submit_assessment(self, payload):
        if self.fail_submit:
            raise ConnectionError("store offline")
        self.submitted.append(payload)
        rid = f"r{len(self.submitted)}"
        self.records[rid] = {"id": rid, **payload}
        return {"id": rid}

    def update_assessment(self, record_id, payload):
        self.updates.append((record_id, payload))
        if self.update_success:
            self.records[record_id].update(payload)
        return {"success": self.update_success}


@pytest.fixture
def snapshot() -> SessionSnapshot:
    return build_synthetic_snapshot()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
