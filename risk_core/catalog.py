"""Read-only configuration views loaded once per assessment session."""
from __future__ import annotations

import importlib.resources as ir
import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .config import DEFAULT_SELECTION_MODE
from .errors import ConfigurationError
from .types import Criterion, CriterionId, Option, OptionId, SelectionMode, ThresholdTable

log = logging.getLogger(__name__)


def _parse_points(raw: Any, option_id: Any) -> int:
    if isinstance(raw, bool):
        raise ConfigurationError(f"option {option_id!r} has non-integer points {raw!r}")
    try:
        points = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"option {option_id!r} has non-integer points {raw!r}") from None
    if points != raw and not isinstance(raw, str):
        raise ConfigurationError(f"option {option_id!r} has non-integer points {raw!r}")
    if points < 0:
        raise ConfigurationError(f"option {option_id!r} has negative points {points}")
    return points


def _parse_criterion(raw: Mapping[str, Any]) -> Criterion:
    cid = raw.get("id")
    if cid is None:
        raise ConfigurationError("criterion without id")
    category = raw.get("category") or raw.get("label") or ""
    options: List[Option] = []
    for opt in raw.get("options") or []:
        oid = opt.get("id")
        if oid is None:
            raise ConfigurationError(f"criterion {cid!r} has an option without id")
        options.append(Option(id=oid, label=str(opt.get("label") or ""), points=_parse_points(opt.get("points", 0), oid)))
    return Criterion(id=cid, category=str(category), options=tuple(options), description=raw.get("description"))


class CriteriaCatalog:
    """Ordered criteria with an option-id index.

    Option ids are unique across the whole catalog, which is what lets a flat
    list of stored option ids be mapped back to the criterion that owns each.
    """

    def __init__(self, criteria: Iterable[Criterion]):
        self._criteria: Tuple[Criterion, ...] = tuple(criteria)
        if not self._criteria:
            raise ConfigurationError("no criteria configured")
        self._by_id: Dict[CriterionId, Criterion] = {}
        self._points: Dict[OptionId, int] = {}
        self._owner: Dict[OptionId, CriterionId] = {}
        for crit in self._criteria:
            if crit.id in self._by_id:
                raise ConfigurationError(f"duplicate criterion id {crit.id!r}")
            if not crit.options:
                raise ConfigurationError(f"criterion {crit.id!r} ({crit.category}) has no options")
            self._by_id[crit.id] = crit
            for opt in crit.options:
                if opt.id in self._owner:
                    raise ConfigurationError(
                        f"option id {opt.id!r} appears in criterion {self._owner[opt.id]!r} and {crit.id!r}"
                    )
                self._owner[opt.id] = crit.id
                self._points[opt.id] = opt.points
        log.debug("catalog loaded criteria=%d options=%d", len(self._criteria), len(self._points))

    @classmethod
    def from_raw(cls, raw: Iterable[Mapping[str, Any]]) -> "CriteriaCatalog":
        return cls(_parse_criterion(r) for r in raw)

    def __len__(self) -> int:
        return len(self._criteria)

    def __iter__(self) -> Iterator[Criterion]:
        return iter(self._criteria)

    def __getitem__(self, index: int) -> Criterion:
        return self._criteria[index]

    @property
    def criteria(self) -> Tuple[Criterion, ...]:
        return self._criteria

    def get(self, criterion_id: CriterionId) -> Optional[Criterion]:
        return self._by_id.get(criterion_id)

    def index_of(self, criterion_id: CriterionId) -> int:
        for idx, crit in enumerate(self._criteria):
            if crit.id == criterion_id:
                return idx
        raise KeyError(criterion_id)

    def points_of(self, option_id: OptionId) -> Optional[int]:
        return self._points.get(option_id)

    def owner_of(self, option_id: OptionId) -> Optional[CriterionId]:
        return self._owner.get(option_id)

    def to_list(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for crit in self._criteria:
            out.append(
                {
                    "id": crit.id,
                    "category": crit.category,
                    "description": crit.description,
                    "options": [{"id": o.id, "label": o.label, "points": o.points} for o in crit.options],
                }
            )
        return out


class SelectionModeRegistry:
    """Answer cardinality per criterion.

    Criteria absent from the registry are single-select. Keys are compared as
    strings because selection configs usually round-trip through JSON objects.
    """

    def __init__(self, modes: Optional[Mapping[Any, Any]] = None):
        parsed: Dict[str, SelectionMode] = {}
        for key, value in (modes or {}).items():
            try:
                parsed[str(key)] = SelectionMode(str(value).strip().lower())
            except ValueError:
                raise ConfigurationError(
                    f"criterion {key!r} has unknown selection mode {value!r}"
                ) from None
        self._modes = parsed

    def mode_of(self, criterion_id: CriterionId) -> SelectionMode:
        return self._modes.get(str(criterion_id), SelectionMode(DEFAULT_SELECTION_MODE))

    def is_multiple(self, criterion_id: CriterionId) -> bool:
        return self.mode_of(criterion_id) is SelectionMode.MULTIPLE

    def to_dict(self) -> Dict[str, str]:
        return {k: v.value for k, v in self._modes.items()}


def parse_thresholds(raw: Mapping[str, Any]) -> ThresholdTable:
    """Validate a threshold mapping; malformed tables are rejected, never clamped."""

    values: Dict[str, int] = {}
    for key in ("low_threshold", "moderate_threshold", "high_threshold"):
        val = raw.get(key) if raw else None
        if isinstance(val, bool) or val is None:
            raise ConfigurationError(f"{key} is missing or invalid: {val!r}")
        try:
            num = int(val)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} is not an integer: {val!r}") from None
        if num != val and not isinstance(val, str):
            raise ConfigurationError(f"{key} is not an integer: {val!r}")
        if num < 1:
            raise ConfigurationError(f"{key} must be at least 1, got {num}")
        values[key] = num
    table = ThresholdTable(**values)
    if not (table.low_threshold < table.moderate_threshold < table.high_threshold):
        raise ConfigurationError(
            "thresholds must satisfy low < moderate < high, got "
            f"{table.low_threshold}/{table.moderate_threshold}/{table.high_threshold}"
        )
    return table


def load_default_catalog() -> Dict[str, Any]:
    """Raw bundled configuration: criteria, selection config and thresholds."""

    data = ir.files(__package__).joinpath("data/criteria.json").read_text(encoding="utf-8")
    return json.loads(data)


__all__ = [
    "CriteriaCatalog",
    "SelectionModeRegistry",
    "parse_thresholds",
    "load_default_catalog",
]
