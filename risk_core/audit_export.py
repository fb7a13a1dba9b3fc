"""JSON/CSV export of the audit events a wizard session records."""
from __future__ import annotations

import csv
import io
from collections import Counter
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .types import AuditEvent

EventLike = Union[AuditEvent, Dict[str, Any]]

COLUMNS: tuple[str, ...] = (
    "t",
    "kind",
    "subject_name",
    "criterion_id",
    "option_id",
    "total_score",
    "risk_tier",
    "detail",
)


def _as_int(val: Any) -> Optional[int]:
    if val is None or isinstance(val, bool):
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def event_row(event: EventLike) -> Dict[str, Any]:
    """Flatten one event to the export columns; ids and text become strings."""

    raw = asdict(event) if is_dataclass(event) else dict(event or {})
    row = {col: ("" if raw.get(col) is None else str(raw.get(col))) for col in COLUMNS}
    row["total_score"] = _as_int(raw.get("total_score"))
    return row


def _rows(events: Iterable[EventLike], kinds: Optional[Sequence[str]]) -> List[Dict[str, Any]]:
    rows = [event_row(evt) for evt in events]
    if kinds:
        wanted = set(kinds)
        rows = [r for r in rows if r["kind"] in wanted]
    return rows


def to_json(events: Iterable[EventLike], kinds: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    rows = _rows(events, kinds)
    return {"events": rows, "counts": dict(Counter(r["kind"] for r in rows))}


def to_csv(events: Iterable[EventLike], kinds: Optional[Sequence[str]] = None) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(_rows(events, kinds))
    return buf.getvalue()


__all__ = ["COLUMNS", "event_row", "to_json", "to_csv"]
