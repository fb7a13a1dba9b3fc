from __future__ import annotations

import argparse
import json
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, Mapping

from risk_core.catalog import SelectionModeRegistry, load_default_catalog, parse_thresholds
from risk_core.errors import ConfigurationError
from risk_core.tiers import preview_bands


def audit_config(
    criteria: Iterable[Mapping[str, Any]],
    selection_config: Mapping[str, Any] | None,
    thresholds: Mapping[str, Any] | None,
) -> dict[str, object]:
    criteria = list(criteria)
    warnings: list[str] = []
    coverage: dict[str, dict[str, int]] = {}

    crit_ids = Counter(str(c.get("id")) for c in criteria)
    for cid, n in crit_ids.items():
        if n > 1:
            warnings.append(f"criterion id {cid} used {n} times")

    option_ids: Counter[str] = Counter()
    for crit in criteria:
        opts = list(crit.get("options") or [])
        label = crit.get("category") or crit.get("label") or crit.get("id")
        if not opts:
            warnings.append(f"{label} has no options")
        pts = [o.get("points", 0) for o in opts]
        bad = [p for p in pts if not isinstance(p, int) or isinstance(p, bool) or p < 0]
        if bad:
            warnings.append(f"{label} has invalid points {bad}")
        good = [p for p in pts if p not in bad]
        coverage[str(label)] = {
            "options": len(opts),
            "min_points": min(good) if good else 0,
            "max_points": max(good) if good else 0,
        }
        option_ids.update(str(o.get("id")) for o in opts)
    for oid, n in option_ids.items():
        if n > 1:
            warnings.append(f"option id {oid} used {n} times")

    try:
        modes = SelectionModeRegistry(selection_config)
        unknown = set(modes.to_dict()) - set(crit_ids)
        for cid in sorted(unknown):
            warnings.append(f"selection config names unknown criterion {cid}")
    except ConfigurationError as e:
        warnings.append(str(e))

    bands: list[dict[str, object]] = []
    try:
        table = parse_thresholds(thresholds or {})
        bands = preview_bands(table)
        floor = sum(c["min_points"] for c in coverage.values())
        if floor >= table.moderate_threshold:
            warnings.append(f"every complete assessment scores at least {floor}, always HIGH RISK")
    except ConfigurationError as e:
        warnings.append(str(e))

    return {"coverage": coverage, "warnings": warnings, "bands": bands}


def print_report(summary: dict[str, object]) -> None:
    coverage: dict[str, dict[str, int]] = summary["coverage"]  # type: ignore[assignment]
    print("=== Criteria ===")
    for label, row in coverage.items():
        print(f"  {label}: {row['options']} options, points {row['min_points']}..{row['max_points']}")

    bands: list[dict[str, object]] = summary["bands"]  # type: ignore[assignment]
    if bands:
        print("\n=== Threshold preview ===")
        for band in bands:
            print(f"  {band['label']}: {band['text']}")

    warnings: list[str] = summary["warnings"]  # type: ignore[assignment]
    if warnings:
        print("\nWarnings:")
        for msg in warnings:
            print(f" - {msg}")
    else:
        print("\nNo warnings.")


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Audit a risk criteria configuration")
    ap.add_argument("path", nargs="?", help="JSON file with criteria/selection_config/risk_thresholds")
    a = ap.parse_args(argv)
    raw = json.loads(Path(a.path).read_text(encoding="utf-8")) if a.path else load_default_catalog()
    summary = audit_config(raw.get("criteria") or [], raw.get("selection_config"), raw.get("risk_thresholds"))
    print_report(summary)
    return 2 if summary["warnings"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
