"""Utility helpers for persisting risk settings and assessment records.

The production deployment should ideally swap this module for a proper
database-backed implementation.  For now we use simple JSON files stored on
disk: one settings document (criteria, selection configuration, thresholds)
and one file per assessment record plus a small index for listings.
"""

from __future__ import annotations

import json
import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from risk_core.catalog import load_default_catalog
from risk_core.config import DEFAULT_THRESHOLDS
from risk_core.errors import ConfigurationError


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
ASSESSMENTS_DIR = DATA_ROOT / "assessments"
ASSESSMENT_INDEX_PATH = DATA_ROOT / "assessments_index.json"
SETTINGS_PATH = DATA_ROOT / "risk_settings.json"

_LOCK = threading.Lock()


def _ensure_dirs() -> None:
    ASSESSMENTS_DIR.mkdir(parents=True, exist_ok=True)
    DATA_ROOT.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id() -> str:
    return str(uuid.uuid4())


# ---- settings ----
def _load_settings() -> Dict[str, Any]:
    """Stored settings; the bundled catalog seeds them only when no file exists yet."""

    if not SETTINGS_PATH.exists():
        seed = load_default_catalog()
        settings = {
            "criteria": seed.get("criteria", []),
            "selection_config": seed.get("selection_config", {}),
        }
        if seed.get("risk_thresholds"):
            settings["risk_thresholds"] = seed["risk_thresholds"]
        return settings
    try:
        settings = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"risk settings at {SETTINGS_PATH} are unreadable: {e}") from e
    if not isinstance(settings, dict):
        raise ConfigurationError(f"risk settings at {SETTINGS_PATH} are not a JSON object")
    return settings


def _update_settings(key: str, value: Any) -> None:
    with _LOCK:
        settings = _load_settings()
        settings[key] = value
        _write_json(SETTINGS_PATH, settings)


def get_criteria() -> List[Dict[str, Any]]:
    return list(_load_settings().get("criteria") or [])


def save_criteria(criteria: List[Dict[str, Any]]) -> None:
    _update_settings("criteria", criteria)


def get_selection_config() -> Dict[str, str]:
    return dict(_load_settings().get("selection_config") or {})


def save_selection_config(config: Dict[str, str]) -> None:
    _update_settings("selection_config", {str(k): v for k, v in config.items()})


def get_risk_thresholds() -> Dict[str, Any]:
    """Stored thresholds, or the defaults when none were ever configured."""

    stored = _load_settings().get("risk_thresholds")
    if not stored:
        return dict(DEFAULT_THRESHOLDS)
    return {
        "low_threshold": stored.get("low_threshold", DEFAULT_THRESHOLDS["low_threshold"]),
        "moderate_threshold": stored.get("moderate_threshold", DEFAULT_THRESHOLDS["moderate_threshold"]),
        "high_threshold": stored.get("high_threshold", DEFAULT_THRESHOLDS["high_threshold"]),
    }


def save_risk_thresholds(thresholds: Dict[str, int]) -> None:
    _update_settings("risk_thresholds", dict(thresholds))


# ---- assessment records ----
def save_assessment(record_id: str, record: Dict[str, Any]) -> None:
    """Persist the record JSON and its index metadata."""

    _ensure_dirs()
    metadata = {
        "subject_name": record.get("subject_name"),
        "branch_id": record.get("branch_id"),
        "total_score": record.get("total_score"),
        "risk_tier": record.get("risk_tier"),
        "created_at": record.get("created_at"),
        "updated_at": record.get("updated_at"),
    }
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(ASSESSMENT_INDEX_PATH, {})
        index[record_id] = metadata
        _write_json(ASSESSMENT_INDEX_PATH, index)

    _write_json(ASSESSMENTS_DIR / f"{record_id}.json", record)


def load_assessment(record_id: str) -> Optional[Dict[str, Any]]:
    path = ASSESSMENTS_DIR / f"{record_id}.json"
    if not path.exists():
        return None
    return _read_json(path, None)


def delete_assessment(record_id: str) -> bool:
    removed = False
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(ASSESSMENT_INDEX_PATH, {})
        if record_id in index:
            index.pop(record_id, None)
            _write_json(ASSESSMENT_INDEX_PATH, index)
            removed = True
    path = ASSESSMENTS_DIR / f"{record_id}.json"
    if path.exists():
        path.unlink()
    return removed


def list_assessments(branch_id: Optional[int] = None, risk_tier: Optional[str] = None) -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(ASSESSMENT_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for rid, meta in index.items():
        if branch_id is not None and str(meta.get("branch_id")) != str(branch_id):
            continue
        if risk_tier and meta.get("risk_tier") != risk_tier:
            continue
        item = {"id": rid}
        item.update({k: v for k, v in meta.items() if k != "id"})
        out.append(item)
    out.sort(key=lambda r: r.get("created_at") or "", reverse=True)
    return out
