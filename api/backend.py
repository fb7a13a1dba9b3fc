"""Record-store side of the assessment contract, backed by api.storage."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from risk_core.errors import ValidationError
from risk_core.gateway import SessionSnapshot, build_snapshot
from risk_core.responses import ResponseSet
from risk_core.tiers import compute_result
from risk_core.types import AssessmentResult, OptionId, RiskTier

from . import storage

log = logging.getLogger(__name__)


def live_snapshot() -> SessionSnapshot:
    """Snapshot of the stored configuration as it is right now."""

    return build_snapshot(
        storage.get_criteria(),
        storage.get_selection_config(),
        storage.get_risk_thresholds(),
    )


def _score_ids(option_ids: List[OptionId]) -> AssessmentResult:
    snap = live_snapshot()
    unknown = [oid for oid in option_ids if snap.catalog.owner_of(oid) is None]
    if unknown:
        raise ValidationError(f"unknown option ids: {unknown}")
    responses = ResponseSet.from_option_ids(option_ids, snap.catalog, snap.modes)
    return compute_result(responses, snap.catalog, snap.thresholds)


def _session_score(payload: Dict[str, Any]) -> Tuple[int, str]:
    total, tier = payload.get("total_score"), payload.get("risk_tier")
    if total is None or not tier:
        raise ValidationError("session submissions must carry total_score and risk_tier")
    try:
        return int(total), RiskTier(tier).value
    except (TypeError, ValueError):
        raise ValidationError(f"invalid session result {total!r}/{tier!r}") from None


def _resolve_score(payload: Dict[str, Any], option_ids: List[OptionId], from_session: bool) -> Tuple[int, str]:
    # wizard sessions were scored against their own snapshot; keep that result
    if from_session:
        return _session_score(payload)
    result = _score_ids(option_ids)
    return result.total_score, result.risk_tier.value


def create_record(
    payload: Dict[str, Any],
    profile_branch_id: Optional[int] = None,
    *,
    from_session: bool = False,
) -> Dict[str, Any]:
    """Persist a new assessment; the branch falls back to the caller's profile.

    Direct record requests are scored against the live configuration. With
    ``from_session`` the score and tier sent by the wizard are stored as is.
    """

    name = str(payload.get("subject_name") or "").strip()
    if not name:
        raise ValidationError("name required")
    branch_id = payload.get("branch_id") or profile_branch_id
    if not branch_id:
        raise ValidationError("Branch information is required. Please contact administrator.")
    option_ids = list(payload.get("selected_option_ids") or [])
    total_score, risk_tier = _resolve_score(payload, option_ids, from_session)

    now = storage.utcnow_iso()
    record_id = storage.new_record_id()
    record = {
        "id": record_id,
        "subject_name": name,
        "branch_id": branch_id,
        "selected_option_ids": option_ids,
        "total_score": total_score,
        "risk_tier": risk_tier,
        "created_at": now,
        "updated_at": now,
        "history": [
            {
                "at": now,
                "action": "created",
                "total_score": total_score,
                "risk_tier": risk_tier,
                "responses_count": len(option_ids),
            }
        ],
    }
    storage.save_assessment(record_id, record)
    log.info("record created id=%s subject=%r tier=%s", record_id, name, risk_tier)
    return record


def update_record(record: Dict[str, Any], payload: Dict[str, Any], *, from_session: bool = False) -> Dict[str, Any]:
    name = str(payload.get("subject_name") or "").strip()
    if not name:
        raise ValidationError("name required")
    option_ids = list(payload.get("selected_option_ids") or [])
    total_score, risk_tier = _resolve_score(payload, option_ids, from_session)

    now = storage.utcnow_iso()
    old = {
        "subject_name": record.get("subject_name"),
        "total_score": record.get("total_score"),
        "risk_tier": record.get("risk_tier"),
    }
    record.update(
        {
            "subject_name": name,
            "selected_option_ids": option_ids,
            "total_score": total_score,
            "risk_tier": risk_tier,
            "updated_at": now,
        }
    )
    history = list(record.get("history") or [])
    history.append(
        {
            "at": now,
            "action": "updated",
            "old": old,
            "new": {"subject_name": name, "total_score": total_score, "risk_tier": risk_tier},
        }
    )
    record["history"] = history
    storage.save_assessment(str(record["id"]), record)
    log.info("record updated id=%s tier %s -> %s", record["id"], old["risk_tier"], risk_tier)
    return record


class StorageBackend:
    """In-process AssessmentBackend for wizard sessions served by this API."""

    def __init__(self, profile_branch_id: Optional[int] = None):
        self.profile_branch_id = profile_branch_id

    def get_criteria(self) -> List[Dict[str, Any]]:
        return storage.get_criteria()

    def get_selection_config(self) -> Dict[str, str]:
        return storage.get_selection_config()

    def get_risk_thresholds(self) -> Dict[str, Any]:
        return storage.get_risk_thresholds()

    def get_existing_assessment(self, record_id: str) -> Dict[str, Any]:
        record = storage.load_assessment(record_id)
        if record is None:
            raise KeyError(record_id)
        return record

    def submit_assessment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = create_record(payload, self.profile_branch_id, from_session=True)
        return {
            "id": record["id"],
            "total_score": record["total_score"],
            "risk_tier": record["risk_tier"],
        }

    def update_assessment(self, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = self.get_existing_assessment(record_id)
        update_record(record, payload, from_session=True)
        return {"success": True}
