"""External collaborators of the engine and the per-session configuration snapshot."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

import httpx

from . import config
from .catalog import CriteriaCatalog, SelectionModeRegistry, parse_thresholds
from .errors import ConfigurationError
from .types import AssessmentResult, OptionId, ThresholdTable

log = logging.getLogger(__name__)


class AssessmentBackend(Protocol):
    """CRUD contract of the record store the engine talks to."""

    def get_criteria(self) -> List[Dict[str, Any]]: ...

    def get_selection_config(self) -> Dict[str, str]: ...

    def get_risk_thresholds(self) -> Dict[str, Any]: ...

    def get_existing_assessment(self, record_id: str) -> Dict[str, Any]: ...

    def submit_assessment(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    def update_assessment(self, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...


@dataclass(frozen=True)
class AssessmentEndpoints:
    """Route set and capabilities for one caller, resolved once from their roles."""

    scope: str
    criteria: str
    selection_config: str
    risk_thresholds: str
    assessments: str
    requires_branch: bool = False

    def assessment(self, record_id: str) -> str:
        return f"{self.assessments}/{record_id}"


ADMIN_ENDPOINTS = AssessmentEndpoints(
    scope="admin",
    criteria="/admin/risk-settings/criteria",
    selection_config="/admin/risk-settings/selection-config",
    risk_thresholds="/admin/risk-thresholds",
    assessments="/admin/assessments",
)

SHARED_ENDPOINTS = AssessmentEndpoints(
    scope="compliance",
    criteria="/compliance/risk-settings/criteria",
    selection_config="/compliance/risk-settings/selection-config",
    risk_thresholds="/risk-thresholds",
    assessments="/user/assessments",
)


def resolve_endpoints(roles: Iterable[str]) -> AssessmentEndpoints:
    slugs = {str(r).strip().lower() for r in roles or ()}
    if slugs & set(config.ADMIN_ROLES):
        return ADMIN_ENDPOINTS
    requires_branch = bool(slugs & set(config.BRANCH_REQUIRED_ROLES))
    return AssessmentEndpoints(
        scope="compliance" if requires_branch else "user",
        criteria=SHARED_ENDPOINTS.criteria,
        selection_config=SHARED_ENDPOINTS.selection_config,
        risk_thresholds=SHARED_ENDPOINTS.risk_thresholds,
        assessments=SHARED_ENDPOINTS.assessments,
        requires_branch=requires_branch,
    )


@dataclass(frozen=True)
class SessionSnapshot:
    """Configuration an assessment is scored against for its whole lifetime."""

    catalog: CriteriaCatalog
    modes: SelectionModeRegistry
    thresholds: ThresholdTable


def build_snapshot(
    criteria: Iterable[Mapping[str, Any]],
    selection_config: Optional[Mapping[Any, Any]],
    thresholds: Mapping[str, Any],
) -> SessionSnapshot:
    return SessionSnapshot(
        catalog=CriteriaCatalog.from_raw(criteria),
        modes=SelectionModeRegistry(selection_config),
        thresholds=parse_thresholds(thresholds),
    )


def load_snapshot(backend: AssessmentBackend) -> SessionSnapshot:
    """Read criteria, selection modes and thresholds once; raises ConfigurationError."""

    try:
        criteria = backend.get_criteria()
        selection = backend.get_selection_config()
        thresholds = backend.get_risk_thresholds()
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"assessment unavailable: {e}") from e
    snap = build_snapshot(criteria, selection, thresholds)
    log.info(
        "snapshot loaded criteria=%d thresholds=%s",
        len(snap.catalog),
        snap.thresholds.to_dict(),
    )
    return snap


def _unwrap(body: Any) -> Any:
    # the backend wraps most payloads as {"success": ..., "data": ...}
    if isinstance(body, dict) and "data" in body and ("success" in body or "message" in body):
        return body["data"]
    return body


class RestBackend:
    """AssessmentBackend over HTTP, using the route set of the caller's role."""

    def __init__(self, client: httpx.Client, endpoints: AssessmentEndpoints):
        self.client = client
        self.endpoints = endpoints

    @classmethod
    def connect(cls, base_url: str, roles: Iterable[str], token: Optional[str] = None) -> "RestBackend":
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        client = httpx.Client(base_url=base_url, headers=headers, timeout=config.REST_TIMEOUT_SEC)
        return cls(client, resolve_endpoints(roles))

    def _get(self, path: str) -> Any:
        resp = self.client.get(path)
        resp.raise_for_status()
        return _unwrap(resp.json())

    def get_criteria(self) -> List[Dict[str, Any]]:
        return self._get(self.endpoints.criteria)

    def get_selection_config(self) -> Dict[str, str]:
        return self._get(self.endpoints.selection_config) or {}

    def get_risk_thresholds(self) -> Dict[str, Any]:
        return self._get(self.endpoints.risk_thresholds)

    def get_existing_assessment(self, record_id: str) -> Dict[str, Any]:
        return self._get(self.endpoints.assessment(record_id))

    def submit_assessment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.client.post(self.endpoints.assessments, json=payload)
        resp.raise_for_status()
        return _unwrap(resp.json())

    def update_assessment(self, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.client.put(self.endpoints.assessment(record_id), json=payload)
        resp.raise_for_status()
        body = resp.json()
        return {"success": bool(body.get("success", True)) if isinstance(body, dict) else True}


def submission_payload(
    subject_name: str,
    selected_option_ids: List[OptionId],
    branch_id: Optional[int] = None,
    result: Optional[AssessmentResult] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"subject_name": subject_name, "selected_option_ids": list(selected_option_ids)}
    # branch only travels when explicitly chosen; the store falls back to the profile branch
    if branch_id is not None:
        payload["branch_id"] = branch_id
    if result is not None:
        payload["total_score"] = result.total_score
        payload["risk_tier"] = result.risk_tier.value
    return payload


__all__ = [
    "AssessmentBackend",
    "AssessmentEndpoints",
    "ADMIN_ENDPOINTS",
    "SHARED_ENDPOINTS",
    "resolve_endpoints",
    "SessionSnapshot",
    "build_snapshot",
    "load_snapshot",
    "RestBackend",
    "submission_payload",
]
