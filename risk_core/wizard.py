# risk_core/wizard.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import logging

from .config import HEAD_OFFICE_BRANCH_ID, SUBJECT_NAME_MAX
from .errors import SubmissionFailure, ValidationError
from .gateway import AssessmentBackend, SessionSnapshot, submission_payload
from .reconcile import has_changes
from .responses import ResponseSet
from .tiers import compute_result
from .types import (
    AssessmentRecord,
    AssessmentResult,
    AuditEvent,
    Criterion,
    CriterionId,
    OptionId,
    SelectionMode,
)

log = logging.getLogger(__name__)


class WizardState(str, Enum):
    AWAITING_SUBJECT_INFO = "awaiting_subject_info"
    ANSWERING = "answering"
    READY_TO_REVIEW = "ready_to_review"
    SUBMITTED = "submitted"


@dataclass
class SubmissionOutcome:
    changed: bool
    result: AssessmentResult
    response: Dict[str, Any] = field(default_factory=dict)
    record_id: Optional[str] = None
    message: str = ""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class WizardController:
    """Walks an operator through the catalog one criterion at a time.

    States run AWAITING_SUBJECT_INFO -> ANSWERING(i) -> READY_TO_REVIEW ->
    SUBMITTED; any step before SUBMITTED can navigate back without losing
    answers. The snapshot is fixed at construction, so configuration changes
    made elsewhere never alter an assessment in flight.
    """

    def __init__(
        self,
        snapshot: SessionSnapshot,
        backend: Optional[AssessmentBackend] = None,
        *,
        requires_branch: bool = False,
        subject_name: str = "",
        branch_id: Optional[int] = None,
        responses: Optional[ResponseSet] = None,
    ):
        self.snapshot = snapshot
        self.backend = backend
        self.requires_branch = requires_branch
        self.subject_name = subject_name
        self.branch_id = branch_id
        self.responses = responses if responses is not None else ResponseSet()
        self.state = WizardState.AWAITING_SUBJECT_INFO
        self.index = 0
        self.audit_events: List[AuditEvent] = []
        self.last_outcome: Optional[SubmissionOutcome] = None

        self.record_id: Optional[str] = None
        self._original_ids: List[OptionId] = []
        self._original_name: str = ""

    @classmethod
    def for_edit(
        cls,
        snapshot: SessionSnapshot,
        backend: AssessmentBackend,
        record_id: str,
        record: Union[AssessmentRecord, Dict[str, Any], None] = None,
    ) -> "WizardController":
        """Controller seeded from a persisted assessment; submit() then updates it."""

        if record is None:
            record = backend.get_existing_assessment(record_id)
        if isinstance(record, dict):
            record = AssessmentRecord.from_dict(record)
        seeded = ResponseSet.from_option_ids(record.selected_option_ids, snapshot.catalog, snapshot.modes)
        ctl = cls(
            snapshot,
            backend,
            subject_name=record.subject_name,
            branch_id=record.branch_id,
            responses=seeded,
        )
        ctl.record_id = str(record_id)
        ctl._original_ids = list(record.selected_option_ids)
        ctl._original_name = record.subject_name
        for oid in record.selected_option_ids:
            if snapshot.catalog.owner_of(oid) is None:
                ctl._audit("stale_reference", option_id=oid, detail="dropped while seeding edit")
        log.info("edit session record=%s answered=%d/%d", record_id, ctl.completed_steps, ctl.total_steps)
        return ctl

    # ---- read-only views ----
    @property
    def is_edit(self) -> bool:
        return self.record_id is not None

    @property
    def current_state(self) -> WizardState:
        return self.state

    @property
    def total_steps(self) -> int:
        return len(self.snapshot.catalog)

    @property
    def current_criterion(self) -> Optional[Criterion]:
        if self.state is not WizardState.ANSWERING:
            return None
        return self.snapshot.catalog[self.index]

    def mode_of(self, criterion_id: CriterionId) -> SelectionMode:
        return self.snapshot.modes.mode_of(criterion_id)

    @property
    def completed_steps(self) -> int:
        # derived from the responses so it always matches the answered count
        return sum(1 for c in self.snapshot.catalog if self.responses.is_answered(c.id))

    @property
    def progress_fraction(self) -> float:
        n = self.total_steps
        return self.completed_steps / n if n else 0.0

    def unanswered(self) -> List[Criterion]:
        return [c for c in self.snapshot.catalog if not self.responses.is_answered(c.id)]

    @property
    def can_advance(self) -> bool:
        if self.state is WizardState.AWAITING_SUBJECT_INFO:
            return self._subject_problem(self.subject_name, self.branch_id) is None
        if self.state is not WizardState.ANSWERING:
            return False
        crit = self.snapshot.catalog[self.index]
        if not self.responses.is_answered(crit.id):
            return False
        if self.index == self.total_steps - 1:
            return not self.unanswered()
        return True

    # ---- transitions ----
    def _subject_problem(self, name: Optional[str], branch_id: Optional[int]) -> Optional[str]:
        if not (name or "").strip():
            return "name required"
        if len(name.strip()) > SUBJECT_NAME_MAX:  # type: ignore[union-attr]
            return f"name longer than {SUBJECT_NAME_MAX} characters"
        if self.requires_branch:
            if branch_id is None or branch_id == "":
                return "branch required"
            if str(branch_id) == str(HEAD_OFFICE_BRANCH_ID):
                return "head office cannot be selected as assessment branch"
        return None

    def begin(self, subject_name: Optional[str] = None, branch_id: Optional[int] = None) -> WizardState:
        self._require(WizardState.AWAITING_SUBJECT_INFO, "begin")
        name = self.subject_name if subject_name is None else subject_name
        branch = self.branch_id if branch_id is None else branch_id
        problem = self._subject_problem(name, branch)
        if problem:
            raise ValidationError(problem)
        self.subject_name = name.strip()
        self.branch_id = branch
        self._move(WizardState.ANSWERING, 0)
        return self.state

    def answer(self, option_id: OptionId) -> WizardState:
        self._require(WizardState.ANSWERING, "answer")
        crit = self.snapshot.catalog[self.index]
        if crit.option(option_id) is None:
            raise ValidationError(f"option {option_id!r} is not an answer to '{crit.category}'")

        if self.mode_of(crit.id) is SelectionMode.MULTIPLE:
            selected = self.responses.toggle(crit.id, option_id)
            log.debug("toggle criterion=%r option=%r selected=%s", crit.id, option_id, selected)
            return self.state

        self.responses.select(crit.id, option_id)
        # single-select criteria advance on their own
        if self.index < self.total_steps - 1:
            self._move(WizardState.ANSWERING, self.index + 1)
        elif not self.unanswered():
            self._move(WizardState.READY_TO_REVIEW, self.index)
        return self.state

    def next(self) -> WizardState:
        if self.state is WizardState.AWAITING_SUBJECT_INFO:
            return self.begin()
        self._require(WizardState.ANSWERING, "next")
        crit = self.snapshot.catalog[self.index]
        if not self.responses.is_answered(crit.id):
            raise ValidationError(f"criterion '{crit.category}' requires at least one selected option")
        if self.index < self.total_steps - 1:
            self._move(WizardState.ANSWERING, self.index + 1)
            return self.state
        missing = self.unanswered()
        if missing:
            raise ValidationError(f"{len(missing)} of {self.total_steps} criteria unanswered")
        self._move(WizardState.READY_TO_REVIEW, self.index)
        return self.state

    def previous(self) -> WizardState:
        if self.state is WizardState.SUBMITTED:
            raise ValidationError("assessment already submitted")
        if self.state is WizardState.READY_TO_REVIEW:
            self._move(WizardState.ANSWERING, self.total_steps - 1)
        elif self.state is WizardState.ANSWERING:
            if self.index == 0:
                self._move(WizardState.AWAITING_SUBJECT_INFO, 0)
            else:
                self._move(WizardState.ANSWERING, self.index - 1)
        return self.state

    def go_to(self, index: int) -> WizardState:
        if self.state not in (WizardState.ANSWERING, WizardState.READY_TO_REVIEW):
            raise ValidationError(f"cannot jump to a criterion while {self.state.value}")
        if not 0 <= index < self.total_steps:
            raise ValidationError(f"criterion index {index} out of range 0..{self.total_steps - 1}")
        skipped = [c for c in self.snapshot.catalog.criteria[:index] if not self.responses.is_answered(c.id)]
        if skipped:
            raise ValidationError(f"{len(skipped)} earlier criteria unanswered")
        self._move(WizardState.ANSWERING, index)
        return self.state

    def compute_result(self) -> AssessmentResult:
        if self.state not in (WizardState.READY_TO_REVIEW, WizardState.SUBMITTED):
            raise ValidationError(f"result not available while {self.state.value}")
        snap = self.snapshot
        return compute_result(self.responses, snap.catalog, snap.thresholds, on_stale=self._on_stale)

    def submit(self) -> SubmissionOutcome:
        self._require(WizardState.READY_TO_REVIEW, "submit")
        result = self.compute_result()
        if self.backend is None:
            raise SubmissionFailure("no submission backend configured")

        if self.is_edit:
            outcome = self._submit_update(result)
        else:
            outcome = self._submit_new(result)
        self.last_outcome = outcome
        return outcome

    # ---- internals ----
    def _submit_new(self, result: AssessmentResult) -> SubmissionOutcome:
        payload = submission_payload(self.subject_name, result.selected_option_ids, self.branch_id, result)
        try:
            reply = self.backend.submit_assessment(payload)  # type: ignore[union-attr]
        except Exception as e:
            log.warning("submit failed subject=%r: %s", self.subject_name, e)
            raise SubmissionFailure(f"failed to save assessment: {e}") from e
        reply = dict(reply or {})
        # the record is stored at this point
        self._move(WizardState.SUBMITTED, self.index)
        self._check_remote_score(reply.get("total_score"), result)
        self._audit("submitted", total_score=result.total_score, risk_tier=result.risk_tier.value)
        log.info("assessment submitted subject=%r score=%d tier=%s",
                 self.subject_name, result.total_score, result.risk_tier.value)
        rid = reply.get("id")
        return SubmissionOutcome(
            changed=True,
            result=result,
            response=reply,
            record_id=str(rid) if rid is not None else None,
            message=f"{self.subject_name} assessed as {result.risk_tier.value}",
        )

    def _submit_update(self, result: AssessmentResult) -> SubmissionOutcome:
        if not has_changes(self._original_ids, result.selected_option_ids, self._original_name, self.subject_name):
            log.info("record %s unchanged; update skipped", self.record_id)
            self._audit("unchanged", total_score=result.total_score, risk_tier=result.risk_tier.value)
            return SubmissionOutcome(
                changed=False,
                result=result,
                record_id=self.record_id,
                message="No changes were made to this risk assessment.",
            )
        payload = submission_payload(self.subject_name, result.selected_option_ids, result=result)
        try:
            reply = self.backend.update_assessment(self.record_id, payload)  # type: ignore[union-attr, arg-type]
        except Exception as e:
            log.warning("update failed record=%s: %s", self.record_id, e)
            raise SubmissionFailure(f"failed to update assessment: {e}") from e
        if not (reply or {}).get("success", False):
            raise SubmissionFailure(f"store rejected update of record {self.record_id}")
        self._move(WizardState.SUBMITTED, self.index)
        self._audit("updated", total_score=result.total_score, risk_tier=result.risk_tier.value)
        log.info("record %s updated score=%d tier=%s", self.record_id, result.total_score, result.risk_tier.value)
        return SubmissionOutcome(
            changed=True,
            result=result,
            response=dict(reply),
            record_id=self.record_id,
            message=f"Risk assessment for {self.subject_name} updated",
        )

    def _check_remote_score(self, remote: Any, result: AssessmentResult) -> None:
        if remote is None:
            return
        try:
            remote_score = int(remote)
        except (TypeError, ValueError):
            log.warning("store replied with non-numeric total_score %r for %r", remote, self.subject_name)
            return
        if remote_score != result.total_score:
            log.warning(
                "store scored %s but session snapshot scored %s for %r",
                remote_score, result.total_score, self.subject_name,
            )

    def _require(self, expected: WizardState, action: str) -> None:
        if self.state is not expected:
            raise ValidationError(f"cannot {action} while {self.state.value}")

    def _move(self, state: WizardState, index: int) -> None:
        log.debug("wizard %s[%d] -> %s[%d]", self.state.value, self.index, state.value, index)
        self.state = state
        self.index = index

    def _on_stale(self, option_id: OptionId, criterion_id: Optional[CriterionId]) -> None:
        self._audit("stale_reference", criterion_id=criterion_id, option_id=option_id)

    def _audit(self, kind: str, **fields: Any) -> None:
        self.audit_events.append(AuditEvent(t=_now_iso(), kind=kind, subject_name=self.subject_name, **fields))


__all__ = ["WizardController", "WizardState", "SubmissionOutcome"]
