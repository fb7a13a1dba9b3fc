from __future__ import annotations
from fastapi import APIRouter, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import logging, uuid, typing as t

from risk_core import config
from risk_core.audit_export import to_csv as audit_to_csv, to_json as audit_to_json
from risk_core.catalog import CriteriaCatalog, SelectionModeRegistry, parse_thresholds
from risk_core.errors import ConfigurationError, SubmissionFailure, ValidationError
from risk_core.gateway import ADMIN_ENDPOINTS, SHARED_ENDPOINTS, AssessmentEndpoints, load_snapshot, resolve_endpoints
from risk_core.tiers import describe_bands, preview_bands
from risk_core.wizard import WizardController

from . import storage
from .backend import StorageBackend, create_record, update_record

log = logging.getLogger(__name__)

SESS: dict[str, WizardController] = {}
SESSION_INFO: dict[str, dict[str, t.Any]] = {}

app = FastAPI(title="Risk Assessment API")

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


# ---- Error mapping ----
@app.exception_handler(ValidationError)
async def _validation_error(_req: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"success": False, "message": str(exc)})


@app.exception_handler(ConfigurationError)
async def _configuration_error(_req: Request, exc: ConfigurationError):
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": "assessment unavailable", "detail": str(exc)},
    )


@app.exception_handler(SubmissionFailure)
async def _submission_failure(_req: Request, exc: SubmissionFailure):
    return JSONResponse(status_code=502, content={"success": False, "message": str(exc)})


# ---- Schemas ----
OptionIdIn = t.Union[int, str]


class OptionIn(BaseModel):
    id: OptionIdIn
    label: str
    points: int = Field(ge=0)


class CriterionIn(BaseModel):
    id: OptionIdIn
    category: str
    description: str | None = None
    options: list[OptionIn]


class SelectionConfigReq(BaseModel):
    config: dict[str, str]


class ThresholdsIn(BaseModel):
    low_threshold: int = Field(ge=config.THRESHOLD_MIN, le=config.THRESHOLD_MAX)
    moderate_threshold: int = Field(ge=config.THRESHOLD_MIN + 1, le=config.THRESHOLD_MAX)
    high_threshold: int = Field(ge=config.THRESHOLD_MIN + 2, le=config.THRESHOLD_MAX)


class ThresholdsReq(BaseModel):
    thresholds: ThresholdsIn


class AssessmentIn(BaseModel):
    subject_name: str = Field(max_length=config.SUBJECT_NAME_MAX)
    selected_option_ids: list[OptionIdIn]
    branch_id: int | None = None


class AssessmentUpdateIn(BaseModel):
    subject_name: str = Field(max_length=config.SUBJECT_NAME_MAX)
    selected_option_ids: list[OptionIdIn]


class StartReq(BaseModel):
    roles: list[str] = Field(default_factory=list)
    record_id: str | None = None
    profile_branch_id: int | None = None


class SubjectReq(BaseModel):
    subject_name: str | None = None
    branch_id: int | None = None


class AnswerReq(BaseModel):
    option_id: OptionIdIn


# ---- Helpers ----
def _ok(data: t.Any, message: str = "") -> dict[str, t.Any]:
    out: dict[str, t.Any] = {"success": True, "data": data}
    if message:
        out["message"] = message
    return out


def _session(sid: str) -> WizardController:
    ctl = SESS.get(sid)
    if not ctl:
        raise HTTPException(404, "session not found")
    return ctl


def _kinds(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    return [k.strip() for k in raw.split(",") if k.strip()]


def _serialize_wizard(ctl: WizardController) -> dict[str, t.Any]:
    crit = ctl.current_criterion
    current = None
    if crit is not None:
        entry = ctl.responses.get(crit.id)
        current = {
            "id": crit.id,
            "index": ctl.index,
            "category": crit.category,
            "description": crit.description,
            "mode": ctl.mode_of(crit.id).value,
            "options": [{"id": o.id, "label": o.label, "points": o.points} for o in crit.options],
            "selected": list(entry.option_ids()) if entry else [],
        }
    return {
        "state": ctl.current_state.value,
        "index": ctl.index,
        "is_edit": ctl.is_edit,
        "record_id": ctl.record_id,
        "subject_name": ctl.subject_name,
        "branch_id": ctl.branch_id,
        "requires_branch": ctl.requires_branch,
        "current_criterion": current,
        "completed_steps": ctl.completed_steps,
        "total_steps": ctl.total_steps,
        "progress": round(ctl.progress_fraction, 4),
        "can_advance": ctl.can_advance,
        "responses": {str(cid): list(entry.option_ids()) for cid, entry in ctl.responses.items()},
    }


# ---- Health ----
@app.get("/")
def root():
    return {"status": "ok", "service": "risk-assessment-api"}


@app.get("/health")
def health():
    return {
        "audit_export_enabled": config.AUDIT_EXPORT_ENABLED,
        "active_sessions": len(SESS),
    }


# ---- Settings and records, one route family per endpoint set ----
def _settings_router(ep: AssessmentEndpoints) -> APIRouter:
    router = APIRouter()

    @router.get(ep.criteria)
    def get_criteria():
        return storage.get_criteria()

    @router.put(ep.criteria)
    def put_criteria(payload: list[CriterionIn]):
        raw = [c.model_dump() for c in payload]
        try:
            CriteriaCatalog.from_raw(raw)
        except ConfigurationError as e:
            raise HTTPException(422, str(e))
        storage.save_criteria(raw)
        return _ok(raw, "Criteria saved successfully")

    @router.get(ep.selection_config)
    def get_selection_config():
        return _ok(storage.get_selection_config(), "Selection configuration retrieved successfully")

    @router.post(ep.selection_config)
    def save_selection_config(req: SelectionConfigReq):
        try:
            registry = SelectionModeRegistry(req.config)
        except ConfigurationError as e:
            raise HTTPException(422, str(e))
        storage.save_selection_config(registry.to_dict())
        return _ok(registry.to_dict(), "Selection configuration saved successfully")

    @router.get(ep.risk_thresholds)
    def get_risk_thresholds():
        return _ok(storage.get_risk_thresholds(), "Risk thresholds retrieved successfully")

    @router.post(ep.risk_thresholds)
    def save_risk_thresholds(req: ThresholdsReq):
        raw = req.thresholds.model_dump()
        try:
            table = parse_thresholds(raw)
        except ConfigurationError:
            raise HTTPException(
                422, "Invalid threshold configuration. Each threshold must be higher than the previous one."
            )
        storage.save_risk_thresholds(table.to_dict())
        return _ok(table.to_dict(), "Risk thresholds saved successfully")

    @router.get(ep.risk_thresholds + "/bands")
    def get_bands():
        table = parse_thresholds(storage.get_risk_thresholds())
        return {"bands": describe_bands(table), "preview": preview_bands(table)}

    @router.post(ep.assessments)
    def create_assessment(req: AssessmentIn, x_user_branch: int | None = Header(default=None)):
        return create_record(req.model_dump(), profile_branch_id=x_user_branch)

    @router.get(ep.assessments)
    def list_assessments(branch_id: int | None = None, risk_tier: str | None = None):
        return {"assessments": storage.list_assessments(branch_id=branch_id, risk_tier=risk_tier)}

    @router.get(ep.assessments + "/{record_id}")
    def get_assessment(record_id: str):
        record = storage.load_assessment(record_id)
        if not record:
            raise HTTPException(404, "assessment not found")
        return _ok(record)

    @router.put(ep.assessments + "/{record_id}")
    def put_assessment(record_id: str, req: AssessmentUpdateIn):
        record = storage.load_assessment(record_id)
        if not record:
            raise HTTPException(404, "assessment not found")
        updated = update_record(record, req.model_dump())
        return _ok(updated, "Risk assessment updated successfully")

    @router.delete(ep.assessments + "/{record_id}")
    def delete_assessment(record_id: str):
        if not storage.delete_assessment(record_id):
            raise HTTPException(404, "assessment not found")
        return {"success": True}

    return router


app.include_router(_settings_router(ADMIN_ENDPOINTS))
app.include_router(_settings_router(SHARED_ENDPOINTS))


# ---- Wizard sessions ----
@app.post("/session/start")
def start(req: StartReq):
    endpoints = resolve_endpoints(req.roles)
    backend = StorageBackend(profile_branch_id=req.profile_branch_id)
    snapshot = load_snapshot(backend)
    if req.record_id:
        if storage.load_assessment(req.record_id) is None:
            raise HTTPException(404, "assessment not found")
        ctl = WizardController.for_edit(snapshot, backend, req.record_id)
    else:
        ctl = WizardController(snapshot, backend, requires_branch=endpoints.requires_branch)
    sid = str(uuid.uuid4())
    SESS[sid] = ctl
    SESSION_INFO[sid] = {"scope": endpoints.scope, "started_at": storage.utcnow_iso()}
    log.info("session %s started scope=%s edit=%s", sid, endpoints.scope, ctl.is_edit)
    return {"session_id": sid, "wizard": _serialize_wizard(ctl)}


@app.get("/session/{sid}")
def session_state(sid: str):
    return {"wizard": _serialize_wizard(_session(sid))}


@app.post("/session/{sid}/subject")
def session_subject(sid: str, req: SubjectReq):
    ctl = _session(sid)
    ctl.begin(req.subject_name, req.branch_id)
    return {"wizard": _serialize_wizard(ctl)}


@app.post("/session/{sid}/answer")
def session_answer(sid: str, req: AnswerReq):
    ctl = _session(sid)
    ctl.answer(req.option_id)
    return {"wizard": _serialize_wizard(ctl)}


@app.post("/session/{sid}/next")
def session_next(sid: str):
    ctl = _session(sid)
    ctl.next()
    return {"wizard": _serialize_wizard(ctl)}


@app.post("/session/{sid}/previous")
def session_previous(sid: str):
    ctl = _session(sid)
    ctl.previous()
    return {"wizard": _serialize_wizard(ctl)}


@app.post("/session/{sid}/goto/{index}")
def session_goto(sid: str, index: int):
    ctl = _session(sid)
    ctl.go_to(index)
    return {"wizard": _serialize_wizard(ctl)}


@app.get("/session/{sid}/result")
def session_result(sid: str):
    ctl = _session(sid)
    return ctl.compute_result().to_dict()


@app.post("/session/{sid}/submit")
def session_submit(sid: str):
    ctl = _session(sid)
    outcome = ctl.submit()
    return {
        "success": True,
        "changed": outcome.changed,
        "message": outcome.message,
        "record_id": outcome.record_id,
        "result": outcome.result.to_dict(),
        "wizard": _serialize_wizard(ctl),
    }


@app.delete("/session/{sid}")
def session_close(sid: str):
    _session(sid)
    SESS.pop(sid, None)
    SESSION_INFO.pop(sid, None)
    return {"ok": True}


@app.get("/session/{sid}/audit.json")
def session_audit_json(sid: str, kind: str | None = None):
    if not config.AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")
    ctl = _session(sid)
    return {"session_id": sid, **audit_to_json(ctl.audit_events, kinds=_kinds(kind))}


@app.get("/session/{sid}/audit.csv")
def session_audit_csv(sid: str, kind: str | None = None):
    if not config.AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")
    ctl = _session(sid)
    body = audit_to_csv(ctl.audit_events, kinds=_kinds(kind))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{sid}_audit.csv\""},
    )
