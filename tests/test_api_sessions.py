from __future__ import annotations

import importlib
import sys

from fastapi.testclient import TestClient

from tests.conftest import SYNTHETIC_MODES, SYNTHETIC_THRESHOLDS, build_synthetic_criteria


_DEF_MODULES = [
    "risk_core.config",
    "api.storage",
    "api.backend",
    "api.app",
]


def _reload_app(tmp_path, monkeypatch) -> tuple[object, object]:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    for name in _DEF_MODULES:
        if name in sys.modules:
            importlib.reload(sys.modules[name])
        else:
            __import__(name)
    storage = sys.modules["api.storage"]
    app_module = sys.modules["api.app"]
    return storage, app_module


def _configured_client(tmp_path, monkeypatch) -> tuple[object, TestClient]:
    storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)
    assert client.put("/admin/risk-settings/criteria", json=build_synthetic_criteria()).status_code == 200
    assert client.post("/admin/risk-settings/selection-config", json={"config": SYNTHETIC_MODES}).status_code == 200
    assert client.post("/admin/risk-thresholds", json={"thresholds": SYNTHETIC_THRESHOLDS}).status_code == 200
    return storage, client


def _walk(client, sid: str, answers: list[str]) -> dict:
    body = {}
    for oid in answers:
        resp = client.post(f"/session/{sid}/answer", json={"option_id": oid})
        assert resp.status_code == 200, resp.text
        body = resp.json()
    return body


def test_settings_seeded_from_bundled_catalog(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    criteria = client.get("/compliance/risk-settings/criteria").json()
    assert len(criteria) == 9

    thresholds = client.get("/risk-thresholds").json()
    assert thresholds["success"] is True
    assert thresholds["data"] == {"low_threshold": 10, "moderate_threshold": 16, "high_threshold": 19}

    bands = client.get("/admin/risk-thresholds/bands").json()
    assert len(bands["bands"]) == 3
    assert bands["preview"][-1]["label"] == "Critical"


def test_threshold_save_validation(tmp_path, monkeypatch):
    _storage, client = _configured_client(tmp_path, monkeypatch)

    bad_order = {"thresholds": {"low_threshold": 16, "moderate_threshold": 10, "high_threshold": 19}}
    resp = client.post("/admin/risk-thresholds", json=bad_order)
    assert resp.status_code == 422
    assert "Each threshold must be higher than the previous one" in resp.json()["detail"]

    too_big = {"thresholds": {"low_threshold": 10, "moderate_threshold": 16, "high_threshold": 150}}
    assert client.post("/admin/risk-thresholds", json=too_big).status_code == 422

    ok = {"thresholds": {"low_threshold": 5, "moderate_threshold": 12, "high_threshold": 20}}
    assert client.post("/admin/risk-thresholds", json=ok).json()["data"]["moderate_threshold"] == 12


def test_invalid_settings_rejected(tmp_path, monkeypatch):
    _storage, client = _configured_client(tmp_path, monkeypatch)
    resp = client.post("/admin/risk-settings/selection-config", json={"config": {"1": "several"}})
    assert resp.status_code == 422
    dup = build_synthetic_criteria()
    dup[1]["options"][0]["id"] = "A"
    assert client.put("/admin/risk-settings/criteria", json=dup).status_code == 422


def test_record_create_scores_on_server(tmp_path, monkeypatch):
    _storage, client = _configured_client(tmp_path, monkeypatch)

    payload = {"subject_name": "Juan", "selected_option_ids": ["C", "E"]}
    missing_branch = client.post("/user/assessments", json=payload)
    assert missing_branch.status_code == 422
    assert "Branch information is required" in missing_branch.json()["message"]

    created = client.post("/user/assessments", json=payload, headers={"x-user-branch": "5"})
    assert created.status_code == 200
    record = created.json()
    assert record["total_score"] == 18
    assert record["risk_tier"] == "HIGH RISK"
    assert record["branch_id"] == 5

    unknown = client.post("/user/assessments", json={**payload, "selected_option_ids": ["Z"], "branch_id": 2})
    assert unknown.status_code == 422

    rid = record["id"]
    upd = client.put(f"/user/assessments/{rid}", json={"subject_name": "Juan", "selected_option_ids": ["A", "D"]})
    assert upd.status_code == 200
    data = upd.json()["data"]
    assert data["risk_tier"] == "LOW RISK"
    assert data["history"][-1]["old"]["risk_tier"] == "HIGH RISK"

    listed = client.get("/admin/assessments", params={"branch_id": 5}).json()["assessments"]
    assert [r["id"] for r in listed] == [rid]
    assert client.get("/admin/assessments", params={"risk_tier": "HIGH RISK"}).json()["assessments"] == []

    assert client.delete(f"/admin/assessments/{rid}").status_code == 200
    assert client.get(f"/admin/assessments/{rid}").status_code == 404


def test_wizard_session_new_assessment(tmp_path, monkeypatch):
    storage, client = _configured_client(tmp_path, monkeypatch)

    start = client.post("/session/start", json={"roles": ["compliance"], "profile_branch_id": 5})
    assert start.status_code == 200
    sid = start.json()["session_id"]
    wizard = start.json()["wizard"]
    assert wizard["state"] == "awaiting_subject_info"
    assert wizard["requires_branch"] is True

    no_branch = client.post(f"/session/{sid}/subject", json={"subject_name": "Juan"})
    assert no_branch.status_code == 422
    assert no_branch.json()["message"] == "branch required"

    subj = client.post(f"/session/{sid}/subject", json={"subject_name": "Juan", "branch_id": 3})
    assert subj.json()["wizard"]["current_criterion"]["category"] == "Income"

    early = client.get(f"/session/{sid}/result")
    assert early.status_code == 422

    body = _walk(client, sid, ["C", "E", "F", "H"])
    wizard = body["wizard"]
    assert wizard["current_criterion"]["mode"] == "multiple"
    assert wizard["current_criterion"]["selected"] == ["F", "H"]
    assert wizard["completed_steps"] == 3

    assert client.post(f"/session/{sid}/next").json()["wizard"]["state"] == "ready_to_review"
    assert client.get(f"/session/{sid}/result").json()["total_score"] == 27

    sub = client.post(f"/session/{sid}/submit")
    assert sub.status_code == 200
    out = sub.json()
    assert out["changed"] is True
    assert out["wizard"]["state"] == "submitted"
    stored = storage.load_assessment(out["record_id"])
    assert stored["branch_id"] == 3
    assert stored["risk_tier"] == "HIGH RISK"

    assert client.post(f"/session/{sid}/previous").status_code == 422


def test_wizard_session_edit_without_changes(tmp_path, monkeypatch):
    _storage, client = _configured_client(tmp_path, monkeypatch)
    created = client.post(
        "/admin/assessments",
        json={"subject_name": "Maria", "selected_option_ids": ["B", "D", "G"], "branch_id": 2},
    ).json()

    start = client.post("/session/start", json={"roles": ["admin"], "record_id": created["id"]})
    sid = start.json()["session_id"]
    wizard = start.json()["wizard"]
    assert wizard["is_edit"] is True
    assert wizard["subject_name"] == "Maria"
    assert wizard["completed_steps"] == 3

    client.post(f"/session/{sid}/subject", json={})
    client.post(f"/session/{sid}/goto/2")
    client.post(f"/session/{sid}/next")
    sub = client.post(f"/session/{sid}/submit").json()
    assert sub["changed"] is False
    assert sub["message"] == "No changes were made to this risk assessment."


def test_unknown_session_and_record(tmp_path, monkeypatch):
    _storage, client = _configured_client(tmp_path, monkeypatch)
    assert client.get("/session/nope").status_code == 404
    assert client.post("/session/start", json={"record_id": "missing"}).status_code == 404

    sid = client.post("/session/start", json={}).json()["session_id"]
    assert client.delete(f"/session/{sid}").status_code == 200
    assert client.get(f"/session/{sid}").status_code == 404


def test_invalid_stored_configuration_is_unavailable(tmp_path, monkeypatch):
    storage, client = _configured_client(tmp_path, monkeypatch)
    storage.save_risk_thresholds({"low_threshold": 20, "moderate_threshold": 16, "high_threshold": 19})
    resp = client.post("/session/start", json={})
    assert resp.status_code == 503
    assert resp.json()["message"] == "assessment unavailable"


def _ready_session(client) -> str:
    sid = client.post("/session/start", json={"roles": ["admin"], "profile_branch_id": 2}).json()["session_id"]
    client.post(f"/session/{sid}/subject", json={"subject_name": "Juan"})
    _walk(client, sid, ["B", "D", "F"])
    assert client.post(f"/session/{sid}/next").json()["wizard"]["state"] == "ready_to_review"
    return sid


def test_submit_keeps_session_thresholds(tmp_path, monkeypatch):
    storage, client = _configured_client(tmp_path, monkeypatch)
    sid = _ready_session(client)
    assert client.get(f"/session/{sid}/result").json()["risk_tier"] == "LOW RISK"

    tightened = {"thresholds": {"low_threshold": 1, "moderate_threshold": 2, "high_threshold": 3}}
    assert client.post("/admin/risk-thresholds", json=tightened).status_code == 200

    out = client.post(f"/session/{sid}/submit").json()
    assert out["result"]["risk_tier"] == "LOW RISK"
    stored = storage.load_assessment(out["record_id"])
    assert (stored["total_score"], stored["risk_tier"]) == (8, "LOW RISK")

    # direct record requests still score against the live configuration
    direct = client.post(
        "/admin/assessments", json={"subject_name": "Maria", "selected_option_ids": ["B", "D", "F"], "branch_id": 2}
    ).json()
    assert direct["risk_tier"] == "HIGH RISK"


def test_submit_survives_option_removed_mid_session(tmp_path, monkeypatch):
    storage, client = _configured_client(tmp_path, monkeypatch)
    sid = _ready_session(client)

    trimmed = build_synthetic_criteria()
    trimmed[2]["options"] = [o for o in trimmed[2]["options"] if o["id"] != "F"]
    assert client.put("/admin/risk-settings/criteria", json=trimmed).status_code == 200

    sub = client.post(f"/session/{sid}/submit")
    assert sub.status_code == 200, sub.text
    stored = storage.load_assessment(sub.json()["record_id"])
    assert stored["selected_option_ids"] == ["B", "D", "F"]
    assert stored["total_score"] == 8


def test_corrupt_settings_are_unavailable_and_kept(tmp_path, monkeypatch):
    storage, client = _configured_client(tmp_path, monkeypatch)
    storage.SETTINGS_PATH.write_text("{not json", encoding="utf-8")

    resp = client.post("/session/start", json={})
    assert resp.status_code == 503
    assert resp.json()["message"] == "assessment unavailable"

    saved = client.post("/admin/risk-settings/selection-config", json={"config": {"3": "multiple"}})
    assert saved.status_code == 503
    assert storage.SETTINGS_PATH.read_text(encoding="utf-8") == "{not json"
