from __future__ import annotations

import importlib
import os
import sys

from fastapi.testclient import TestClient

from judge_core.audit_export import FIELDS


_DEF_MODULES = [
    "judge_core.config",
    "api.storage",
    "api.app",
]


def _reload_app(tmp_path) -> tuple[object, object]:
    os.environ["DATA_DIR"] = str(tmp_path)
    for name in _DEF_MODULES:
        if name in sys.modules:
            importlib.reload(sys.modules[name])
        else:
            __import__(name)
    storage = sys.modules["api.storage"]
    app_module = sys.modules["api.app"]
    return storage, app_module


def _clear_backends(monkeypatch):
    for key in ("JUDGE_BACKEND", "HINT_BACKEND", "PROVISIONER_BACKEND", "SEED"):
        monkeypatch.delenv(key, raising=False)


def test_quiz_flow_persists_result_and_progress(tmp_path, monkeypatch):
    _clear_backends(monkeypatch)
    _storage, app_module = _reload_app(tmp_path / "quiz")

    with TestClient(app_module.app) as client:
        start = client.post("/session/start", json={"mode": "MCQ", "num_items": 3, "user_id": "u1"})
        assert start.status_code == 200
        body = start.json()
        sid = body["session_id"]
        assert body["status"] == "active"
        assert body["total_items"] == 3
        assert "correct_answer" not in body["item"]

        key = [q.correct_answer for q in app_module.SESS[sid].items]
        snap = None
        for answer in key:
            resp = client.post(f"/session/{sid}/answer", json={"option": answer})
            assert resp.status_code == 200
            snap = resp.json()
        assert snap["status"] == "completed"
        assert snap["score"] == 3
        assert sid not in app_module.SESS

        stored = client.get(f"/session/{sid}")
        assert stored.status_code == 200
        assert stored.json()["summary"]["score"] == 3
        assert "audit_events" not in stored.json()

        listed = client.get("/users/u1/results").json()["results"]
        assert [r["id"] for r in listed] == [sid]

        progress = client.get("/users/u1/progress").json()
        assert progress["stats"]["sessions_taken"] == 1
        assert progress["stats"]["overall_accuracy"] == 100
        assert progress["insight"]


def test_coding_flow_with_audit_exports(tmp_path, monkeypatch):
    _clear_backends(monkeypatch)
    _storage, app_module = _reload_app(tmp_path / "coding")

    with TestClient(app_module.app) as client:
        start = client.post("/session/start", json={"mode": "Coding", "num_items": 1, "difficulty": "Easy"})
        assert start.status_code == 200
        sid = start.json()["session_id"]
        problem = app_module.SESS[sid].items[0]
        starter = problem.starter_code["python"]
        solution = problem.solution["python"]

        ran = client.post(f"/session/{sid}/run", json={"language": "python", "code": solution})
        assert ran.status_code == 200
        assert ran.json()["stale"] is False
        assert len(ran.json()["results"]) == len(problem.examples)
        assert all(r["passed"] for r in ran.json()["results"])

        failed = client.post(f"/session/{sid}/submit", json={"language": "python", "code": starter})
        assert failed.status_code == 200
        assert failed.json()["outcome"]["status"] != "Accepted"
        assert failed.json()["outcome"]["failed_input"]

        hint = client.post(f"/session/{sid}/hint", json={"kind": "explain"})
        assert hint.status_code == 200
        assert hint.json()["hint"]

        solved = client.post(f"/session/{sid}/submit", json={"language": "python", "code": solution})
        assert solved.json()["outcome"]["status"] == "Accepted"

        json_resp = client.get(f"/session/{sid}/audit.json")
        assert json_resp.status_code == 200
        events = json_resp.json()["events"]
        assert events, "expected at least one audit event"
        assert set(FIELDS).issubset(events[0].keys())

        runs = client.get(f"/session/{sid}/audit.json", params={"mode": "run"}).json()
        assert {e["mode"] for e in runs["events"]} == {"run"}
        assert runs["status_counts"] == {"Accepted": len(problem.examples)}

        end = client.post(f"/session/{sid}/end")
        assert end.status_code == 200
        assert end.json()["score"] == 1
        assert end.json()["review"][0]["solved"] is True

        csv_resp = client.get(f"/session/{sid}/audit.csv")
        assert csv_resp.status_code == 200
        csv_lines = [line for line in csv_resp.text.strip().splitlines() if line]
        assert len(csv_lines) == len(events) + 1
        header = csv_lines[0].split(",")
        assert header[0] == "t"
        assert header[-1] == "memory_used"


def test_error_mapping(tmp_path, monkeypatch):
    _clear_backends(monkeypatch)
    _storage, app_module = _reload_app(tmp_path / "errors")

    with TestClient(app_module.app) as client:
        assert client.post("/session/start", json={"mode": "Essay"}).status_code == 400

        refused = client.post(
            "/session/start",
            json={"mode": "Coding", "source_material": "Banana bread needs ripe bananas, flour and butter."},
        )
        assert refused.status_code == 422

        assert client.get("/session/missing").status_code == 404

        sid = client.post("/session/start", json={"mode": "Coding", "num_items": 1}).json()["session_id"]
        assert client.post(f"/session/{sid}/answer", json={"option": "A"}).status_code == 409
        assert client.post(f"/session/{sid}/hint", json={"kind": "hint"}).status_code == 409
        assert client.post(f"/session/{sid}/select", json={"index": 9}).status_code == 400
        bad_lang = client.post(f"/session/{sid}/run", json={"language": "cobol", "code": "x"})
        assert bad_lang.status_code == 400


def test_audit_exports_disabled(tmp_path, monkeypatch):
    _clear_backends(monkeypatch)
    monkeypatch.setenv("AUDIT_EXPORT_ENABLED", "0")
    storage, app_module = _reload_app(tmp_path / "disabled")

    payload = {
        "status": "completed",
        "audit_events": [
            {
                "t": "2026-01-01T00:00:00+00:00",
                "mode": "submit",
                "item_index": 0,
                "problem_id": "sum-two-integers",
                "case_index": 0,
                "status": "Accepted",
                "passed": True,
                "elapsed_time": 0.02,
                "memory_used": 9100,
            }
        ],
    }
    session_id = "audit-disabled"
    storage.save_result(session_id, payload, {"sessionId": session_id, "userId": "u1"})

    client = TestClient(app_module.app)

    json_resp = client.get(f"/session/{session_id}/audit.json")
    csv_resp = client.get(f"/session/{session_id}/audit.csv")
    assert json_resp.status_code == 404
    assert csv_resp.status_code == 404

    monkeypatch.setenv("AUDIT_EXPORT_ENABLED", "1")
    _storage, app_module = _reload_app(tmp_path / "disabled")
    client = TestClient(app_module.app)
    resp = client.get(f"/session/{session_id}/audit.json")
    assert resp.status_code == 200
    assert resp.json()["events"][0]["problem_id"] == "sum-two-integers"
