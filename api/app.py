from __future__ import annotations
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import logging, os, typing as t

# ---- Engine imports ----
from judge_core.session import AssessmentSession
from judge_core.config import load_config, get_backend, AUDIT_EXPORT_ENABLED
from judge_core.audit_export import to_json as audit_to_json, to_csv as audit_to_csv
from judge_core.errors import ProvisioningFailure, SessionStateError
from judge_core.hints import build_hint_advisor
from judge_core.judge import build_judge
from judge_core.progress import progress_insight, progress_stats
from judge_core.provisioner import build_provisioner
from judge_core.types import SessionMode
from .storage import JsonProgressRecorder, list_results_for_user, load_result, save_result, utcnow_iso

log = logging.getLogger(__name__)

CFG = load_config()

JUDGE = build_judge(CFG)
ADVISOR = build_hint_advisor(CFG)
PROVISIONER = build_provisioner(CFG)
RECORDER = JsonProgressRecorder()

SESS: dict[str, AssessmentSession] = {}

app = FastAPI(title="Code Judge API")


@app.get("/")
def root():
    return {"status": "ok", "service": "code-judge-api"}


ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,  # keep False unless you use cookies
)


@app.exception_handler(SessionStateError)
async def _session_state(_req: Request, exc: SessionStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ProvisioningFailure)
async def _provisioning(_req: Request, exc: ProvisioningFailure):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ---- Schemas ----
class StartReq(BaseModel):
    mode: str                       # "MCQ" | "Coding"
    source_material: str = ""
    difficulty: str | None = None   # "Easy" | "Medium" | "Hard"
    num_items: int | None = None
    time_limit_min: float | None = None
    user_id: str | None = None

class AnswerReq(BaseModel):
    option: str | None = None
    action: str = "submit"          # "submit" | "select" | "previous"

class SelectReq(BaseModel):
    index: int

class CodeReq(BaseModel):
    language: str
    code: str

class HintReq(BaseModel):
    kind: str = "hint"              # "hint" | "explain"


# ---- Helpers ----
def _mode(raw: str) -> SessionMode:
    for m in SessionMode:
        if raw.strip().lower() == m.value.lower():
            return m
    raise HTTPException(400, f"unknown mode {raw!r}")


def _persist(sess: AssessmentSession) -> None:
    result = sess.snapshot()
    result["audit_events"] = list(sess.audit_events)
    result["created_at"] = utcnow_iso()
    metadata = {
        "sessionId": sess.session_id,
        "userId": sess.user_id,
        "createdAt": result["created_at"],
        "mode": sess.mode.value,
        "topic": sess.topic,
        "score": sess.score,
        "total": sess.total,
    }
    save_result(sess.session_id, result, metadata)
    SESS.pop(sess.session_id, None)
    log.info("saved result for session %s (%s/%s)", sess.session_id, sess.score, sess.total)


def _get(sid: str) -> AssessmentSession:
    sess = SESS.get(sid)
    if not sess:
        raise HTTPException(404, "session not found")
    return sess


def _audit_events(sid: str) -> list[dict[str, t.Any]]:
    if not AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")
    sess = SESS.get(sid)
    if sess is not None:
        return list(sess.audit_events)
    stored = load_result(sid)
    if not stored:
        raise HTTPException(404, "session not found")
    return stored.get("audit_events") or []


# ---- Health ----
@app.get("/health")
def health():
    return {
        "judge_backend": get_backend(CFG, "JUDGE_BACKEND"),
        "hint_backend": get_backend(CFG, "HINT_BACKEND"),
        "provisioner_backend": get_backend(CFG, "PROVISIONER_BACKEND"),
        "active_sessions": len(SESS),
        "azure_config_present": all(os.getenv(k) for k in [
            "AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_KEY","AZURE_OPENAI_API_VERSION","AZURE_OPENAI_DEPLOYMENT"
        ])
    }


# ---- Session lifecycle ----
@app.post("/session/start")
async def start(req: StartReq):
    sess = AssessmentSession(
        _mode(req.mode),
        provisioner=PROVISIONER,
        judge=JUDGE,
        advisor=ADVISOR,
        recorder=RECORDER,
        user_id=req.user_id,
        on_complete=_persist,
    )
    os.environ["RUN_ID"] = f"web_{sess.session_id}"
    await sess.start(
        req.source_material,
        difficulty=req.difficulty,
        num_items=req.num_items,
        time_limit_min=req.time_limit_min,
    )
    SESS[sess.session_id] = sess
    return sess.snapshot()


@app.get("/session/{sid}")
def get_session(sid: str):
    sess = SESS.get(sid)
    if sess is not None:
        return sess.snapshot()
    stored = load_result(sid)
    if not stored:
        raise HTTPException(404, "session not found")
    stored.pop("audit_events", None)
    return stored


@app.post("/session/{sid}/answer")
async def answer(sid: str, req: AnswerReq):
    sess = _get(sid)
    try:
        if req.action == "previous":
            sess.previous()
        elif req.action == "select":
            if req.option is None:
                raise HTTPException(400, "option is required")
            sess.select_answer(req.option)
        elif req.action == "submit":
            sess.submit_answer(req.option)
        else:
            raise HTTPException(400, f"unknown action {req.action!r}")
    except ValueError as e:
        raise HTTPException(400, str(e))
    return sess.snapshot()


@app.post("/session/{sid}/select")
async def select(sid: str, req: SelectReq):
    sess = _get(sid)
    try:
        sess.select_item(req.index)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return sess.snapshot()


@app.post("/session/{sid}/run")
async def run(sid: str, req: CodeReq):
    sess = _get(sid)
    try:
        results = await sess.run_code(req.language, req.code)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {
        "stale": results is None,
        "results": [r.to_dict() for r in results or []],
        "session": sess.snapshot(),
    }


@app.post("/session/{sid}/submit")
async def submit(sid: str, req: CodeReq):
    sess = _get(sid)
    try:
        outcome = await sess.submit_code(req.language, req.code)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {
        "stale": outcome is None,
        "outcome": outcome.to_dict() if outcome is not None else None,
        "session": sess.snapshot(),
    }


@app.post("/session/{sid}/hint")
async def hint(sid: str, req: HintReq):
    sess = _get(sid)
    try:
        text = await sess.request_hint(req.kind)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"kind": req.kind, "hint": text}


@app.post("/session/{sid}/end")
async def end(sid: str):
    sess = _get(sid)
    sess.end_session()
    return sess.snapshot()


@app.get("/session/{sid}/audit.json")
def get_audit_json(sid: str, mode: t.Optional[str] = None):
    payload = audit_to_json(_audit_events(sid), mode=mode)
    return {"session_id": sid, **payload}


@app.get("/session/{sid}/audit.csv")
def get_audit_csv(sid: str, mode: t.Optional[str] = None):
    body = audit_to_csv(_audit_events(sid), mode=mode)
    filename = f"{sid}_audit.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


# ---- Users ----
@app.get("/users/{user_id}/results")
def list_results(user_id: str):
    return {"results": list_results_for_user(user_id)}


@app.get("/users/{user_id}/progress")
async def progress(user_id: str):
    stats = progress_stats(RECORDER.history(user_id))
    insight = await progress_insight(stats, backend=get_backend(CFG, "HINT_BACKEND"))
    return {"user_id": user_id, "stats": stats, "insight": insight}

