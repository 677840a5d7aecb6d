"""Utility helpers for persisting session results and progress history.

Simple JSON files on disk keep the API stateless across restarts; a real
deployment swaps this module for a database-backed recorder.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from judge_core.progress import ProgressRecorder
from judge_core.types import SessionSummary

log = logging.getLogger(__name__)

DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
RESULTS_DIR = DATA_ROOT / "results"
RESULT_INDEX_PATH = DATA_ROOT / "results_index.json"
PROGRESS_DIR = DATA_ROOT / "progress"

_LOCK = threading.Lock()
_SAFE_ID_RX = re.compile(r"[^A-Za-z0-9_.-]+")


def _ensure_dirs() -> None:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    PROGRESS_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("could not read %s: %s", path, e)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _safe(name: str) -> str:
    return _SAFE_ID_RX.sub("_", name) or "_"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def save_result(session_id: str, result: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    """Persist the finished session JSON and its index metadata."""

    _ensure_dirs()
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
        index[session_id] = metadata
        _write_json(RESULT_INDEX_PATH, index)

    _write_json(RESULTS_DIR / f"{_safe(session_id)}.json", result)


def load_result(session_id: str) -> Optional[Dict[str, Any]]:
    path = RESULTS_DIR / f"{_safe(session_id)}.json"
    if not path.exists():
        return None
    return _read_json(path, None)


def list_results_for_user(user_id: str) -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for sid, meta in index.items():
        if meta.get("userId") == user_id:
            item = {"id": sid}
            item.update({k: v for k, v in meta.items() if k != "id"})
            out.append(item)
    out.sort(key=lambda r: r.get("createdAt", ""), reverse=True)
    return out


class JsonProgressRecorder(ProgressRecorder):
    """One JSON list of summaries per user under ``DATA_DIR/progress``."""

    name = "json"

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else PROGRESS_DIR

    def _path(self, user_id: Optional[str]) -> Path:
        return self.root / f"{_safe(user_id or 'anonymous')}.json"

    def record(self, summary: SessionSummary) -> None:
        path = self._path(summary.user_id)
        with _LOCK:
            rows: List[Dict[str, Any]] = _read_json(path, [])
            rows.append(summary.to_dict())
            _write_json(path, rows)

    def history(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = _read_json(self._path(user_id), [])
        rows.sort(key=lambda r: r.get("timestamp", ""))
        return rows
