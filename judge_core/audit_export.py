"""Export a session's judge-call trail (one event per judged case) as JSON or CSV."""
from __future__ import annotations

import csv
import io
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional

FIELDS: tuple[str, ...] = (
    "t",
    "mode",
    "item_index",
    "problem_id",
    "case_index",
    "status",
    "passed",
    "elapsed_time",
    "memory_used",
)


def _as(cast: Callable[[Any], Any], default: Any) -> Callable[[Any], Any]:
    def convert(val: Any) -> Any:
        try:
            return cast(val)
        except (TypeError, ValueError):
            return default
    return convert


# grade events carry no case index, hence -1
_COERCE: Dict[str, Callable[[Any], Any]] = {
    "item_index": _as(int, 0),
    "case_index": _as(int, -1),
    "memory_used": _as(int, 0),
    "elapsed_time": _as(float, 0.0),
    "passed": bool,
}


def _text(val: Any) -> str:
    return "" if val is None else str(val)


def _rows(events: Iterable[Optional[Dict[str, Any]]], mode: Optional[str]) -> List[Dict[str, Any]]:
    rows = []
    for evt in events:
        evt = evt or {}
        if mode and evt.get("mode") != mode:
            continue
        rows.append({key: _COERCE.get(key, _text)(evt.get(key)) for key in FIELDS})
    return rows


def to_json(events: Iterable[Dict[str, Any]], mode: Optional[str] = None) -> Dict[str, Any]:
    """Events plus a per-status tally; ``mode`` keeps only "run", "submit" or "grade" events."""

    rows = _rows(events, mode)
    return {"events": rows, "status_counts": dict(Counter(r["status"] for r in rows))}


def to_csv(events: Iterable[Dict[str, Any]], mode: Optional[str] = None) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=FIELDS)
    writer.writeheader()
    writer.writerows(_rows(events, mode))
    return buf.getvalue()


__all__ = ["FIELDS", "to_json", "to_csv"]
