"""Session summaries after completion, and the stats derived from them."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Union

from . import config
from .llm_bridge import chat_text
from .types import SessionSummary

log = logging.getLogger(__name__)

SummaryLike = Union[SessionSummary, Dict[str, Any]]


class ProgressRecorder:
    """Sink for completed sessions. ``record`` is fire-and-forget for callers."""

    name = "abstract"

    def record(self, summary: SessionSummary) -> None:
        raise NotImplementedError

    def history(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return []


class InMemoryProgressRecorder(ProgressRecorder):
    name = "memory"

    def __init__(self) -> None:
        self.summaries: List[SessionSummary] = []

    def record(self, summary: SessionSummary) -> None:
        self.summaries.append(summary)
        log.info("recorded %s session: %d/%d", summary.mode.value, summary.score, summary.total)

    def history(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.summaries if user_id is None or s.user_id == user_id]


def _as_dict(s: SummaryLike) -> Dict[str, Any]:
    return s.to_dict() if isinstance(s, SessionSummary) else dict(s)


def _pct(score: float, total: float) -> int:
    return int(round(100.0 * score / total)) if total > 0 else 0


def progress_stats(history: List[SummaryLike]) -> Dict[str, Any]:
    """Accuracy overview in chronological order of ``timestamp``.

    ``overall_accuracy`` weights every item equally across sessions; the
    ``series`` holds one percentage per session for charting.
    """

    rows = sorted((_as_dict(h) for h in history), key=lambda r: str(r.get("timestamp", "")))
    if not rows:
        return {
            "overall_accuracy": 0,
            "sessions_taken": 0,
            "last_score": None,
            "weakest_topic": None,
            "series": [],
        }

    total_score = sum(int(r.get("score", 0)) for r in rows)
    total_items = sum(int(r.get("total", 0)) for r in rows)
    last = rows[-1]

    by_topic: Dict[str, List[int]] = defaultdict(lambda: [0, 0])
    for r in rows:
        acc = by_topic[str(r.get("topic") or "General")]
        acc[0] += int(r.get("score", 0))
        acc[1] += int(r.get("total", 0))
    weakest = min(by_topic.items(), key=lambda kv: (_pct(*kv[1]), kv[0]))[0]

    return {
        "overall_accuracy": _pct(total_score, total_items),
        "sessions_taken": len(rows),
        "last_score": f"{int(last.get('score', 0))}/{int(last.get('total', 0))}",
        "weakest_topic": weakest,
        "series": [
            {
                "x": i,
                "y": _pct(int(r.get("score", 0)), int(r.get("total", 0))),
                "mode": r.get("mode"),
                "topic": r.get("topic"),
                "timestamp": r.get("timestamp"),
            }
            for i, r in enumerate(rows)
        ],
    }


_INSIGHT_PROMPT = """You are an encouraging learning coach. Based on the following performance summary, write a short, motivational and insightful message (2-3 sentences). Highlight improvements and suggest a focus area. End with a positive emoji.

Summary:
---
Sessions taken: {sessions}
Overall accuracy: {accuracy}%
Recent scores: {recent}
Weakest topic: {weakest}
---"""


async def progress_insight(
    stats: Dict[str, Any],
    *,
    backend: str = "static",
    client: Optional[Any] = None,
    model: Optional[str] = None,
) -> str:
    """Motivational line for the progress page; PROGRESS_FALLBACK whenever the model is unavailable."""

    if backend != "azure" or not stats.get("sessions_taken"):
        return config.PROGRESS_FALLBACK
    recent = ", ".join(f"{p['y']}%" for p in stats.get("series", [])[-5:])
    prompt = _INSIGHT_PROMPT.format(
        sessions=stats.get("sessions_taken"),
        accuracy=stats.get("overall_accuracy"),
        recent=recent or "n/a",
        weakest=stats.get("weakest_topic") or "n/a",
    )
    try:
        text = await chat_text("You coach students.", prompt, kind="insight", temperature=0.7, cli=client, model=model)
    except Exception as e:
        log.warning("progress insight failed: %s", e)
        return config.PROGRESS_FALLBACK
    return text.strip() or config.PROGRESS_FALLBACK


__all__ = ["ProgressRecorder", "InMemoryProgressRecorder", "progress_stats", "progress_insight"]
