"""AssessmentSession: one timed MCQ quiz or coding test from provisioning to summary.

States run idle -> provisioning -> active -> completed; error is reachable
from provisioning and active. Only the transition methods below assign to
session state. Judge work is awaited, and any result that resolves after the
session has left the state it was issued in is dropped.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from . import config
from .errors import ProvisioningFailure, SessionStateError
from .evaluators import failing_case_from, run_against_examples, submit
from .hints import HintAdvisor, StaticHintAdvisor, explain_failure, safe_hint
from .judge import HeuristicJudge, Judge
from .progress import ProgressRecorder
from .provisioner import BankProvisioner, ProblemProvisioner
from .scoring import is_correct, score_coding, score_mcq
from .timer import SessionTimer
from .types import (
    CodingProblem,
    Language,
    QuizQuestion,
    SessionMode,
    SessionStatus,
    SessionSummary,
    SubmissionOutcome,
    TestCaseResult,
)

log = logging.getLogger(__name__)

Item = Union[QuizQuestion, CodingProblem]


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _language(value: Any) -> Language:
    try:
        return value if isinstance(value, Language) else Language(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"unsupported language {value!r}") from None


def _topic_from(source_material: str, fallback: str) -> str:
    for line in (source_material or "").splitlines():
        line = line.strip().lstrip("#").strip()
        if line:
            return line[:60]
    return fallback


class AssessmentSession:
    def __init__(
        self,
        mode: Union[SessionMode, str],
        *,
        provisioner: Optional[ProblemProvisioner] = None,
        judge: Optional[Judge] = None,
        advisor: Optional[HintAdvisor] = None,
        recorder: Optional[ProgressRecorder] = None,
        timer: Optional[SessionTimer] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        on_complete: Optional[Callable[["AssessmentSession"], Any]] = None,
    ):
        self.mode = SessionMode(mode)
        self.provisioner = provisioner or BankProvisioner()
        self.judge = judge or HeuristicJudge()
        self.advisor = advisor or StaticHintAdvisor()
        self.recorder = recorder
        self.timer = timer or SessionTimer()
        self.user_id = user_id
        self.session_id = session_id or str(uuid.uuid4())
        self.on_complete = on_complete
        self._generation = 0
        self._clear()

    def _clear(self) -> None:
        self.status = SessionStatus.IDLE
        self.topic = ""
        self.items: List[Item] = []
        self.current_index = 0
        self.answers: Dict[int, str] = {}
        self.languages: Dict[int, Language] = {}
        self.attempts: Dict[int, int] = {}
        self.solved: Set[int] = set()
        self.outcomes: Dict[int, SubmissionOutcome] = {}
        self.results: Dict[int, List[TestCaseResult]] = {}
        self.hints: Dict[Tuple[int, int, str], str] = {}
        self._pending_hints: Dict[Tuple[int, int, str], "asyncio.Future[str]"] = {}
        self.audit_events: List[Dict[str, Any]] = []
        self.time_limit_sec = 0
        self.score: Optional[int] = None
        self.summary: Optional[SessionSummary] = None
        self.error: Optional[str] = None
        self.finished_reason: Optional[str] = None
        self.started_at: Optional[str] = None

    # ---- read side ----
    @property
    def current_item(self) -> Optional[Item]:
        if not self.items:
            return None
        return self.items[self.current_index]

    @property
    def time_remaining(self) -> int:
        if self.status is SessionStatus.ACTIVE:
            return self.timer.remaining
        return 0

    @property
    def last_outcome(self) -> Optional[SubmissionOutcome]:
        return self.outcomes.get(self.current_index)

    @property
    def last_results(self) -> List[TestCaseResult]:
        return self.results.get(self.current_index, [])

    @property
    def total(self) -> int:
        return len(self.items)

    def _require(self, mode: Optional[SessionMode] = None) -> None:
        if self.status is not SessionStatus.ACTIVE:
            raise SessionStateError(f"session is {self.status.value}, not active")
        if mode is not None and self.mode is not mode:
            raise SessionStateError(f"not available in a {self.mode.value} session")

    def _live(self, generation: int) -> bool:
        return generation == self._generation and self.status is SessionStatus.ACTIVE

    # ---- lifecycle ----
    async def start(
        self,
        source_material: str = "",
        *,
        difficulty: Any = None,
        num_items: Optional[int] = None,
        time_limit_min: Optional[float] = None,
    ) -> None:
        """Provision items and start the clock; ProvisioningFailure leaves the session in error."""

        if self.status is not SessionStatus.IDLE:
            raise SessionStateError(f"cannot start a session that is {self.status.value}")
        coding = self.mode is SessionMode.CODING
        if num_items is None:
            num_items = config.DEFAULT_NUM_PROBLEMS if coding else config.DEFAULT_NUM_QUESTIONS
        if time_limit_min is None:
            time_limit_min = config.CODING_TIME_LIMIT_MIN if coding else config.DEFAULT_TIME_LIMIT_MIN

        self.status = SessionStatus.PROVISIONING
        generation = self._generation
        log.info("session %s provisioning %d %s item(s)", self.session_id, num_items, self.mode.value)
        try:
            if coding:
                if source_material and not await self.provisioner.is_programming_topic(source_material):
                    raise ProvisioningFailure("the source material is not about programming")
                items: List[Item] = list(await self.provisioner.generate(source_material, difficulty, num_items))
                topic = _topic_from(source_material, "Coding Practice")
            else:
                quiz = await self.provisioner.generate_quiz(source_material, num_items)
                items = list(quiz.questions)
                topic = quiz.topic
            if not items:
                raise ProvisioningFailure("the provisioner returned no items")
            if coding and any(not p.test_cases or not p.examples for p in items):
                raise ProvisioningFailure("every coding problem needs examples and hidden test cases")
        except ProvisioningFailure as e:
            if generation == self._generation:
                self._fail(str(e))
            raise
        except Exception as e:
            if generation == self._generation:
                self._fail(f"provisioning failed: {e}")
            raise ProvisioningFailure(f"provisioning failed: {e}") from e

        if generation != self._generation or self.status is not SessionStatus.PROVISIONING:
            log.info("session %s was reset while provisioning; dropping items", self.session_id)
            return

        self.items = items
        self.topic = topic
        self.current_index = 0
        self.time_limit_sec = max(1, int(round(float(time_limit_min) * 60)))
        self.started_at = _utcnow_iso()
        self.status = SessionStatus.ACTIVE
        self.timer.start(self.time_limit_sec, self.on_timeout)
        log.info("session %s active: %d item(s), %ss", self.session_id, len(items), self.time_limit_sec)

    def _fail(self, message: str) -> None:
        self.timer.stop()
        self._clear()
        self.status = SessionStatus.ERROR
        self.error = message
        log.warning("session %s error: %s", self.session_id, message)

    def reset(self) -> None:
        """Back to a fresh idle session; anything still in flight is discarded."""

        self.timer.stop()
        self._generation += 1
        self._clear()

    def on_timeout(self) -> None:
        if self.status is not SessionStatus.ACTIVE:
            return
        log.info("session %s timed out", self.session_id)
        self._complete("timeout")

    def end_session(self) -> SessionSummary:
        self._require()
        return self._complete("ended")

    def _grade(self) -> int:
        if self.mode is SessionMode.MCQ:
            for idx, q in enumerate(self.items):
                answer = self.answers.get(idx)
                status = "Unanswered" if answer is None else ("Correct" if is_correct(q, answer) else "Incorrect")
                self.audit_events.append(
                    {
                        "t": _utcnow_iso(),
                        "mode": "grade",
                        "item_index": idx,
                        "problem_id": "",
                        "case_index": "",
                        "status": status,
                        "passed": status == "Correct",
                    }
                )
            return score_mcq(self.items, self.answers)
        return score_coding(len(self.items), self.solved)

    def _complete(self, reason: str) -> SessionSummary:
        self.timer.stop()
        self.status = SessionStatus.COMPLETED
        self.finished_reason = reason
        self.score = self._grade()
        self.summary = SessionSummary(
            mode=self.mode,
            score=self.score,
            total=len(self.items),
            topic=self.topic,
            timestamp=_utcnow_iso(),
            problem_ids=[p.id for p in self.items if isinstance(p, CodingProblem)],
            user_id=self.user_id,
            time_taken=self.timer.elapsed,
        )
        log.info("session %s completed (%s): %d/%d", self.session_id, reason, self.score, len(self.items))
        if self.recorder is not None:
            try:
                self.recorder.record(self.summary)
            except Exception as e:  # completion stands even if recording fails
                log.warning("progress recorder %s failed: %s", self.recorder.name, e)
        if self.on_complete is not None:
            try:
                self.on_complete(self)
            except Exception as e:
                log.warning("completion hook failed for session %s: %s", self.session_id, e)
        return self.summary

    # ---- MCQ ----
    def _check_option(self, option: str) -> str:
        q = self.current_item
        if option not in q.options:
            raise ValueError(f"{option!r} is not one of the options")
        return option

    def select_answer(self, option: str) -> None:
        self._require(SessionMode.MCQ)
        self.answers[self.current_index] = self._check_option(option)

    def submit_answer(self, option: Optional[str] = None) -> bool:
        """Record ``option`` for the current question and advance; True once the quiz is graded."""

        self._require(SessionMode.MCQ)
        if option is not None:
            self.answers[self.current_index] = self._check_option(option)
        if self.current_index >= len(self.items) - 1:
            self._complete("submitted")
            return True
        self.current_index += 1
        return False

    def previous(self) -> None:
        self._require(SessionMode.MCQ)
        if self.current_index > 0:
            self.current_index -= 1

    # ---- Coding ----
    def select_item(self, index: int) -> None:
        self._require(SessionMode.CODING)
        if not 0 <= int(index) < len(self.items):
            raise ValueError(f"problem index {index} out of range 0..{len(self.items) - 1}")
        self.current_index = int(index)

    def _audit(self, idx: int, trace: List[Dict[str, Any]]) -> None:
        for event in trace:
            event["item_index"] = idx
            self.audit_events.append(event)

    async def run_code(self, language: Any, code: str) -> Optional[List[TestCaseResult]]:
        """Visible examples only; never affects the score. None when the result went stale."""

        self._require(SessionMode.CODING)
        lang = _language(language)
        idx, generation = self.current_index, self._generation
        problem: CodingProblem = self.items[idx]
        self.answers[idx] = code
        self.languages[idx] = lang
        trace: List[Dict[str, Any]] = []
        try:
            results = await run_against_examples(self.judge, problem, lang, code, trace=trace)
        except Exception as e:
            if self._live(generation):
                self._fail(f"run failed on {problem.id}: {e}")
            raise
        if not self._live(generation):
            log.info("session %s: dropping stale run result for %s", self.session_id, problem.id)
            return None
        self.results[idx] = results
        self._audit(idx, trace)
        return results

    async def submit_code(self, language: Any, code: str) -> Optional[SubmissionOutcome]:
        """Scoring submission against the hidden cases. None when the result went stale."""

        self._require(SessionMode.CODING)
        lang = _language(language)
        idx, generation = self.current_index, self._generation
        problem: CodingProblem = self.items[idx]
        self.answers[idx] = code
        self.languages[idx] = lang
        self.attempts[idx] = self.attempts.get(idx, 0) + 1
        trace: List[Dict[str, Any]] = []
        try:
            outcome = await submit(self.judge, problem, lang, code, trace=trace)
        except Exception as e:
            if self._live(generation):
                self._fail(f"submission failed on {problem.id}: {e}")
            raise
        if not self._live(generation):
            log.info("session %s: dropping stale submission for %s", self.session_id, problem.id)
            return None
        self.outcomes[idx] = outcome
        self._audit(idx, trace)
        if outcome.accepted:
            self.solved.add(idx)
        log.info("session %s: %s -> %s", self.session_id, problem.id, outcome.status.value)
        return outcome

    async def request_hint(self, kind: str = "hint") -> Optional[str]:
        """Explanation or hint for the current problem's failed submission, once per attempt."""

        self._require(SessionMode.CODING)
        if kind not in ("hint", "explain"):
            raise ValueError(f"unknown hint kind {kind!r}")
        if not config.HINTS_ENABLED:
            raise SessionStateError("hints are disabled")
        idx, generation = self.current_index, self._generation
        outcome = self.outcomes.get(idx)
        if outcome is None or not outcome.is_failure:
            raise SessionStateError("hints are available after a failed submission")
        key = (idx, self.attempts.get(idx, 0), kind)
        if key in self.hints:
            return self.hints[key]
        pending = self._pending_hints.get(key)
        if pending is None:
            # concurrent requests for the same attempt share one advisor call
            pending = asyncio.ensure_future(self._advise(kind, self.items[idx], self.answers.get(idx, ""), outcome))
            self._pending_hints[key] = pending
        text = await asyncio.shield(pending)
        self._pending_hints.pop(key, None)
        if not self._live(generation):
            return None
        self.hints[key] = text
        return text

    async def _advise(self, kind: str, problem: CodingProblem, code: str, outcome: SubmissionOutcome) -> str:
        if kind == "explain":
            return await explain_failure(self.advisor, problem, code, outcome) or config.HINT_FALLBACK
        return await safe_hint(self.advisor, problem, code, failing_case_from(problem, outcome))

    # ---- boundary ----
    def _review(self) -> List[Dict[str, Any]]:
        out = []
        for idx, item in enumerate(self.items):
            if isinstance(item, QuizQuestion):
                out.append(
                    {
                        "question_text": item.question_text,
                        "options": list(item.options),
                        "your_answer": self.answers.get(idx),
                        "correct_answer": item.correct_answer,
                        "correct": is_correct(item, self.answers.get(idx)),
                        "explanation": item.explanation,
                    }
                )
            else:
                out.append(
                    {
                        "id": item.id,
                        "title": item.title,
                        "solved": idx in self.solved,
                        "attempts": self.attempts.get(idx, 0),
                        "solution": dict(item.solution),
                    }
                )
        return out

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe view for a UI; hidden cases, answer keys and solutions stay out until completion."""

        item = self.current_item
        hint = None
        if self.mode is SessionMode.CODING:
            attempt = self.attempts.get(self.current_index, 0)
            hint = self.hints.get((self.current_index, attempt, "explain")) or self.hints.get(
                (self.current_index, attempt, "hint")
            )
        out: Dict[str, Any] = {
            "session_id": self.session_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "topic": self.topic,
            "current_index": self.current_index,
            "total_items": len(self.items),
            "time_limit": self.time_limit_sec,
            "time_remaining": self.time_remaining,
            "item": item.public_view() if item is not None and self.status is SessionStatus.ACTIVE else None,
            "selected_answer": self.answers.get(self.current_index) if self.mode is SessionMode.MCQ else None,
            "code": self.answers.get(self.current_index) if self.mode is SessionMode.CODING else None,
            "solved": sorted(self.solved),
            "attempts": {str(k): v for k, v in self.attempts.items()},
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
            "last_results": [r.to_dict() for r in self.last_results],
            "hint": hint,
            "error": self.error,
            "score": self.score,
        }
        if self.status is SessionStatus.COMPLETED:
            out["summary"] = self.summary.to_dict() if self.summary else None
            out["review"] = self._review()
        return out


__all__ = ["AssessmentSession"]
