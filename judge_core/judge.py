"""Judge backends: classify one (language, source, stdin, expected) tuple.

Every backend applies the same precedence chain (compile, runtime, time
limit, output comparison) and returns a SubmissionOutcome. Backend failures
never escape ``evaluate``: they become a Runtime Error outcome with a
diagnostic in ``stderr`` so a session can always make progress.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from . import config, heuristics
from .errors import JudgeBackendFailure
from .llm_bridge import chat_json
from .types import OutcomeStatus, SubmissionOutcome

log = logging.getLogger(__name__)


def _normalize_language(language: Any) -> str:
    return str(getattr(language, "value", language) or "").lower().strip()


def compare_output(stdout: str, stdin: str, expected_output: str, **telemetry: Any) -> SubmissionOutcome:
    """Rule 4 of the chain: trimmed stdout against trimmed expected output."""

    actual = (stdout or "").strip()
    if actual == (expected_output or "").strip():
        return SubmissionOutcome(status=OutcomeStatus.ACCEPTED, stdout=actual, **telemetry)
    return SubmissionOutcome(
        status=OutcomeStatus.WRONG_ANSWER,
        stdout=actual,
        failed_input=stdin,
        expected_output=expected_output,
        **telemetry,
    )


def backend_failure(reason: str) -> SubmissionOutcome:
    return SubmissionOutcome(status=OutcomeStatus.RUNTIME_ERROR, stderr=f"Judge backend failure: {reason}")


class Judge:
    """Interface every backend implements; callers only depend on this."""

    name = "abstract"

    async def evaluate(
        self, language: Any, source_code: str, stdin: str, expected_output: str
    ) -> SubmissionOutcome:
        raise NotImplementedError


class HeuristicJudge(Judge):
    """Pattern-matching judge; pure, so repeated calls always agree."""

    name = "heuristic"

    def __init__(self, latency_sec: float = 0.0):
        self.latency_sec = latency_sec

    def classify(self, language: str, source_code: str, stdin: str, expected_output: str) -> SubmissionOutcome:
        elapsed, memory = heuristics.synthetic_telemetry(language, source_code, stdin)

        compile_msg = heuristics.compile_error(language, source_code)
        if compile_msg:
            return SubmissionOutcome(status=OutcomeStatus.COMPILATION_ERROR, compile_output=compile_msg)

        fault = heuristics.runtime_fault(language, source_code)
        if fault:
            return SubmissionOutcome(status=OutcomeStatus.RUNTIME_ERROR, stderr=fault, elapsed_time=elapsed)

        if heuristics.non_terminating(language, source_code):
            return SubmissionOutcome(
                status=OutcomeStatus.TIME_LIMIT_EXCEEDED,
                elapsed_time=round(heuristics.TIME_LIMIT_SEC + 0.01, 2),
            )

        try:
            stdout = heuristics.simulate_stdout(language, source_code, stdin)
        except ValueError as e:
            return SubmissionOutcome(status=OutcomeStatus.RUNTIME_ERROR, stderr=str(e), elapsed_time=elapsed)

        return compare_output(stdout, stdin, expected_output, elapsed_time=elapsed, memory_used=memory)

    async def evaluate(self, language, source_code, stdin, expected_output):
        if self.latency_sec > 0:
            await asyncio.sleep(self.latency_sec)
        lang = _normalize_language(language)
        try:
            return self.classify(lang, source_code or "", stdin or "", expected_output or "")
        except Exception as e:  # a rule bug must not take the session down
            log.warning("heuristic judge failed on %s submission: %s", lang, e)
            return backend_failure(str(e))


_SYSTEM_PROMPT = (
    "You are a deterministic code judge. You never run code; you simulate compiling and running it. "
    "Apply these checks in order and stop at the first that applies: "
    "(1) the program fails to compile -> status 'Compilation Error' with compile_output; "
    "(2) running it on the given stdin raises an unhandled fault -> status 'Runtime Error' with stderr; "
    "(3) it would not terminate within 2 seconds -> status 'Time Limit Exceeded'; "
    "(4) otherwise status 'Ran' with the exact stdout the program prints. "
    "Return ONLY compact JSON with keys: status, stdout, stderr, compile_output."
)

_STATUS_ALIASES: Dict[str, Optional[OutcomeStatus]] = {
    "ran": None,
    "ok": None,
    "accepted": None,
    "wrong answer": None,
    "compilation error": OutcomeStatus.COMPILATION_ERROR,
    "compile error": OutcomeStatus.COMPILATION_ERROR,
    "runtime error": OutcomeStatus.RUNTIME_ERROR,
    "time limit exceeded": OutcomeStatus.TIME_LIMIT_EXCEEDED,
    "timeout": OutcomeStatus.TIME_LIMIT_EXCEEDED,
}


class LLMJudge(Judge):
    """Simulated execution by a chat model running with temperature 0.

    The model only reports faults and stdout; the Accepted / Wrong Answer
    decision is made here so it stays a plain string comparison.
    """

    name = "azure"

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None):
        self.client = client
        self.model = model

    def _prompt(self, language: str, source_code: str, stdin: str) -> str:
        src = (source_code or "")[: config.JUDGE_SOURCE_MAX_CHARS]
        return f"Language: {language}\n\nSource:\n{src}\n\nStdin:\n{stdin or ''}"

    def _parse(self, payload: Dict[str, Any], stdin: str, expected_output: str, telemetry: Dict[str, Any]) -> SubmissionOutcome:
        raw_status = str(payload.get("status", "")).strip().lower()
        if raw_status not in _STATUS_ALIASES:
            raise JudgeBackendFailure(f"unknown status {payload.get('status')!r}")
        status = _STATUS_ALIASES[raw_status]
        if status is OutcomeStatus.COMPILATION_ERROR:
            return SubmissionOutcome(status=status, compile_output=str(payload.get("compile_output") or ""))
        if status is OutcomeStatus.RUNTIME_ERROR:
            return SubmissionOutcome(status=status, stderr=str(payload.get("stderr") or ""), **telemetry)
        if status is OutcomeStatus.TIME_LIMIT_EXCEEDED:
            return SubmissionOutcome(status=status, elapsed_time=round(heuristics.TIME_LIMIT_SEC + 0.01, 2))
        stdout = payload.get("stdout")
        if stdout is None:
            raise JudgeBackendFailure("response carried no stdout")
        return compare_output(str(stdout), stdin, expected_output, **telemetry)

    async def evaluate(self, language, source_code, stdin, expected_output):
        lang = _normalize_language(language)
        elapsed, memory = heuristics.synthetic_telemetry(lang, source_code or "", stdin or "")
        telemetry = {"elapsed_time": elapsed, "memory_used": memory}
        try:
            payload = await chat_json(
                _SYSTEM_PROMPT,
                self._prompt(lang, source_code, stdin),
                kind="judge",
                cli=self.client,
                model=self.model,
            )
            return self._parse(payload, stdin or "", expected_output or "", telemetry)
        except Exception as e:  # transport, auth, JSON and schema errors alike
            log.warning("LLM judge backend failure: %s", e)
            return backend_failure(str(e) or type(e).__name__)


def build_judge(cfg: Optional[dict] = None) -> Judge:
    backend = config.get_backend(cfg or {}, "JUDGE_BACKEND")
    if backend == "azure":
        return LLMJudge()
    return HeuristicJudge()


__all__ = ["Judge", "HeuristicJudge", "LLMJudge", "build_judge", "compare_output", "backend_failure"]
