"""The two evaluation protocols built on top of a Judge.

``run_against_examples`` fans out over the visible examples concurrently and
reports every one of them. ``submit`` walks the hidden cases strictly in
order and stops at the first case that is not Accepted.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .config import DEBUG_TRACE, TRACE_FIELDS
from .judge import Judge, backend_failure
from .types import CodingProblem, FailingCase, OutcomeStatus, SubmissionOutcome, TestCaseResult

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Trace = Optional[List[Dict[str, Any]]]


def _emit_trace(**values: object) -> None:
    if not DEBUG_TRACE:
        return
    ordered = []
    for key in TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(str(val) for val in ordered))


def _record(trace: Trace, mode: str, problem: CodingProblem, case_index: int, outcome: SubmissionOutcome) -> None:
    event = {
        "t": datetime.now(timezone.utc).isoformat(),
        "mode": mode,
        "problem_id": problem.id,
        "case_index": case_index,
        "status": outcome.status.value,
        "passed": outcome.accepted,
        "elapsed_time": outcome.elapsed_time,
        "memory_used": outcome.memory_used,
    }
    _emit_trace(**event)
    if trace is not None:
        trace.append(event)


def _actual_output(outcome: SubmissionOutcome) -> str:
    if outcome.status is OutcomeStatus.COMPILATION_ERROR:
        return outcome.compile_output or ""
    if outcome.status is OutcomeStatus.RUNTIME_ERROR:
        return outcome.stderr or ""
    if outcome.status is OutcomeStatus.TIME_LIMIT_EXCEEDED:
        return OutcomeStatus.TIME_LIMIT_EXCEEDED.value
    return outcome.stdout or ""


async def run_against_examples(
    judge: Judge,
    problem: CodingProblem,
    language: Any,
    code: str,
    trace: Trace = None,
) -> List[TestCaseResult]:
    """Evaluate every visible example concurrently; one result per example, in order."""

    calls = [judge.evaluate(language, code, ex.input, ex.output) for ex in problem.examples]
    settled = await asyncio.gather(*calls, return_exceptions=True)

    results: List[TestCaseResult] = []
    for idx, (ex, outcome) in enumerate(zip(problem.examples, settled)):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            log.warning("example %d of %s failed to evaluate: %s", idx, problem.id, outcome)
            results.append(
                TestCaseResult(
                    input=ex.input,
                    expected_output=ex.output,
                    actual_output="",
                    passed=False,
                    error=str(outcome) or type(outcome).__name__,
                )
            )
            continue
        _record(trace, "run", problem, idx, outcome)
        error = None
        if outcome.status in (OutcomeStatus.COMPILATION_ERROR, OutcomeStatus.RUNTIME_ERROR, OutcomeStatus.TIME_LIMIT_EXCEEDED):
            error = _actual_output(outcome)
        results.append(
            TestCaseResult(
                input=ex.input,
                expected_output=ex.output,
                actual_output=_actual_output(outcome),
                passed=outcome.accepted,
                error=error,
                status=outcome.status,
            )
        )
    return results


async def evaluate_until_failure(
    items: Sequence[T],
    step: Callable[[int, T], Awaitable[R]],
    failed: Callable[[R], bool],
) -> Tuple[int, Optional[R]]:
    """Fold over ``items`` one at a time, stopping at the first failing result.

    Returns ``(index, result)`` of the last evaluated item; ``step`` has been
    awaited exactly ``index + 1`` times. ``(-1, None)`` for an empty sequence.
    """

    index, result = -1, None
    for index, item in enumerate(items):
        result = await step(index, item)
        if failed(result):
            break
    return index, result


async def submit(
    judge: Judge,
    problem: CodingProblem,
    language: Any,
    code: str,
    trace: Trace = None,
) -> SubmissionOutcome:
    """Scoring verdict: hidden cases in order, first non-Accepted outcome wins."""

    async def _one(idx: int, case) -> SubmissionOutcome:
        try:
            outcome = await judge.evaluate(language, code, case.input, case.output)
        except Exception as e:
            log.warning("case %d of %s failed to evaluate: %s", idx, problem.id, e)
            outcome = backend_failure(str(e) or type(e).__name__)
        if not (outcome.accepted or outcome.is_failure):
            outcome = backend_failure(f"non-terminal status '{outcome.status.value}'")
        _record(trace, "submit", problem, idx, outcome)
        return outcome

    index, outcome = await evaluate_until_failure(problem.test_cases, _one, lambda o: not o.accepted)
    if outcome is None:
        raise ValueError(f"problem {problem.id} has no hidden test cases")
    if outcome.accepted:
        log.debug("submission for %s accepted on all %d cases", problem.id, index + 1)
        return SubmissionOutcome(
            status=OutcomeStatus.ACCEPTED,
            stdout=outcome.stdout,
            elapsed_time=outcome.elapsed_time,
            memory_used=outcome.memory_used,
        )

    case = problem.test_cases[index]
    log.debug("submission for %s stopped at case %d: %s", problem.id, index, outcome.status.value)
    return replace(
        outcome,
        failed_input=case.input,
        expected_output=case.output if outcome.status is OutcomeStatus.WRONG_ANSWER else None,
    )


def failing_case_from(problem: CodingProblem, outcome: SubmissionOutcome) -> FailingCase:
    expected = outcome.expected_output
    if expected is None:
        expected = next((c.output for c in problem.test_cases if c.input == outcome.failed_input), "")
    return FailingCase(
        input=outcome.failed_input or "",
        expected=expected,
        actual=_actual_output(outcome),
    )


__all__ = ["run_against_examples", "submit", "evaluate_until_failure", "failing_case_from"]
