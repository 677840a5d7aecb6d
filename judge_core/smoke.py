from __future__ import annotations

import asyncio
import json
import logging

from .config import DEBUG_TRACE, JUDGE_SEED, TRACE_FIELDS
from .progress import InMemoryProgressRecorder, progress_stats
from .provisioner import BankProvisioner
from .session import AssessmentSession
from .types import Language, SessionMode


def _maybe_enable_trace() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    if DEBUG_TRACE:
        logging.getLogger("judge_core.evaluators").setLevel(logging.INFO)


def _trace_fields() -> str:
    return ", ".join(TRACE_FIELDS)


async def _quiz_run(provisioner: BankProvisioner, recorder: InMemoryProgressRecorder) -> None:
    session = AssessmentSession(SessionMode.MCQ, provisioner=provisioner, recorder=recorder, user_id="smoke")
    await session.start("python basics: lists, loops and functions")
    while True:
        q = session.current_item
        if session.submit_answer(q.correct_answer):
            break
    logging.info("Quiz '%s' complete: %s/%s", session.topic, session.score, session.total)


async def _coding_run(provisioner: BankProvisioner, recorder: InMemoryProgressRecorder) -> None:
    session = AssessmentSession(SessionMode.CODING, provisioner=provisioner, recorder=recorder, user_id="smoke")
    await session.start(num_items=3)
    for idx, problem in enumerate(session.items):
        session.select_item(idx)
        results = await session.run_code(Language.PYTHON, problem.starter_code.get("python", ""))
        logging.info(
            "%s starter: %d/%d examples pass",
            problem.id,
            sum(1 for r in results or [] if r.passed),
            len(problem.examples),
        )
        outcome = await session.submit_code(Language.PYTHON, problem.starter_code.get("python", ""))
        logging.info("%s starter submit: %s (failed input %r)", problem.id, outcome.status.value, outcome.failed_input)
        hint = await session.request_hint("explain")
        logging.info("  explain: %s", hint)
        outcome = await session.submit_code(Language.PYTHON, problem.solution.get("python", ""))
        logging.info("%s solution submit: %s", problem.id, outcome.status.value)
    session.end_session()
    logging.info("Coding session complete: %s/%s solved, %d audit events", session.score, session.total, len(session.audit_events))


def run_smoke_session() -> None:
    _maybe_enable_trace()
    logging.info("Starting synthetic runs with JUDGE_SEED=%s", JUDGE_SEED)
    logging.info("Trace fields: %s", _trace_fields())

    provisioner = BankProvisioner(seed=JUDGE_SEED)
    recorder = InMemoryProgressRecorder()

    async def _all() -> None:
        await _quiz_run(provisioner, recorder)
        await _coding_run(provisioner, recorder)

    asyncio.run(_all())
    stats = progress_stats(recorder.summaries)
    logging.info("Progress: %s", json.dumps({k: v for k, v in stats.items() if k != "series"}))


if __name__ == "__main__":  # pragma: no cover
    run_smoke_session()
