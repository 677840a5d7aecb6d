"""Hint and failure-explanation advisors.

Advisors may fail however they like; callers go through ``safe_explain`` and
``safe_hint`` which always hand back a string and never touch the verdict.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from . import config
from .errors import HintFailure
from .evaluators import failing_case_from
from .llm_bridge import chat_text
from .types import CodingProblem, FailingCase, SubmissionOutcome

log = logging.getLogger(__name__)


class HintAdvisor:
    name = "abstract"

    async def explain(self, problem: CodingProblem, code: str, failing_case: FailingCase) -> str:
        raise NotImplementedError

    async def hint(self, problem: CodingProblem, code: str, failing_case: FailingCase) -> str:
        raise NotImplementedError


_EXPLAIN_PROMPT = """You are an expert debugging assistant. A student's code failed a test case. Explain exactly why the code produced the wrong output for the given input.

Problem: {title}
Description: {description}

Student's code:
```
{code}
```

Failed test case:
- Input: {input}
- Expected output: {expected}
- Actual output: {actual}

Trace the execution with the input, pinpoint the flaw that makes the actual output differ from the expected one, and answer in 2-3 sentences that start by stating the issue directly. Be specific to this code and this test case."""

_HINT_PROMPT = """You are an expert, encouraging coding tutor. A student's code has failed a test case. Give a short, actionable hint that guides them toward the fix without giving away the answer.

Problem description:
{description}

Student's code:
```
{code}
```

Failed test case:
- Input: {input}
- Expected output: {expected}
- Actual output: {actual}

Focus on the logic error; if an edge case was missed, point toward it. Keep the hint to 1-3 sentences."""


def _fill(template: str, problem: CodingProblem, code: str, case: FailingCase) -> str:
    return template.format(
        title=problem.title,
        description=problem.description,
        code=(code or "")[: config.JUDGE_SOURCE_MAX_CHARS],
        input=case.input,
        expected=case.expected,
        actual=case.actual,
    )


class LLMHintAdvisor(HintAdvisor):
    name = "azure"

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None):
        self.client = client
        self.model = model

    async def _ask(self, kind: str, prompt: str) -> str:
        text = await chat_text(
            "You help students debug their code.",
            prompt,
            kind=kind,
            max_tokens=config.LLM_HINT_MAX_TOKENS,
            cli=self.client,
            model=self.model,
        )
        text = (text or "").strip()
        if not text:
            raise HintFailure(f"empty {kind} reply")
        return text

    async def explain(self, problem, code, failing_case):
        return await self._ask("explain", _fill(_EXPLAIN_PROMPT, problem, code, failing_case))

    async def hint(self, problem, code, failing_case):
        return await self._ask("hint", _fill(_HINT_PROMPT, problem, code, failing_case))


class StaticHintAdvisor(HintAdvisor):
    """Offline advisor: canned guidance keyed on how the output differs."""

    name = "static"

    async def explain(self, problem, code, failing_case):
        actual = (failing_case.actual or "").strip()
        expected = (failing_case.expected or "").strip()
        if not actual:
            return (
                f"Your program printed nothing for input {failing_case.input!r}. "
                f"Make sure the result ({expected!r}) is written to standard output."
            )
        if actual.startswith("SyntaxError"):
            return f"The code does not compile: {actual}. Fix the syntax before checking the logic."
        return (
            f"For input {failing_case.input!r} your code printed {actual!r} but {expected!r} was expected. "
            "Trace the input through your code by hand and compare each intermediate value."
        )

    async def hint(self, problem, code, failing_case):
        actual = (failing_case.actual or "").strip()
        if actual.lstrip("-").isdigit() and (failing_case.expected or "").strip().lstrip("-").isdigit():
            return "Your result is a number but not the right one: check which inputs you combine and any edge cases like negatives or zero."
        return "Re-read the expected output format and check that every input line is parsed and used."


async def safe_explain(advisor: HintAdvisor, problem: CodingProblem, code: str, failing_case: FailingCase) -> str:
    try:
        return await advisor.explain(problem, code, failing_case)
    except Exception as e:  # advisor failures never reach the session
        log.warning("hint advisor %s failed to explain %s: %s", advisor.name, problem.id, e)
        return config.HINT_FALLBACK


async def safe_hint(advisor: HintAdvisor, problem: CodingProblem, code: str, failing_case: FailingCase) -> str:
    try:
        return await advisor.hint(problem, code, failing_case)
    except Exception as e:
        log.warning("hint advisor %s failed to hint %s: %s", advisor.name, problem.id, e)
        return config.HINT_FALLBACK


async def explain_failure(
    advisor: HintAdvisor,
    problem: CodingProblem,
    code: str,
    outcome: SubmissionOutcome,
) -> Optional[str]:
    """One explanation for a failed submit verdict; None for an accepted one."""

    if not outcome.is_failure:
        return None
    return await safe_explain(advisor, problem, code, failing_case_from(problem, outcome))


def build_hint_advisor(cfg: Optional[dict] = None) -> HintAdvisor:
    if config.get_backend(cfg or {}, "HINT_BACKEND") == "azure":
        return LLMHintAdvisor()
    return StaticHintAdvisor()


__all__ = [
    "HintAdvisor",
    "LLMHintAdvisor",
    "StaticHintAdvisor",
    "safe_explain",
    "safe_hint",
    "explain_failure",
    "build_hint_advisor",
]
