from __future__ import annotations

from types import SimpleNamespace

import pytest

from judge_core.judge import Judge
from judge_core.timer import SessionTimer
from judge_core.types import (
    CodingProblem,
    Difficulty,
    Example,
    OutcomeStatus,
    Quiz,
    QuizQuestion,
    SubmissionOutcome,
    TestCase,
)

PAIR_SOLUTION = "a, b = map(int, input().split())\nprint(a + b)\n"
PAIR_STARTER = "a, b = map(int, input().split())\nprint(0)\n"


def build_problem(
    pid: str = "sum-pair",
    *,
    difficulty: Difficulty = Difficulty.EASY,
    examples: list[tuple[str, str]] | None = None,
    cases: list[tuple[str, str]] | None = None,
) -> CodingProblem:
    """Two-integer sum problem the heuristic judge can grade deterministically."""

    examples = examples if examples is not None else [("2 3", "5"), ("10 -4", "6")]
    cases = cases if cases is not None else [
        ("1 1", "2"),
        ("0 0", "0"),
        ("-5 -7", "-12"),
        ("100 200", "300"),
        ("7 8", "15"),
    ]
    return CodingProblem(
        id=pid,
        title=f"Problem {pid}",
        difficulty=difficulty,
        description="Print the sum of the two integers on stdin.",
        constraints=["-10^9 <= a, b <= 10^9"],
        examples=[Example(input=i, output=o) for i, o in examples],
        test_cases=[TestCase(input=i, output=o) for i, o in cases],
        starter_code={"python": PAIR_STARTER},
        solution={"python": PAIR_SOLUTION},
    )


def build_quiz(topic: str = "Sample Topic", n: int = 4) -> Quiz:
    """``n`` questions whose correct answer is always option ``A{idx}``."""

    questions = [
        QuizQuestion(
            question_text=f"Question {idx}?",
            options=[f"A{idx}", f"B{idx}", f"C{idx}", f"D{idx}"],
            correct_answer=f"A{idx}",
            explanation=f"A{idx} is right.",
        )
        for idx in range(n)
    ]
    return Quiz(topic=topic, questions=questions)


class ScriptedJudge(Judge):
    """Accepts every call except the one at ``fail_at``; records the stdin of each call."""

    name = "scripted"

    def __init__(self, fail_at: int | None = None, status: OutcomeStatus = OutcomeStatus.WRONG_ANSWER):
        self.fail_at = fail_at
        self.status = status
        self.calls: list[str] = []

    async def evaluate(self, language, source_code, stdin, expected_output):
        idx = len(self.calls)
        self.calls.append(stdin)
        if idx == self.fail_at:
            if self.status is OutcomeStatus.WRONG_ANSWER:
                return SubmissionOutcome(status=self.status, stdout="-1", failed_input=stdin, expected_output=expected_output)
            return SubmissionOutcome(status=self.status, stderr="boom")
        return SubmissionOutcome(status=OutcomeStatus.ACCEPTED, stdout=expected_output)


class _FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


def fake_llm_client(*replies):
    """Stand-in for AsyncAzureOpenAI; each create() returns the next reply (the last one repeats)."""

    return SimpleNamespace(chat=SimpleNamespace(completions=_FakeCompletions(replies)))


@pytest.fixture
def problem() -> CodingProblem:
    return build_problem()


@pytest.fixture
def quiz() -> Quiz:
    return build_quiz()


@pytest.fixture
def manual_timer() -> SessionTimer:
    return SessionTimer(manual=True)
