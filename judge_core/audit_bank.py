from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from . import config
from .judge import HeuristicJudge
from .question_bank import BankQuiz, load_problems, load_quizzes, load_raw
from .types import CodingProblem, Difficulty

DIFFICULTIES: tuple[str, ...] = tuple(d.value for d in Difficulty)


def _solution_failures(problem: CodingProblem, judge: HeuristicJudge) -> list[str]:
    # the packaged solutions must pass the offline judge on every hidden case
    out: list[str] = []
    for lang, source in sorted(problem.solution.items()):
        for idx, case in enumerate(problem.test_cases):
            outcome = judge.classify(lang, source, case.input, case.output)
            if not outcome.accepted:
                out.append(f"{problem.id} {lang} solution gets '{outcome.status.value}' on case {idx}")
                break
    return out


def audit_items(
    problems: Iterable[CodingProblem],
    quizzes: Iterable[BankQuiz] = (),
    *,
    check_solutions: bool = True,
) -> dict[str, object]:
    coverage: dict[str, int] = {d: 0 for d in DIFFICULTIES}
    totals = {"problems": 0, "test_cases": 0, "quizzes": 0, "questions": 0}
    warnings: list[str] = []
    judge = HeuristicJudge()
    seen_ids: set[str] = set()

    for p in problems:
        totals["problems"] += 1
        totals["test_cases"] += len(p.test_cases)
        coverage[p.difficulty.value] = coverage.get(p.difficulty.value, 0) + 1

        if p.id in seen_ids:
            warnings.append(f"duplicate problem id {p.id}")
        seen_ids.add(p.id)

        if len(p.test_cases) < config.BANK_MIN_TEST_CASES:
            warnings.append(f"{p.id} has {len(p.test_cases)} hidden cases (<{config.BANK_MIN_TEST_CASES})")
        for lang in config.BANK_REQUIRED_LANGUAGES:
            if not p.starter_code.get(lang):
                warnings.append(f"{p.id} has no {lang} starter code")
            if not p.solution.get(lang):
                warnings.append(f"{p.id} has no {lang} solution")
        example_inputs = {ex.input for ex in p.examples}
        if example_inputs & {c.input for c in p.test_cases}:
            warnings.append(f"{p.id} reuses a visible example as a hidden case")
        if check_solutions:
            warnings.extend(_solution_failures(p, judge))

    for lvl in DIFFICULTIES:
        if coverage.get(lvl, 0) < config.BANK_MIN_PER_DIFFICULTY:
            warnings.append(f"difficulty {lvl} has {coverage.get(lvl, 0)} (<{config.BANK_MIN_PER_DIFFICULTY})")

    for bq in quizzes:
        totals["quizzes"] += 1
        totals["questions"] += len(bq.quiz.questions)
        if len(bq.quiz.questions) < config.BANK_MIN_QUIZ_QUESTIONS:
            warnings.append(
                f"quiz '{bq.quiz.topic}' has {len(bq.quiz.questions)} questions (<{config.BANK_MIN_QUIZ_QUESTIONS})"
            )
        if not bq.keywords:
            warnings.append(f"quiz '{bq.quiz.topic}' has no keywords")

    return {"coverage": coverage, "warnings": warnings, "totals": totals}


def print_report(summary: dict[str, object]) -> None:
    coverage: dict[str, int] = summary["coverage"]  # type: ignore[assignment]
    print("=== Bank Coverage ===")
    print("  " + "  ".join(f"{lvl}:{coverage.get(lvl, 0):3d}" for lvl in DIFFICULTIES))

    warnings: list[str] = summary["warnings"]  # type: ignore[assignment]
    if warnings:
        print("\nWarnings:")
        for msg in warnings:
            print(f" - {msg}")
    else:
        print("\nNo warnings.")

    print("\nTotals:", summary["totals"])


def write_summary(summary: dict[str, object], path: Path = Path("/tmp/bank_audit.json")) -> str:
    text = json.dumps(summary, indent=2, sort_keys=True)
    path.write_text(text + "\n", encoding="utf-8")
    print(text)
    return text


def main(_argv: list[str] | None = None) -> int:
    path = _argv[0] if _argv else None
    raw = load_raw(path)
    summary = audit_items(load_problems(raw), load_quizzes(raw))
    print_report(summary)
    write_summary(summary)
    return 2 if summary["warnings"] else 0


if __name__ == "__main__":
    import sys
    raise SystemExit(main(sys.argv[1:]))
