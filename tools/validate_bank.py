from __future__ import annotations
from collections import defaultdict
import os, sys
from judge_core.question_bank import LANGUAGES, load_problems, load_quizzes, load_raw
from judge_core.types import Difficulty

# Configurable targets; defaults match the packaged bank
TARGETS = {
    "per_difficulty_min": int(os.getenv("TARGET_PER_DIFFICULTY_MIN", 1)),
    "test_cases_min": int(os.getenv("TARGET_TEST_CASES_MIN", 5)),
    "examples_min": int(os.getenv("TARGET_EXAMPLES_MIN", 2)),
    "quiz_questions_min": int(os.getenv("TARGET_QUIZ_QUESTIONS_MIN", 5)),
}

def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    raw = load_raw(argv[0] if argv else None)
    problems = load_problems(raw)
    by_diff = defaultdict(list)
    for p in problems:
        by_diff[p.difficulty].append(p)

    print(f"Targets: ≥{TARGETS['per_difficulty_min']} problems per difficulty, "
          f"≥{TARGETS['examples_min']} examples and ≥{TARGETS['test_cases_min']} hidden cases each, "
          f"≥{TARGETS['quiz_questions_min']} questions per quiz.\n")

    short = 0
    for d in Difficulty:
        group = by_diff[d]
        print(f"{d.value}: {len(group)} problem(s)")
        for p in group:
            langs = "".join(l[0] if p.starter_code.get(l) and p.solution.get(l) else "." for l in LANGUAGES)
            print(f"  {p.id:<24} examples {len(p.examples):2d} | hidden {len(p.test_cases):2d} | langs {langs}")
            if len(p.examples) < TARGETS["examples_min"] or len(p.test_cases) < TARGETS["test_cases_min"]:
                short += 1
                print(f"  → Add: examples {max(0, TARGETS['examples_min'] - len(p.examples))}, "
                      f"hidden {max(0, TARGETS['test_cases_min'] - len(p.test_cases))}")
        need = max(0, TARGETS["per_difficulty_min"] - len(group))
        if need:
            short += 1
            print(f"  → Add {need} {d.value} problem(s)\n")
        else:
            print("  ✓ Meets targets\n")

    for bq in load_quizzes(raw):
        n = len(bq.quiz.questions)
        ok = n >= TARGETS["quiz_questions_min"]
        short += 0 if ok else 1
        print(f"Quiz '{bq.quiz.topic}': {n} question(s) {'✓' if ok else '→ Add ' + str(TARGETS['quiz_questions_min'] - n)}")
    return 1 if short else 0

if __name__ == "__main__":
    raise SystemExit(main())
