from __future__ import annotations
from typing import Dict, List, Optional, Set
from .types import QuizQuestion

def _norm(s: Optional[str]) -> str:
    return (s or "").strip()

def is_correct(question: QuizQuestion, answer: Optional[str]) -> bool:
    # unanswered never counts
    if answer is None:
        return False
    return _norm(answer) == _norm(question.correct_answer)

def score_mcq(questions: List[QuizQuestion], answers: Dict[int, str]) -> int:
    return sum(1 for idx, q in enumerate(questions) if is_correct(q, answers.get(idx)))

def score_coding(total_problems: int, solved: Set[int]) -> int:
    """Solved problem count; indices outside the problem list are ignored."""
    return len({i for i in solved if 0 <= i < total_problems})

def percentage(score: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(100.0 * score / total, 1)
