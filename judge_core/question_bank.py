from __future__ import annotations
import json, importlib.resources as ir
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from .schemas import parse_problem, parse_quiz
from .types import CodingProblem, Quiz

LANGUAGES = ["javascript", "python", "java", "c"]


@dataclass
class BankQuiz:
    quiz: Quiz
    keywords: List[str] = field(default_factory=list)


def load_raw(path: Optional[str] = None) -> Dict[str, Any]:
    if path:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    data = ir.files(__package__).joinpath("data/bank.json").read_text(encoding="utf-8")
    return json.loads(data)


def load_problems(raw: Optional[Dict[str, Any]] = None) -> List[CodingProblem]:
    raw = load_raw() if raw is None else raw
    return [parse_problem(r) for r in raw.get("problems", [])]


def load_quizzes(raw: Optional[Dict[str, Any]] = None) -> List[BankQuiz]:
    raw = load_raw() if raw is None else raw
    return [
        BankQuiz(quiz=parse_quiz(r), keywords=[str(k).lower() for k in r.get("keywords", [])])
        for r in raw.get("quizzes", [])
    ]
