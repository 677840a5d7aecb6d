"""Where sessions get their items: the packaged bank or a chat model.

Every backend either returns a non-empty, validated batch or raises
ProvisioningFailure; an empty success is never handed to a session.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, List, Optional

from . import config, heuristics
from .errors import ProvisioningFailure
from .llm_bridge import chat_json
from .question_bank import BankQuiz, load_problems, load_quizzes
from .schemas import parse_problem, parse_quiz
from .types import CodingProblem, Difficulty, Quiz

log = logging.getLogger(__name__)


def _difficulty(value: Any) -> Optional[Difficulty]:
    if value is None or value == "":
        return None
    if isinstance(value, Difficulty):
        return value
    try:
        return Difficulty(str(value).strip().capitalize())
    except ValueError:
        raise ProvisioningFailure(f"unknown difficulty {value!r}") from None


def _check_count(count: int) -> int:
    n = int(count)
    if n < 1 or n > config.MAX_ITEMS:
        raise ProvisioningFailure(f"item count must be between 1 and {config.MAX_ITEMS}, got {count}")
    return n


class ProblemProvisioner:
    name = "abstract"

    async def generate(self, source_material: str, difficulty: Any, count: int) -> List[CodingProblem]:
        raise NotImplementedError

    async def generate_quiz(self, source_material: str, count: int) -> Quiz:
        raise NotImplementedError

    async def is_programming_topic(self, source_material: str) -> bool:
        return heuristics.is_programming_topic(source_material)


class BankProvisioner(ProblemProvisioner):
    """Serves problems and quizzes from the packaged JSON bank."""

    name = "bank"

    def __init__(
        self,
        problems: Optional[List[CodingProblem]] = None,
        quizzes: Optional[List[BankQuiz]] = None,
        seed: Optional[int] = None,
    ):
        self.problems = load_problems() if problems is None else list(problems)
        self.quizzes = load_quizzes() if quizzes is None else list(quizzes)
        self.rng = random.Random(seed) if seed is not None else None

    async def generate(self, source_material, difficulty, count):
        n = _check_count(count)
        wanted = _difficulty(difficulty)
        if not self.problems:
            raise ProvisioningFailure("the problem bank is empty")
        matching = [p for p in self.problems if wanted is None or p.difficulty is wanted]
        others = [p for p in self.problems if p not in matching]
        if self.rng is not None:
            self.rng.shuffle(matching)
            self.rng.shuffle(others)
        picked = (matching + others)[:n]
        if len(picked) < n:
            log.info("bank holds %d problems, %d requested", len(picked), n)
        return picked

    def _pick_quiz(self, source_material: str) -> BankQuiz:
        text = (source_material or "").lower()
        best, best_hits = self.quizzes[0], -1
        for bq in self.quizzes:
            hits = sum(1 for k in bq.keywords if k in text)
            if hits > best_hits:
                best, best_hits = bq, hits
        return best

    async def generate_quiz(self, source_material, count):
        n = _check_count(count)
        if not self.quizzes:
            raise ProvisioningFailure("the quiz bank is empty")
        chosen = self._pick_quiz(source_material)
        questions = list(chosen.quiz.questions)
        if self.rng is not None:
            self.rng.shuffle(questions)
        return Quiz(topic=chosen.quiz.topic, questions=questions[:n])


_PROBLEM_SYSTEM = (
    "You write LeetCode-style coding problems. Return ONLY a JSON object with keys: "
    "id (kebab-case string), title, difficulty (Easy|Medium|Hard), description, constraints (array of strings), "
    "examples (array of {input, output, explanation}), testCases (array of 5-10 {input, output}), "
    "starterCode and solution (objects keyed by javascript, python, java, c). "
    "Inputs are read from stdin with arguments separated by newlines. Solutions are raw code without markdown."
)

_QUIZ_SYSTEM = (
    "You write multiple-choice quizzes. Return ONLY a JSON object with keys: topic (short title) and "
    "questions (array of {questionText, options (exactly 4 distinct strings), correctAnswer (one of the options), "
    "explanation (one reasoning sentence followed by a supporting quote from the text)})."
)

_TOPIC_SYSTEM = (
    "Decide whether the primary subject of a text is computer programming, software development, "
    "algorithms or data structures. Return ONLY a JSON object {\"isProgrammingTopic\": true|false}."
)


class LLMProvisioner(ProblemProvisioner):
    """Generates items with an Azure OpenAI deployment in JSON mode."""

    name = "azure"

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None):
        self.client = client
        self.model = model

    async def _one_problem(self, source_material: str, difficulty: Difficulty, idx: int) -> CodingProblem:
        prompt = (
            f"Based on the following knowledge base, write ONE new coding problem of '{difficulty.value}' difficulty "
            f"(variant #{idx + 1}).\n\nKnowledge base:\n---\n{source_material or ''}\n---"
        )
        payload = await chat_json(_PROBLEM_SYSTEM, prompt, kind="problem", cli=self.client, model=self.model)
        return parse_problem(payload)

    async def generate(self, source_material, difficulty, count):
        n = _check_count(count)
        wanted = _difficulty(difficulty) or Difficulty.MEDIUM
        try:
            problems = await asyncio.gather(*(self._one_problem(source_material, wanted, i) for i in range(n)))
        except ProvisioningFailure:
            raise
        except Exception as e:
            raise ProvisioningFailure(f"problem generation failed: {e}") from e
        seen = set()
        for i, p in enumerate(problems):
            if p.id in seen:
                p.id = f"{p.id}-{i + 1}"
            seen.add(p.id)
        return list(problems)

    async def generate_quiz(self, source_material, count):
        n = _check_count(count)
        prompt = (
            f"Based on the following text, write a multiple-choice quiz with {n} questions.\n\n"
            f"Text:\n---\n{source_material or ''}\n---"
        )
        try:
            payload = await chat_json(_QUIZ_SYSTEM, prompt, kind="quiz", cli=self.client, model=self.model)
        except Exception as e:
            raise ProvisioningFailure(f"quiz generation failed: {e}") from e
        quiz = parse_quiz(payload)
        quiz.questions = quiz.questions[:n]
        return quiz

    async def is_programming_topic(self, source_material):
        try:
            payload = await chat_json(
                _TOPIC_SYSTEM,
                (source_material or "")[:4000],
                kind="topic",
                max_tokens=20,
                cli=self.client,
                model=self.model,
            )
            flag = payload.get("isProgrammingTopic")
            if isinstance(flag, bool):
                return flag
            log.warning("topic check returned %r; using keyword heuristic", flag)
        except Exception as e:
            log.warning("topic check failed (%s); using keyword heuristic", e)
        return heuristics.is_programming_topic(source_material)


def build_provisioner(cfg: Optional[dict] = None) -> ProblemProvisioner:
    cfg = cfg or {}
    if config.get_backend(cfg, "PROVISIONER_BACKEND") == "azure":
        return LLMProvisioner()
    return BankProvisioner(seed=cfg.get("SEED"))


__all__ = ["ProblemProvisioner", "BankProvisioner", "LLMProvisioner", "build_provisioner"]
