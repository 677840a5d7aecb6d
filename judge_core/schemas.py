"""Validation of raw problem and quiz payloads (bank JSON or model replies).

Accepts both snake_case and the camelCase keys generators tend to emit.
Anything that does not validate becomes a ProvisioningFailure.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .config import QUIZ_OPTION_COUNT
from .errors import ProvisioningFailure
from .types import CodingProblem, Difficulty, Example, Quiz, QuizQuestion, TestCase


class _Raw(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RawExample(_Raw):
    input: str
    output: str
    explanation: Optional[str] = None


class RawTestCase(_Raw):
    input: str
    output: str


class RawProblem(_Raw):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    difficulty: Difficulty
    description: str
    constraints: List[str] = Field(default_factory=list)
    examples: List[RawExample] = Field(min_length=1)
    test_cases: List[RawTestCase] = Field(alias="testCases", min_length=1)
    starter_code: Dict[str, str] = Field(alias="starterCode", default_factory=dict)
    solution: Dict[str, str] = Field(default_factory=dict)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _title_case(cls, v: Any) -> Any:
        return v.strip().capitalize() if isinstance(v, str) else v

    @field_validator("starter_code", "solution", mode="before")
    @classmethod
    def _lower_keys(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k).lower(): val for k, val in v.items()}
        return v

    def to_problem(self) -> CodingProblem:
        return CodingProblem(
            id=self.id,
            title=self.title,
            difficulty=self.difficulty,
            description=self.description,
            constraints=list(self.constraints),
            examples=[Example(input=e.input, output=e.output, explanation=e.explanation) for e in self.examples],
            test_cases=[TestCase(input=c.input, output=c.output) for c in self.test_cases],
            starter_code=dict(self.starter_code),
            solution=dict(self.solution),
        )


class RawQuizQuestion(_Raw):
    question_text: str = Field(alias="questionText", min_length=1)
    options: List[str]
    correct_answer: str = Field(alias="correctAnswer")
    explanation: str = ""

    @model_validator(mode="after")
    def _check_options(self) -> "RawQuizQuestion":
        if len(self.options) != QUIZ_OPTION_COUNT:
            raise ValueError(f"expected {QUIZ_OPTION_COUNT} options, got {len(self.options)}")
        if len(set(self.options)) != len(self.options):
            raise ValueError("options must be distinct")
        if self.correct_answer not in self.options:
            raise ValueError("correct answer is not one of the options")
        return self


class RawQuiz(_Raw):
    topic: str = Field(min_length=1)
    questions: List[RawQuizQuestion] = Field(min_length=1)

    def to_quiz(self) -> Quiz:
        return Quiz(
            topic=self.topic,
            questions=[
                QuizQuestion(
                    question_text=q.question_text,
                    options=list(q.options),
                    correct_answer=q.correct_answer,
                    explanation=q.explanation,
                )
                for q in self.questions
            ],
        )


def _first_error(e: ValidationError) -> str:
    errs = e.errors()
    if not errs:
        return str(e)
    loc = ".".join(str(p) for p in errs[0].get("loc", ()))
    return f"{loc}: {errs[0].get('msg', 'invalid')}" if loc else str(errs[0].get("msg", "invalid"))


def parse_problem(payload: Any) -> CodingProblem:
    try:
        return RawProblem.model_validate(payload).to_problem()
    except ValidationError as e:
        raise ProvisioningFailure(f"malformed coding problem ({_first_error(e)})") from e


def parse_quiz(payload: Any) -> Quiz:
    try:
        return RawQuiz.model_validate(payload).to_quiz()
    except ValidationError as e:
        raise ProvisioningFailure(f"malformed quiz ({_first_error(e)})") from e


__all__ = ["RawProblem", "RawQuiz", "RawQuizQuestion", "parse_problem", "parse_quiz"]
