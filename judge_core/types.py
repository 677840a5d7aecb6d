from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Dict, Optional, Any


class Language(str, Enum):
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    JAVA = "java"
    C = "c"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class OutcomeStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    ACCEPTED = "Accepted"
    WRONG_ANSWER = "Wrong Answer"
    RUNTIME_ERROR = "Runtime Error"
    TIME_LIMIT_EXCEEDED = "Time Limit Exceeded"
    COMPILATION_ERROR = "Compilation Error"


class SessionMode(str, Enum):
    MCQ = "MCQ"
    CODING = "Coding"


class SessionStatus(str, Enum):
    IDLE = "idle"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class Example:
    input: str; output: str
    explanation: Optional[str] = None


@dataclass
class TestCase:
    __test__ = False  # keep pytest from collecting the class
    input: str; output: str


@dataclass
class CodingProblem:
    id: str; title: str; difficulty: Difficulty; description: str
    constraints: List[str] = field(default_factory=list)
    examples: List[Example] = field(default_factory=list)
    test_cases: List[TestCase] = field(default_factory=list)
    starter_code: Dict[str, str] = field(default_factory=dict)
    solution: Dict[str, str] = field(default_factory=dict)

    def public_view(self) -> Dict[str, Any]:
        """What a candidate may see: hidden cases and solutions stay out."""

        return {
            "id": self.id,
            "title": self.title,
            "difficulty": self.difficulty.value,
            "description": self.description,
            "constraints": list(self.constraints),
            "examples": [asdict(ex) for ex in self.examples],
            "starter_code": dict(self.starter_code),
        }


@dataclass
class QuizQuestion:
    question_text: str
    options: List[str]
    correct_answer: str
    explanation: str = ""

    def public_view(self) -> Dict[str, Any]:
        return {"question_text": self.question_text, "options": list(self.options)}


@dataclass
class Quiz:
    topic: str
    questions: List[QuizQuestion]


@dataclass
class SubmissionOutcome:
    status: OutcomeStatus
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    compile_output: Optional[str] = None
    elapsed_time: Optional[float] = None
    memory_used: Optional[int] = None
    failed_input: Optional[str] = None
    expected_output: Optional[str] = None

    def __post_init__(self) -> None:
        self.status = OutcomeStatus(self.status)
        if self.expected_output is not None and self.status is not OutcomeStatus.WRONG_ANSWER:
            raise ValueError(f"expected_output is only carried by '{OutcomeStatus.WRONG_ANSWER.value}'")
        if self.failed_input is not None and not self.is_failure:
            raise ValueError(f"failed_input cannot be attached to '{self.status.value}'")

    @property
    def accepted(self) -> bool:
        return self.status is OutcomeStatus.ACCEPTED

    @property
    def is_failure(self) -> bool:
        return self.status in (
            OutcomeStatus.WRONG_ANSWER,
            OutcomeStatus.RUNTIME_ERROR,
            OutcomeStatus.TIME_LIMIT_EXCEEDED,
            OutcomeStatus.COMPILATION_ERROR,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["status"] = self.status.value
        return out


@dataclass
class TestCaseResult:
    __test__ = False
    input: str
    expected_output: str
    actual_output: str
    passed: bool
    error: Optional[str] = None
    status: Optional[OutcomeStatus] = None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["status"] = self.status.value if self.status is not None else None
        return out


@dataclass
class FailingCase:
    input: str; expected: str; actual: str


@dataclass
class SessionSummary:
    mode: SessionMode
    score: int
    total: int
    topic: str
    timestamp: str
    problem_ids: List[str] = field(default_factory=list)
    user_id: Optional[str] = None
    time_taken: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["mode"] = self.mode.value
        return out
