from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


DEFAULT_NUM_QUESTIONS: int = 5
DEFAULT_TIME_LIMIT_MIN: int = 10
DEFAULT_NUM_PROBLEMS: int = 3
CODING_TIME_LIMIT_MIN: int = 45
MAX_ITEMS: int = 20
QUIZ_OPTION_COUNT: int = 4

TIMER_TICK_SEC: float = 1.0

JUDGE_BACKENDS: tuple[str, ...] = ("heuristic", "azure")
HINT_BACKENDS: tuple[str, ...] = ("static", "azure")
PROVISIONER_BACKENDS: tuple[str, ...] = ("bank", "azure")

JUDGE_SEED: int = 7
LLM_MAX_TOKENS: int = 600
LLM_HINT_MAX_TOKENS: int = 200
JUDGE_SOURCE_MAX_CHARS: int = 12000

HINTS_ENABLED: bool = True
HINT_FALLBACK: str = "Sorry, I couldn't generate a hint right now. Please check your logic and try again."
PROGRESS_FALLBACK: str = "Keep up the great work! Consistent practice is key to success. ✨"

AUDIT_EXPORT_ENABLED: bool = True

JUDGE_LOG_ENABLED: bool = False
JUDGE_LOG_PATH: str = "judge_llm_log.jsonl"

DEBUG_TRACE: bool = False
TRACE_FIELDS: tuple[str, ...] = (
    "mode",
    "problem_id",
    "case_index",
    "status",
    "elapsed_time",
)

BANK_MIN_PER_DIFFICULTY: int = 1
BANK_MIN_TEST_CASES: int = 5
BANK_MIN_QUIZ_QUESTIONS: int = 5
BANK_REQUIRED_LANGUAGES: tuple[str, ...] = ("javascript", "python", "java", "c")

# env wins over the defaults above; read once at import (tests reload this module)
DEFAULT_NUM_QUESTIONS = _env_int("DEFAULT_NUM_QUESTIONS", DEFAULT_NUM_QUESTIONS)
DEFAULT_TIME_LIMIT_MIN = _env_int("DEFAULT_TIME_LIMIT_MIN", DEFAULT_TIME_LIMIT_MIN)
DEFAULT_NUM_PROBLEMS = _env_int("DEFAULT_NUM_PROBLEMS", DEFAULT_NUM_PROBLEMS)
CODING_TIME_LIMIT_MIN = _env_int("CODING_TIME_LIMIT_MIN", CODING_TIME_LIMIT_MIN)
MAX_ITEMS = _env_int("MAX_ITEMS", MAX_ITEMS)
TIMER_TICK_SEC = _env_float("TIMER_TICK_SEC", TIMER_TICK_SEC)
JUDGE_SEED = _env_int("JUDGE_SEED", JUDGE_SEED)
LLM_MAX_TOKENS = _env_int("LLM_MAX_TOKENS", LLM_MAX_TOKENS)
HINTS_ENABLED = _env_bool("HINTS_ENABLED", HINTS_ENABLED)
AUDIT_EXPORT_ENABLED = _env_bool("AUDIT_EXPORT_ENABLED", AUDIT_EXPORT_ENABLED)
JUDGE_LOG_ENABLED = _env_bool("JUDGE_LOG_ENABLED", JUDGE_LOG_ENABLED)
JUDGE_LOG_PATH = os.getenv("JUDGE_LOG_PATH", JUDGE_LOG_PATH)
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)

def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    e = os.environ
    for k in ("JUDGE_BACKEND", "HINT_BACKEND", "PROVISIONER_BACKEND"):
        if e.get(k): cfg[k] = e.get(k)
    for k in ("AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_VERSION","AZURE_OPENAI_API_KEY","AZURE_OPENAI_DEPLOYMENT"):
        if e.get(k): cfg[k] = e.get(k)
    if e.get("SEED"): cfg["SEED"] = int(e.get("SEED"))
    return cfg

_BACKEND_CHOICES = {
    "JUDGE_BACKEND": (JUDGE_BACKENDS, "heuristic"),
    "HINT_BACKEND": (HINT_BACKENDS, "static"),
    "PROVISIONER_BACKEND": (PROVISIONER_BACKENDS, "bank"),
}

def get_backend(cfg: dict, key: str = "JUDGE_BACKEND") -> str:
    choices, default = _BACKEND_CHOICES[key]
    b = str(cfg.get(key) or "").lower().strip()
    return b if b in choices else default
