from __future__ import annotations

import asyncio
import json

from judge_core.judge import HeuristicJudge, LLMJudge, build_judge
from judge_core.types import OutcomeStatus
from tests.conftest import PAIR_SOLUTION, fake_llm_client


def _eval(judge, source, stdin, expected, language="python"):
    return asyncio.run(judge.evaluate(language, source, stdin, expected))


def test_pair_solution_accepted_on_both_examples():
    judge = HeuristicJudge()
    for stdin, expected in (("2 3", "5"), ("10 -4", "6")):
        out = _eval(judge, PAIR_SOLUTION, stdin, expected)
        assert out.status is OutcomeStatus.ACCEPTED
        assert out.stdout == expected
        assert out.failed_input is None and out.expected_output is None


def test_wrong_answer_carries_input_and_expected():
    out = _eval(HeuristicJudge(), "print(0)\n", "2 3", "5")
    assert out.status is OutcomeStatus.WRONG_ANSWER
    assert out.stdout == "0"
    assert out.failed_input == "2 3"
    assert out.expected_output == "5"


def test_precedence_compile_before_runtime_before_timeout():
    judge = HeuristicJudge()

    compile_err = _eval(judge, "raise ValueError(\n", "1 2", "3")
    assert compile_err.status is OutcomeStatus.COMPILATION_ERROR
    assert compile_err.compile_output

    runtime = _eval(judge, "while True:\n    raise ValueError('x')\n", "1 2", "3")
    assert runtime.status is OutcomeStatus.RUNTIME_ERROR
    assert runtime.stderr

    timeout = _eval(judge, "while True:\n    pass\n", "1 2", "3")
    assert timeout.status is OutcomeStatus.TIME_LIMIT_EXCEEDED

    div = _eval(judge, "print(1 / 0)\n", "1 2", "3")
    assert div.status is OutcomeStatus.RUNTIME_ERROR
    assert "ZeroDivisionError" in div.stderr


def test_markers_and_empty_source():
    judge = HeuristicJudge()
    assert _eval(judge, "", "1 2", "3").status is OutcomeStatus.COMPILATION_ERROR
    assert _eval(judge, "print(a + b)  # syntax error here", "1 2", "3").status is OutcomeStatus.COMPILATION_ERROR
    loop = _eval(judge, "// infinite loop\nconsole.log(a + b);\n", "1 2", "3", language="javascript")
    assert loop.status is OutcomeStatus.TIME_LIMIT_EXCEEDED


def test_loop_with_break_is_not_a_timeout():
    src = "import sys\ntotal = 0\nwhile True:\n    total += 1\n    break\nprint(total)\n"
    out = _eval(HeuristicJudge(), src, "4 5 6", "15")
    assert out.status is OutcomeStatus.ACCEPTED


def test_fold_sums_every_number_in_brackets_and_commas():
    judge = HeuristicJudge()
    assert _eval(judge, "print(sum(nums))\n", "[1, 2, 3, 4]", "10").accepted
    assert _eval(judge, "print(sum(nums))\n", "1.5\n2.5\n-1", "3").accepted
    assert _eval(judge, "total += x\n", "3,4,5", "12").accepted


def test_unparseable_input_is_runtime_error():
    out = _eval(HeuristicJudge(), PAIR_SOLUTION, "two three", "5")
    assert out.status is OutcomeStatus.RUNTIME_ERROR
    assert out.stderr == "Could not parse input."


def test_braces_checked_for_c_family():
    src = "int main(void) {\n    printf(\"}\");\n    return 0;\n"
    out = _eval(HeuristicJudge(), src, "1 2", "3", language="c")
    assert out.status is OutcomeStatus.COMPILATION_ERROR
    assert "Unclosed" in out.compile_output


def test_heuristic_judge_is_deterministic():
    judge = HeuristicJudge()
    first = _eval(judge, PAIR_SOLUTION, "10 -4", "6")
    second = _eval(judge, PAIR_SOLUTION, "10 -4", "6")
    assert first == second
    assert first.elapsed_time is not None and first.memory_used is not None


def test_llm_judge_compares_stdout_itself():
    client = fake_llm_client(json.dumps({"status": "Ran", "stdout": "5\n"}))
    judge = LLMJudge(client=client, model="judge-test")
    out = _eval(judge, PAIR_SOLUTION, "2 3", "5")
    assert out.status is OutcomeStatus.ACCEPTED

    call = client.chat.completions.calls[0]
    assert call["temperature"] == 0.0
    assert call["model"] == "judge-test"
    assert call["response_format"] == {"type": "json_object"}

    wrong = _eval(LLMJudge(client=fake_llm_client('{"status": "Ran", "stdout": "4"}'), model="m"), PAIR_SOLUTION, "2 3", "5")
    assert wrong.status is OutcomeStatus.WRONG_ANSWER
    assert wrong.failed_input == "2 3" and wrong.expected_output == "5"


def test_llm_judge_reports_faults():
    client = fake_llm_client('{"status": "Runtime Error", "stderr": "IndexError"}')
    out = _eval(LLMJudge(client=client, model="m"), PAIR_SOLUTION, "2", "5")
    assert out.status is OutcomeStatus.RUNTIME_ERROR
    assert out.stderr == "IndexError"

    client = fake_llm_client('{"status": "Compilation Error", "compile_output": "missing ;"}')
    out = _eval(LLMJudge(client=client, model="m"), "int x", "", "", language="c")
    assert out.status is OutcomeStatus.COMPILATION_ERROR
    assert out.compile_output == "missing ;"


def test_llm_judge_backend_failures_become_runtime_errors():
    for client in (
        fake_llm_client("not json at all"),
        fake_llm_client('{"status": "Exploded"}'),
        fake_llm_client('{"status": "Ran"}'),
        fake_llm_client(ConnectionError("network down")),
    ):
        out = _eval(LLMJudge(client=client, model="m"), PAIR_SOLUTION, "2 3", "5")
        assert out.status is OutcomeStatus.RUNTIME_ERROR
        assert out.stderr.startswith("Judge backend failure")


def test_build_judge_defaults_to_heuristic():
    assert isinstance(build_judge({}), HeuristicJudge)
    assert isinstance(build_judge({"JUDGE_BACKEND": "bogus"}), HeuristicJudge)
    assert isinstance(build_judge({"JUDGE_BACKEND": "azure"}), LLMJudge)


DOCUMENTED_PAIR = '''def add(a, b):
    """Return the sum.

    raise nothing here; throw Error is only prose, 1 / 0 too
    while True: neither
    """
    return a + b


a, b = map(int, input().split())
print(add(a, b))
'''


def test_python_docstrings_are_not_code():
    out = _eval(HeuristicJudge(), DOCUMENTED_PAIR, "2 3", "5")
    assert out.status is OutcomeStatus.ACCEPTED
    assert out.stdout == "5"


def test_python_faults_found_in_code_only():
    judge = HeuristicJudge()

    raised = _eval(judge, "x = 1\nif x:\n    raise ValueError('no')\n", "1 2", "3")
    assert raised.status is OutcomeStatus.RUNTIME_ERROR
    assert raised.stderr == "Error: Something went wrong on line 3."

    assert _eval(judge, "print(7 // 0)\n", "1 2", "3").status is OutcomeStatus.RUNTIME_ERROR
    assert _eval(judge, "import sys\nsys.exit(2)\n", "1 2", "3").status is OutcomeStatus.RUNTIME_ERROR
    assert _eval(judge, "print('a / 0' + 'raise')\n", "1 2", "0").status is OutcomeStatus.ACCEPTED


def test_python_loop_exits_are_tracked_per_loop():
    judge = HeuristicJudge()

    inner_break = "while True:\n    for x in range(3):\n        break\n"
    assert _eval(judge, inner_break, "1 2", "3").status is OutcomeStatus.TIME_LIMIT_EXCEEDED

    returns = "def first(xs):\n    while True:\n        return xs[0] + xs[1]\n\nprint(first([1, 2]))\n"
    assert _eval(judge, returns, "1 2", "3").status is OutcomeStatus.ACCEPTED
