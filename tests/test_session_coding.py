from __future__ import annotations

import asyncio

import pytest

from judge_core import config
from judge_core.errors import ProvisioningFailure, SessionStateError
from judge_core.hints import HintAdvisor, StaticHintAdvisor
from judge_core.judge import HeuristicJudge, Judge
from judge_core.provisioner import BankProvisioner, ProblemProvisioner
import judge_core.session as session_module
from judge_core.session import AssessmentSession
from judge_core.timer import SessionTimer
from judge_core.types import Difficulty, OutcomeStatus, SessionMode, SessionStatus
from tests.conftest import PAIR_SOLUTION, PAIR_STARTER, build_problem


def _session(problems=None, **kwargs) -> AssessmentSession:
    problems = problems or [build_problem("p1"), build_problem("p2", difficulty=Difficulty.MEDIUM)]
    kwargs.setdefault("provisioner", BankProvisioner(problems=problems, quizzes=[]))
    kwargs.setdefault("timer", SessionTimer(manual=True))
    return AssessmentSession(SessionMode.CODING, **kwargs)


class GatedJudge(Judge):
    """Heuristic verdicts that wait until the test opens the gate."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self.inner = HeuristicJudge()

    async def evaluate(self, language, source_code, stdin, expected_output):
        self.entered.set()
        await self.gate.wait()
        return await self.inner.evaluate(language, source_code, stdin, expected_output)


class CountingAdvisor(HintAdvisor):
    name = "counting"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    async def explain(self, problem, code, failing_case):
        self.calls += 1
        if self.fail:
            raise RuntimeError("model unavailable")
        return f"expected {failing_case.expected} got {failing_case.actual}"

    hint = explain


def test_solve_one_of_two_problems():
    sess = _session()

    async def scenario():
        await sess.start(num_items=2)
        results = await sess.run_code("python", PAIR_SOLUTION)
        assert [r.passed for r in results] == [True, True]
        assert sess.solved == set(), "running examples never scores"

        first = await sess.submit_code("python", PAIR_STARTER)
        assert first.status is OutcomeStatus.WRONG_ANSWER
        second = await sess.submit_code("python", PAIR_SOLUTION)
        assert second.accepted

        sess.select_item(1)
        third = await sess.submit_code("python", PAIR_STARTER)
        assert third.status is OutcomeStatus.WRONG_ANSWER
        return sess.end_session()

    summary = asyncio.run(scenario())
    assert summary.score == 1
    assert summary.total == 2
    assert summary.problem_ids == ["p1", "p2"]
    assert sess.attempts == {0: 2, 1: 1}
    assert sess.finished_reason == "ended"

    modes = {e["mode"] for e in sess.audit_events}
    assert modes == {"run", "submit"}
    assert all("item_index" in e for e in sess.audit_events)


def test_difficulty_filter_puts_matching_problems_first():
    sess = _session()
    asyncio.run(sess.start(difficulty="Medium", num_items=2))
    assert [p.id for p in sess.items] == ["p2", "p1"]
    assert sess.time_limit_sec == config.CODING_TIME_LIMIT_MIN * 60


def test_select_item_out_of_range():
    sess = _session()
    asyncio.run(sess.start(num_items=2))
    with pytest.raises(ValueError):
        sess.select_item(2)
    with pytest.raises(ValueError):
        asyncio.run(sess.run_code("cobol", "x"))


def test_result_arriving_after_end_is_discarded():
    judge = GatedJudge()
    sess = _session(judge=judge)

    async def scenario():
        await sess.start(num_items=2)
        pending = asyncio.ensure_future(sess.submit_code("python", PAIR_SOLUTION))
        await judge.entered.wait()
        sess.end_session()
        judge.gate.set()
        return await pending

    outcome = asyncio.run(scenario())
    assert outcome is None
    assert sess.status is SessionStatus.COMPLETED
    assert sess.score == 0
    assert sess.solved == set()
    assert sess.outcomes == {}


def test_result_arriving_after_reset_is_discarded():
    judge = GatedJudge()
    sess = _session(judge=judge)

    async def scenario():
        await sess.start(num_items=1)
        pending = asyncio.ensure_future(sess.run_code("python", PAIR_SOLUTION))
        await judge.entered.wait()
        sess.reset()
        judge.gate.set()
        return await pending

    assert asyncio.run(scenario()) is None
    assert sess.status is SessionStatus.IDLE
    assert sess.items == []
    assert sess.results == {}


def test_timeout_while_judging_discards_result():
    judge = GatedJudge()
    timer = SessionTimer(manual=True)
    sess = _session(judge=judge, timer=timer)

    async def scenario():
        await sess.start(num_items=1, time_limit_min=1 / 60)
        pending = asyncio.ensure_future(sess.submit_code("python", PAIR_SOLUTION))
        await judge.entered.wait()
        timer.tick()
        judge.gate.set()
        return await pending

    assert asyncio.run(scenario()) is None
    assert sess.finished_reason == "timeout"
    assert sess.score == 0


def test_hint_only_after_failed_submission_and_cached_per_attempt():
    advisor = CountingAdvisor()
    sess = _session(advisor=advisor)

    async def scenario():
        await sess.start(num_items=1)
        with pytest.raises(SessionStateError):
            await sess.request_hint("explain")

        await sess.submit_code("python", PAIR_STARTER)
        first = await sess.request_hint("explain")
        again = await sess.request_hint("explain")
        assert first == again == "expected 2 got 0"
        assert advisor.calls == 1

        await sess.submit_code("python", PAIR_STARTER)
        await sess.request_hint("explain")
        assert advisor.calls == 2

        await sess.submit_code("python", PAIR_SOLUTION)
        with pytest.raises(SessionStateError):
            await sess.request_hint("hint")

    asyncio.run(scenario())


def test_concurrent_hint_requests_share_one_advisor_call():
    class SlowAdvisor(CountingAdvisor):
        def __init__(self):
            super().__init__()
            self.release = asyncio.Event()

        async def hint(self, problem, code, failing_case):
            self.calls += 1
            await self.release.wait()
            return "check the second operand"

    advisor = SlowAdvisor()
    sess = _session(advisor=advisor)

    async def scenario():
        await sess.start(num_items=1)
        await sess.submit_code("python", PAIR_STARTER)
        first = asyncio.ensure_future(sess.request_hint("hint"))
        second = asyncio.ensure_future(sess.request_hint("hint"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        advisor.release.set()
        return await asyncio.gather(first, second)

    texts = asyncio.run(scenario())
    assert texts == ["check the second operand"] * 2
    assert advisor.calls == 1
    assert sess.attempts == {0: 1}


def test_explanations_escalate_through_explain_failure(monkeypatch):
    seen = []

    async def recording(advisor, problem, code, outcome):
        seen.append((problem.id, code, outcome.status))
        return "explained"

    monkeypatch.setattr(session_module, "explain_failure", recording)
    sess = _session(problems=[build_problem("p1")], advisor=CountingAdvisor())

    async def scenario():
        await sess.start(num_items=1)
        await sess.submit_code("python", PAIR_STARTER)
        return await sess.request_hint("explain")

    assert asyncio.run(scenario()) == "explained"
    assert seen == [("p1", PAIR_STARTER, OutcomeStatus.WRONG_ANSWER)]


def test_hint_falls_back_when_advisor_fails():
    sess = _session(advisor=CountingAdvisor(fail=True))

    async def scenario():
        await sess.start(num_items=1)
        outcome = await sess.submit_code("python", PAIR_STARTER)
        text = await sess.request_hint("hint")
        return outcome, text

    outcome, text = asyncio.run(scenario())
    assert text == config.HINT_FALLBACK
    assert outcome.status is OutcomeStatus.WRONG_ANSWER, "a failed hint never changes the verdict"
    assert sess.snapshot()["hint"] == config.HINT_FALLBACK


def test_hints_can_be_disabled(monkeypatch):
    monkeypatch.setattr(config, "HINTS_ENABLED", False)
    sess = _session(advisor=StaticHintAdvisor())

    async def scenario():
        await sess.start(num_items=1)
        await sess.submit_code("python", PAIR_STARTER)
        with pytest.raises(SessionStateError):
            await sess.request_hint("hint")

    asyncio.run(scenario())


def test_provisioning_failure_then_reset():
    class BrokenProvisioner(ProblemProvisioner):
        async def generate(self, source_material, difficulty, count):
            raise ConnectionError("model endpoint unreachable")

    sess = _session(provisioner=BrokenProvisioner())
    with pytest.raises(ProvisioningFailure):
        asyncio.run(sess.start(num_items=1))
    assert sess.status is SessionStatus.ERROR
    assert "unreachable" in sess.error
    assert sess.items == []
    with pytest.raises(SessionStateError):
        asyncio.run(sess.start(num_items=1))

    sess.reset()
    assert sess.status is SessionStatus.IDLE
    assert sess.error is None
    sess.provisioner = BankProvisioner(problems=[build_problem()], quizzes=[])
    asyncio.run(sess.start(num_items=1))
    assert sess.status is SessionStatus.ACTIVE


def test_empty_provisioning_is_an_error():
    sess = _session(provisioner=BankProvisioner(problems=[], quizzes=[]))
    with pytest.raises(ProvisioningFailure):
        asyncio.run(sess.start(num_items=1))
    assert sess.status is SessionStatus.ERROR


def test_problem_without_hidden_cases_is_rejected():
    sess = _session(problems=[build_problem(cases=[])])
    with pytest.raises(ProvisioningFailure):
        asyncio.run(sess.start(num_items=1))
    assert sess.status is SessionStatus.ERROR


def test_non_programming_material_is_refused():
    sess = _session()
    with pytest.raises(ProvisioningFailure):
        asyncio.run(sess.start("A short history of the Roman empire and its emperors.", num_items=1))
    assert sess.status is SessionStatus.ERROR


def test_reset_during_provisioning_drops_items():
    class SlowProvisioner(BankProvisioner):
        def __init__(self):
            super().__init__(problems=[build_problem()], quizzes=[])
            self.gate = asyncio.Event()

        async def generate(self, source_material, difficulty, count):
            await self.gate.wait()
            return await super().generate(source_material, difficulty, count)

    async def scenario():
        provisioner = SlowProvisioner()
        sess = _session(provisioner=provisioner)
        pending = asyncio.ensure_future(sess.start(num_items=1))
        await asyncio.sleep(0)
        assert sess.status is SessionStatus.PROVISIONING
        sess.reset()
        provisioner.gate.set()
        await pending
        return sess

    sess = asyncio.run(scenario())
    assert sess.status is SessionStatus.IDLE
    assert sess.items == []
    assert not sess.timer.running


def test_snapshot_keeps_hidden_cases_and_solutions_out():
    sess = _session()
    asyncio.run(sess.start(num_items=1))
    item = sess.snapshot()["item"]
    assert "test_cases" not in item and "solution" not in item
    assert item["starter_code"]["python"] == PAIR_STARTER

    sess.end_session()
    review = sess.snapshot()["review"]
    assert review[0]["solution"]["python"] == PAIR_SOLUTION
    assert review[0]["solved"] is False
