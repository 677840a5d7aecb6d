# autoplay.py
from __future__ import annotations
import argparse, asyncio, os, json, datetime
from typing import Any, Optional
from judge_core.progress import InMemoryProgressRecorder, progress_stats
from judge_core.provisioner import BankProvisioner
from judge_core.session import AssessmentSession
from judge_core.types import CodingProblem, Language, QuizQuestion, SessionMode

def _new_run_id() -> str:
    return datetime.datetime.now().strftime("run_%Y%m%d_%H%M%S")

# a body that compiles everywhere but never prints the right total
WRONG_BY_LANG = {
    "javascript": "console.log(-1);\n",
    "python": "print(-1)\n",
    "java": "public class Main {\n    public static void main(String[] args) {\n        System.out.println(-1);\n    }\n}\n",
    "c": "#include <stdio.h>\n\nint main(void) {\n    printf(\"-1\\n\");\n    return 0;\n}\n",
}

def _pick_definitely_wrong_mcq(q: QuizQuestion) -> str:
    ci = q.options.index(q.correct_answer) if q.correct_answer in q.options else 0
    return q.options[(ci + 1) % len(q.options)]

def _answer_for(item: QuizQuestion, profile: str) -> Optional[str]:
    if profile == "perfect": return item.correct_answer
    if profile == "all-wrong": return _pick_definitely_wrong_mcq(item)
    return None

def _code_for(item: CodingProblem, lang: str, profile: str) -> Optional[str]:
    if profile == "perfect": return item.solution.get(lang) or ""
    if profile == "all-wrong": return WRONG_BY_LANG[lang]
    return None

async def _play_quiz(sess: AssessmentSession, profile: str) -> int:
    answered = 0
    while True:
        q = sess.current_item
        answered += 1
        if sess.submit_answer(_answer_for(q, profile)): break
    return answered

async def _play_coding(sess: AssessmentSession, profile: str, lang: str) -> int:
    submitted = 0
    for idx, problem in enumerate(list(sess.items)):
        sess.select_item(idx)
        code = _code_for(problem, lang, profile)
        if code is None: continue
        await sess.run_code(lang, code)
        outcome = await sess.submit_code(lang, code); submitted += 1
        print(f"  {problem.id:<22} {outcome.status.value}")
    sess.end_session()
    return submitted

async def run(mode: str, profile: str, seed: Optional[int], lang: str, num: Optional[int]):
    run_id = _new_run_id()
    os.environ["RUN_ID"] = run_id; os.environ["PROFILE"] = profile
    recorder = InMemoryProgressRecorder()
    sess = AssessmentSession(
        SessionMode.CODING if mode == "coding" else SessionMode.MCQ,
        provisioner=BankProvisioner(seed=1234 if seed is None else seed),
        recorder=recorder,
        user_id=f"autoplay_{profile}",
    )
    await sess.start("python data structures", num_items=num)

    if sess.mode is SessionMode.MCQ:
        played = await _play_quiz(sess, profile)
    else:
        played = await _play_coding(sess, profile, lang)
    if played <= 0 and profile != "none": raise RuntimeError("Driver played 0 items.")

    res: dict[str, Any] = sess.snapshot()
    res["audit_events"] = sess.audit_events
    res["progress"] = progress_stats(recorder.summaries)
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    os.makedirs("results", exist_ok=True)
    path = os.path.join("results", f"auto_{mode}_{profile}_{ts}.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(res, f, indent=2, default=str)
    print(f"{run_id}: score {sess.score}/{sess.total}")
    print(f"Result: {path}")

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--mode", choices=["quiz", "coding"], default="coding")
    ap.add_argument("--profile", choices=["perfect", "all-wrong", "none"], default="perfect")
    ap.add_argument("--seed", type=int, default=1337)
    ap.add_argument("--lang", choices=[l.value for l in Language], default="python")
    ap.add_argument("--num", type=int, default=None)
    a = ap.parse_args()
    asyncio.run(run(a.mode, a.profile, a.seed, a.lang, a.num))

if __name__ == "__main__":
    main()
