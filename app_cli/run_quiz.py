
from __future__ import annotations
import argparse, asyncio, logging, os
from judge_core.config import load_config, DEFAULT_NUM_QUESTIONS, DEFAULT_TIME_LIMIT_MIN
from judge_core.errors import ProvisioningFailure
from judge_core.progress import InMemoryProgressRecorder
from judge_core.provisioner import build_provisioner
from judge_core.session import AssessmentSession
from judge_core.types import SessionMode

def clock(sec: int) -> str:
    return f"{sec // 60:02d}:{sec % 60:02d}"

async def ask(prompt: str, finished: asyncio.Event) -> str | None:
    # the clock keeps ticking while we wait on stdin
    reader = asyncio.ensure_future(asyncio.to_thread(input, prompt))
    waiter = asyncio.ensure_future(finished.wait())
    done, _ = await asyncio.wait({reader, waiter}, return_when=asyncio.FIRST_COMPLETED)
    if reader in done:
        waiter.cancel()
        return reader.result().strip()
    print("\nTime's up! Press Enter to see your results.")
    return None

async def run(source: str, num: int, minutes: float) -> int:
    finished = asyncio.Event()
    cfg = load_config()
    session = AssessmentSession(
        SessionMode.MCQ,
        provisioner=build_provisioner(cfg),
        recorder=InMemoryProgressRecorder(),
        on_complete=lambda _s: finished.set(),
    )
    try:
        await session.start(source, num_items=num, time_limit_min=minutes)
    except ProvisioningFailure as e:
        print(f"Could not build a quiz: {e}")
        return 1
    print(f"Quiz: {session.topic}  ({session.total} questions, {clock(session.time_remaining)})")
    while not finished.is_set():
        q = session.current_item
        print(f"\n[{clock(session.time_remaining)}] Q{session.current_index + 1}/{session.total}: {q.question_text}")
        for i, opt in enumerate(q.options): print(f"  [{i}] {opt}")
        v = await ask("Your choice (index, or 'b' to go back): ", finished)
        if v is None: break
        if v.lower() == "b":
            session.previous(); continue
        if not v.isdigit() or not 0 <= int(v) < len(q.options):
            print("Enter a number index."); continue
        session.submit_answer(q.options[int(v)])
    print(f"\nScore: {session.score}/{session.total}  (time taken {clock(session.summary.time_taken)})")
    for i, row in enumerate(session.snapshot()["review"], start=1):
        mark = "ok " if row["correct"] else "-- "
        print(f"{mark}{i}. {row['question_text']}  -> {row['correct_answer']}")
        if not row["correct"] and row["explanation"]: print(f"     {row['explanation']}")
    return 0

def main():
    ap = argparse.ArgumentParser(description="Timed multiple-choice quiz in the terminal")
    ap.add_argument("--source", default="", help="Text or a path to a text file the quiz is based on")
    ap.add_argument("--num", type=int, default=DEFAULT_NUM_QUESTIONS)
    ap.add_argument("--minutes", type=float, default=DEFAULT_TIME_LIMIT_MIN)
    a = ap.parse_args()
    logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(message)s")
    source = a.source
    if source and os.path.isfile(source):
        with open(source, encoding="utf-8") as f: source = f.read()
    raise SystemExit(asyncio.run(run(source, a.num, a.minutes)))
if __name__ == "__main__": main()
