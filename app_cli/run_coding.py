
from __future__ import annotations
import argparse, asyncio, logging, os
from judge_core.config import load_config, DEFAULT_NUM_PROBLEMS, CODING_TIME_LIMIT_MIN
from judge_core.errors import ProvisioningFailure, SessionStateError
from judge_core.hints import build_hint_advisor
from judge_core.judge import build_judge
from judge_core.progress import InMemoryProgressRecorder
from judge_core.provisioner import build_provisioner
from judge_core.session import AssessmentSession
from judge_core.types import Language, SessionMode, SessionStatus
from app_cli.run_quiz import ask, clock

HELP = """Commands:
  list                 show problems and their status
  open N               switch to problem N
  lang L               javascript | python | java | c
  load PATH            load your code from a file
  edit                 type code, finish with a line containing only EOF
  starter              reset code to the starter template
  run                  check against the visible examples
  submit               judge against the hidden tests
  hint | explain       help after a failed submission
  end                  finish the test now
"""

def _show_problem(session: AssessmentSession) -> None:
    p = session.current_item
    print(f"\n#{session.current_index} {p.title} [{p.difficulty.value}]\n{p.description}")
    for c in p.constraints: print(f"  - {c}")
    for ex in p.examples:
        print(f"  input: {ex.input!r}  ->  output: {ex.output!r}")

async def _read_block(finished: asyncio.Event) -> str | None:
    lines = []
    while True:
        line = await ask("", finished)
        if line is None: return None
        if line == "EOF": return "\n".join(lines) + "\n"
        lines.append(line)

async def run(source: str, difficulty: str | None, num: int, minutes: float, language: str) -> int:
    finished = asyncio.Event()
    cfg = load_config()
    session = AssessmentSession(
        SessionMode.CODING,
        provisioner=build_provisioner(cfg),
        judge=build_judge(cfg),
        advisor=build_hint_advisor(cfg),
        recorder=InMemoryProgressRecorder(),
        on_complete=lambda _s: finished.set(),
    )
    try:
        await session.start(source, difficulty=difficulty, num_items=num, time_limit_min=minutes)
    except ProvisioningFailure as e:
        print(f"Could not build a test: {e}")
        return 1
    lang = Language(language)
    code = {i: p.starter_code.get(lang.value, "") for i, p in enumerate(session.items)}
    print(HELP)
    _show_problem(session)
    while session.status is SessionStatus.ACTIVE:
        cmd = await ask(f"[{clock(session.time_remaining)} {lang.value} #{session.current_index}]> ", finished)
        if cmd is None: break
        verb, _, arg = cmd.partition(" ")
        idx = session.current_index
        try:
            if verb == "list":
                for i, p in enumerate(session.items):
                    state = "solved" if i in session.solved else f"{session.attempts.get(i, 0)} attempt(s)"
                    print(f"  #{i} {p.title} [{p.difficulty.value}] {state}")
            elif verb == "open":
                session.select_item(int(arg)); _show_problem(session)
            elif verb == "lang":
                lang = Language(arg.strip().lower())
                # keep code that was already run or submitted
                code = {i: code[i] if i in session.answers else p.starter_code.get(lang.value, "")
                        for i, p in enumerate(session.items)}
            elif verb == "load":
                with open(arg.strip(), encoding="utf-8") as f: code[idx] = f.read()
                print(f"loaded {len(code[idx])} chars")
            elif verb == "edit":
                block = await _read_block(finished)
                if block is None: break
                code[idx] = block
            elif verb == "starter":
                code[idx] = session.current_item.starter_code.get(lang.value, ""); print(code[idx])
            elif verb == "run":
                results = await session.run_code(lang, code[idx])
                for n, r in enumerate(results or []):
                    print(f"  example {n}: {'PASS' if r.passed else 'FAIL'}  got {r.actual_output!r} expected {r.expected_output!r}")
            elif verb == "submit":
                outcome = await session.submit_code(lang, code[idx])
                if outcome is None: break
                print(f"  {outcome.status.value}  ({outcome.elapsed_time}s, {outcome.memory_used} KB)")
                if outcome.failed_input is not None:
                    print(f"  failed on input {outcome.failed_input!r}")
                if outcome.expected_output is not None:
                    print(f"  expected {outcome.expected_output!r}, got {outcome.stdout!r}")
                for detail in (outcome.stderr, outcome.compile_output):
                    if detail: print(f"  {detail}")
            elif verb in ("hint", "explain"):
                print(await session.request_hint(verb))
            elif verb == "end":
                session.end_session()
            elif verb in ("help", "?"):
                print(HELP)
            elif verb:
                print("Unknown command; type help.")
        except (SessionStateError, ValueError, OSError) as e:
            print(f"  {e}")
    s = session.summary
    if s is None:
        print(f"\nSession ended with an error: {session.error}")
        return 1
    print(f"\nSolved {s.score}/{s.total} in {clock(s.time_taken)}.")
    return 0

def main():
    ap = argparse.ArgumentParser(description="Timed coding test in the terminal")
    ap.add_argument("--source", default="", help="Knowledge base text or a path to a text file")
    ap.add_argument("--difficulty", choices=["Easy", "Medium", "Hard"], default=None)
    ap.add_argument("--num", type=int, default=DEFAULT_NUM_PROBLEMS)
    ap.add_argument("--minutes", type=float, default=CODING_TIME_LIMIT_MIN)
    ap.add_argument("--lang", choices=[l.value for l in Language], default="python")
    a = ap.parse_args()
    logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(message)s")
    source = a.source
    if source and os.path.isfile(source):
        with open(source, encoding="utf-8") as f: source = f.read()
    raise SystemExit(asyncio.run(run(source, a.difficulty, a.num, a.minutes, a.lang)))
if __name__ == "__main__": main()
