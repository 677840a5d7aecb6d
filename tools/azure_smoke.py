# tools/azure_smoke.py
"""Ping every configured role deployment, then push one hidden case through the judge."""
from __future__ import annotations
import asyncio, sys
from openai import NotFoundError, OpenAIError
from judge_core.azure_cfg import ROLES, client, settings
from judge_core.judge import LLMJudge
from judge_core.question_bank import load_problems

async def _judge_roundtrip() -> None:
    p = load_problems()[0]
    case = p.test_cases[-1]
    judge = LLMJudge()
    for label, src in (("solution", p.solution["python"]), ("starter", p.starter_code["python"])):
        out = await judge.evaluate("python", src, case.input, case.output)
        print(f"judge    {p.id} {label:<8} -> {out.status.value} stdout={out.stdout!r}")

def main() -> int:
    s = settings()
    print(f"endpoint {s.endpoint} (api {s.api_version})")
    cli = client()
    pinged = {}
    for role in ROLES:
        dep = s.deployment_for(role)
        if dep not in pinged:
            try:
                r = cli.chat.completions.create(
                    model=dep,
                    messages=[{"role": "user", "content": "Say 'pong' only."}],
                    temperature=0.0, max_tokens=5,
                )
                pinged[dep] = (r.choices[0].message.content or "").strip()
            except NotFoundError:
                print(f"{role:<12} {dep}: 404, check the deployment name and that api_version matches it", file=sys.stderr)
                return 1
            except OpenAIError as e:
                print(f"{role:<12} {dep}: {e}", file=sys.stderr)
                return 1
        print(f"{role:<12} {dep} -> {pinged[dep]!r}")
    asyncio.run(_judge_roundtrip())
    return 0

if __name__ == "__main__":
    sys.exit(main())
