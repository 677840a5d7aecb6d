from __future__ import annotations
import json, os, time, logging
from typing import Dict, Any, Optional
from .azure_cfg import async_client as azure_async_client, settings as azure_settings
from . import config

log = logging.getLogger(__name__)

# call kind -> deployment role in azure_cfg
_ROLE_BY_KIND = {
    "judge": "judge",
    "problem": "provisioner", "quiz": "provisioner", "topic": "provisioner",
    "hint": "hint", "explain": "hint", "insight": "hint",
}


def _deployment(kind: str) -> str:
    return azure_settings().deployment_for(_ROLE_BY_KIND.get(kind))


def _append_log(kind: str, system: str, user: str, raw: Any, t0: float) -> None:
    if not config.JUDGE_LOG_ENABLED:
        return
    record = {
        "ts": round(time.time(), 3),
        "run_id": os.getenv("RUN_ID", ""),
        "kind": kind,
        "system": system[:400],
        "prompt": user[:1200],
        "raw": raw,
        "rt_ms": int((time.time() - t0) * 1000),
    }
    try:
        with open(config.JUDGE_LOG_PATH, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
    except OSError as e:
        log.warning("could not append to %s: %s", config.JUDGE_LOG_PATH, e)


async def _complete(cli: Optional[Any], **kwargs: Any) -> Any:
    if cli is not None:
        return await cli.chat.completions.create(**kwargs)
    # a client made here is closed with its connection pool once the call returns
    async with azure_async_client() as owned:
        return await owned.chat.completions.create(**kwargs)


async def chat_text(
    system: str,
    user: str,
    *,
    kind: str = "text",
    max_tokens: int = config.LLM_HINT_MAX_TOKENS,
    temperature: float = 0.0,
    cli: Optional[Any] = None,
    model: Optional[str] = None,
) -> str:
    """One deterministic chat turn against the configured Azure deployment."""

    t0 = time.time()
    resp = await _complete(
        cli,
        model=model or _deployment(kind),
        messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
        temperature=temperature, max_tokens=max_tokens, top_p=1.0, seed=config.JUDGE_SEED,
    )
    text = resp.choices[0].message.content or ""
    _append_log(kind, system, user, text, t0)
    return text


async def chat_json(
    system: str,
    user: str,
    *,
    kind: str = "json",
    max_tokens: int = config.LLM_MAX_TOKENS,
    cli: Optional[Any] = None,
    model: Optional[str] = None,
) -> Dict[str, Any]:
    """Like chat_text but forces a JSON object reply and parses it.

    Raises ValueError when the reply is not a JSON object; transport errors
    from the SDK propagate unchanged.
    """

    t0 = time.time()
    resp = await _complete(
        cli,
        model=model or _deployment(kind),
        messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
        temperature=0.0, max_tokens=max_tokens, top_p=1.0, seed=config.JUDGE_SEED,
        response_format={"type": "json_object"},
    )
    raw = (resp.choices[0].message.content or "").strip()
    _append_log(kind, system, user, raw, t0)
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed
