# judge_core/azure_cfg.py
"""Azure OpenAI settings shared by the judge, provisioner and hint backends.

Env vars win over ``.azure_config.json`` key by key. Each role may use its own
deployment (``AZURE_OPENAI_JUDGE_DEPLOYMENT`` or ``"deployments": {"judge": ...}``
in the file); roles without one use the default deployment.
"""
from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass, field
from typing import Dict, Optional
from openai import AzureOpenAI, AsyncAzureOpenAI

CONFIG_FILE = ".azure_config.json"
ROLES = ("judge", "provisioner", "hint")
_ENV = {
    "endpoint": "AZURE_OPENAI_ENDPOINT",
    "api_key": "AZURE_OPENAI_API_KEY",
    "api_version": "AZURE_OPENAI_API_VERSION",
    "deployment": "AZURE_OPENAI_DEPLOYMENT",
}

@dataclass(frozen=True)
class AzureSettings:
    endpoint: str
    api_key: str
    deployment: str
    api_version: str
    role_deployments: Dict[str, str] = field(default_factory=dict)

    def deployment_for(self, role: Optional[str] = None) -> str:
        return self.role_deployments.get(role or "", "") or self.deployment

def _read_file(path: str = CONFIG_FILE) -> dict:
    p = pathlib.Path(path)
    if not p.exists(): return {}
    try:
        j = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return j if isinstance(j, dict) else {}

def settings(path: str = CONFIG_FILE) -> AzureSettings:
    j = _read_file(path)
    cfg = {k: os.getenv(env, "") or str(j.get(k) or "") for k, env in _ENV.items()}
    missing = [_ENV[k] for k, v in cfg.items() if not v]
    if missing:
        raise RuntimeError(f"Azure OpenAI not configured. Missing: {', '.join(missing)}")
    per_file = j.get("deployments") if isinstance(j.get("deployments"), dict) else {}
    roles = {}
    for role in ROLES:
        dep = os.getenv(f"AZURE_OPENAI_{role.upper()}_DEPLOYMENT", "") or str(per_file.get(role) or "")
        if dep: roles[role] = dep
    return AzureSettings(role_deployments=roles, **cfg)

def is_configured() -> bool:
    try:
        settings()
    except RuntimeError:
        return False
    return True

def client() -> AzureOpenAI:
    s = settings()
    return AzureOpenAI(azure_endpoint=s.endpoint, api_key=s.api_key, api_version=s.api_version)

def async_client() -> AsyncAzureOpenAI:
    # callers close it (llm_bridge uses async with); its transport belongs to the loop that made it
    s = settings()
    return AsyncAzureOpenAI(azure_endpoint=s.endpoint, api_key=s.api_key, api_version=s.api_version)
