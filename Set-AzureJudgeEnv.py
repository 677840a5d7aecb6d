# Set-AzureJudgeEnv.py
"""Turn .azure_config.json into env vars and launch a command with the Azure backends selected."""
import os, json, argparse, subprocess, sys

DEFAULT_API_VERSION = "2024-08-01-preview"
REQUIRED = ("endpoint", "api_key", "deployment")
BACKEND_KEYS = ("JUDGE_BACKEND", "HINT_BACKEND", "PROVISIONER_BACKEND")
ROLES = ("judge", "provisioner", "hint")

def _pick(raw: dict, short: str) -> str:
    # short keys are what judge_core.azure_cfg reads; env-style keys are accepted too
    return str(raw.get(short) or raw.get("AZURE_OPENAI_" + short.upper()) or "")

def build_env(raw: dict) -> dict:
    missing = [k for k in REQUIRED if not _pick(raw, k)]
    if missing:
        raise SystemExit(f"config is missing: {', '.join(missing)}")
    env = {"AZURE_OPENAI_" + k.upper(): _pick(raw, k) for k in REQUIRED}
    env["AZURE_OPENAI_API_VERSION"] = _pick(raw, "api_version") or DEFAULT_API_VERSION
    per_role = raw.get("deployments") or {}
    for role in ROLES:
        if per_role.get(role):
            env[f"AZURE_OPENAI_{role.upper()}_DEPLOYMENT"] = str(per_role[role])
    for k in BACKEND_KEYS:
        env[k] = str(raw.get(k) or "azure")
    return env

def main():
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--config", default=".azure_config.json")
    ap.add_argument("--run", nargs=argparse.REMAINDER,
                    help="command to launch, e.g. --run python autoplay.py --mode coding --profile perfect")
    args = ap.parse_args()

    with open(args.config, "r", encoding="utf-8") as f:
        extra = build_env(json.load(f))

    if not args.run:
        for k, v in sorted(extra.items()):
            print(f"{k}={'***' if k.endswith('API_KEY') else v}")
        print("env is not persisted to the parent shell; pass --run to launch with it", file=sys.stderr)
        return

    subprocess.run(args.run, env={**os.environ, **extra}, check=True)

if __name__ == "__main__":
    main()
