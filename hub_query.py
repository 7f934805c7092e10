#!/usr/bin/env python3
"""
hub_query.py: one-shot question to the MarTech Hub
Usage: python3 hub_query.py "your question"

Output JSON:
  {"success": true, "answer": "...", "model": "...", "source": "...", "meta": {...}}
"""
import json, os, sys
from pathlib import Path


def load_env():
    """Load .env file into os.environ."""
    env_file = Path(__file__).parent / '.env'
    if env_file.exists():
        for line in env_file.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                k, v = line.split('=', 1)
                os.environ.setdefault(k.strip(), v.strip())


def run_status() -> dict:
    """Quick health check: config, knowledge document, Braze."""
    load_env()
    from martech_hub import config, load_knowledge, BrazeProvider, DocumentUnavailable

    result = {"config": {}, "knowledge": {}, "braze": {}}

    for key in ["OPENAI_API_KEY", "HUB_ADMIN_PASSWORD", "HUB_BRAZE_API_KEY", "HUB_BRAZE_ENDPOINT"]:
        result["config"][key] = "set" if os.getenv(key, "") else "missing"
    result["config"]["missing"] = config.validate_config()

    try:
        doc = load_knowledge(config.KNOWLEDGE_FILE)
        result["knowledge"] = {
            "status": "loaded",
            "path": config.KNOWLEDGE_FILE,
            "faqs": len(doc.faqs),
            "tools": len(doc.tools()),
            "data_flows": len(doc.data_flows),
        }
    except DocumentUnavailable as e:
        result["knowledge"] = {"status": f"unavailable: {e}"}

    provider = BrazeProvider(config.BRAZE_API_KEY, config.BRAZE_ENDPOINT)
    result["braze"] = {"status": "configured" if provider.health() else "not configured"}
    return result


def _provider(campaigns_file: str = ""):
    from martech_hub import config, BrazeProvider, StaticProvider

    if campaigns_file:
        data = json.loads(Path(campaigns_file).read_text(encoding='utf-8'))
        if isinstance(data, dict):
            data = data.get("campaigns", [])
        return StaticProvider(data)
    braze = BrazeProvider(config.BRAZE_API_KEY, config.BRAZE_ENDPOINT)
    return braze if braze.health() else None


def run_hub(question: str, use_completion=None, campaigns_file: str = "") -> dict:
    load_env()
    from martech_hub import config, load_knowledge, run, DocumentUnavailable

    try:
        doc = load_knowledge(config.KNOWLEDGE_FILE)
    except DocumentUnavailable as e:
        return {"success": False, "error": str(e)}

    provider = _provider(campaigns_file)
    snapshot = provider.snapshot() if provider else None
    result = run(question, doc, snapshot, use_completion=use_completion)
    return {"success": True, **result}


HELP_TEXT = """MarTech Hub: answers about the marketing stack, with live Braze data

Usage:
  python3 hub_query.py "your question"                       Ask (completion service if configured)
  python3 hub_query.py --no-llm "question"                   Deterministic answer only
  python3 hub_query.py --campaigns camps.json "question"     Use campaigns from a JSON file
  python3 hub_query.py --status                              Config + knowledge + Braze check
  python3 hub_query.py --help                                Show this help

Environment:
  Configure via .env file (see .env.example) or env vars.
  Key settings: OPENAI_API_KEY, HUB_KNOWLEDGE_FILE, HUB_BRAZE_API_KEY, HUB_BRAZE_ENDPOINT
"""


if __name__ == "__main__":
    args = sys.argv[1:]

    if not args or "--help" in args or "-h" in args:
        print(HELP_TEXT)
        sys.exit(0)

    if "--status" in args:
        print(json.dumps(run_status(), ensure_ascii=False, indent=2))
        sys.exit(0)

    campaigns_file = ""
    if "--campaigns" in args:
        i = args.index("--campaigns")
        if i + 1 >= len(args):
            print("--campaigns needs a file path")
            sys.exit(2)
        campaigns_file = args[i + 1]
        del args[i:i + 2]

    use_completion = False if "--no-llm" in args else None
    q = " ".join(a for a in args if not a.startswith("--")).strip()
    if not q:
        print(json.dumps({"success": False, "error": "Question is required"}))
        sys.exit(2)

    result = run_hub(q, use_completion=use_completion, campaigns_file=campaigns_file)
    print(json.dumps(result, ensure_ascii=False, indent=2))
    sys.exit(0 if result.get("success") else 1)
