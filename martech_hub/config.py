"""Configuration: env vars, thresholds, logging."""

import os
import logging
from pathlib import Path


def env(name: str, default: str = "") -> str:
    v = os.getenv(name, default)
    return v.strip() if isinstance(v, str) else v


# ── Logging ──
log = logging.getLogger("martech_hub")
if not log.handlers:
    _h = logging.StreamHandler()
    _h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", datefmt="%H:%M:%S"))
    log.addHandler(_h)
    log.setLevel(logging.DEBUG if os.getenv("HUB_DEBUG") else logging.INFO)


# ── Paths ──
PROJECT_ROOT = Path(__file__).resolve().parent.parent
KNOWLEDGE_FILE = env("HUB_KNOWLEDGE_FILE", str(PROJECT_ROOT / "data" / "knowledge-base.json"))

# ── Completion service ──
OAI_BASE = env("HUB_OAI_BASE", "https://api.openai.com/v1")
OAI_KEY = env("OPENAI_API_KEY")
ANSWER_MODEL = env("HUB_ANSWER_MODEL", "gpt-4o-mini")
ANSWER_MAX_TOKENS = int(env("HUB_ANSWER_MAX_TOKENS", "2000"))
ANSWER_TEMPERATURE = float(env("HUB_ANSWER_TEMPERATURE", "0.7"))
CHAT_TIMEOUT_SEC = float(env("HUB_CHAT_TIMEOUT", "30"))
HUB_VERSION = env("HUB_VERSION", "1.0.0")

# ── Third-party platforms ──
ENGAGEMENT_PLATFORM = "Braze"
BRAZE_API_KEY = env("HUB_BRAZE_API_KEY")
BRAZE_ENDPOINT = env("HUB_BRAZE_ENDPOINT")
AIRTABLE_API = env("HUB_AIRTABLE_API", "https://api.airtable.com/v0")
PROXY_TIMEOUT_SEC = float(env("HUB_PROXY_TIMEOUT", "20"))

# ── Admin login ──
ADMIN_USERNAME = env("HUB_ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = env("HUB_ADMIN_PASSWORD")

# ── HTTP server ──
CORS_ORIGINS = [o.strip() for o in env("HUB_CORS_ORIGINS", "*").split(",") if o.strip()]

# ── Tunable thresholds ──
# FAQ score above CONFIDENT is a final answer; above CONTEXT it is only context.
THRESHOLD_FAQ_CONFIDENT = float(env("HUB_FAQ_CONFIDENT", "0.5"))
THRESHOLD_FAQ_CONTEXT = float(env("HUB_FAQ_CONTEXT", "0.3"))
SIGNIFICANT_TOKEN_MIN_LEN = 4

MAX_CONTEXT_FAQS = 3
MAX_CONTEXT_CHARS = int(env("HUB_MAX_CONTEXT_CHARS", "12000"))

LIVE_LIST_LIMIT = 10
LIVE_RECENT_LIMIT = 5
LIVE_SEARCH_LIMIT = 5


def completion_configured() -> bool:
    """True when the completion service has a base URL and a key."""
    return bool(OAI_BASE and OAI_KEY)


def validate_config() -> list[str]:
    """Return the env vars that are missing for full functionality.

    The hub runs without any of them (deterministic answers only), so this
    reports rather than raises.
    """
    missing = []
    if not OAI_KEY:
        missing.append("OPENAI_API_KEY")
    if not ADMIN_PASSWORD:
        missing.append("HUB_ADMIN_PASSWORD")
    if not Path(KNOWLEDGE_FILE).exists():
        missing.append("HUB_KNOWLEDGE_FILE")
    if missing:
        log.warning("Missing env vars: %s (copy .env.example to .env)", ", ".join(missing))
    return missing
