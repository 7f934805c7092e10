"""Completion service: OpenAI-compatible chat call with the knowledge context."""

import requests

from .config import (
    log,
    OAI_BASE, OAI_KEY, ANSWER_MODEL, ANSWER_MAX_TOKENS, ANSWER_TEMPERATURE,
    CHAT_TIMEOUT_SEC,
)
from .errors import ServiceUnavailable

SYSTEM_PROMPT = """You are MarTech Hub, an intelligent assistant for the company's marketing technology stack.

Your knowledge comes from a curated knowledge base covering:
- MarTech tools, platforms and integrations
- Predictive models (lead scoring, churn)
- Data flows between systems
- The measurement framework (attribution, MTA, MMM)
- Compliance and privacy requirements
- Live campaign data from Braze, when connected

INSTRUCTIONS:
1. Answer questions directly and helpfully based on the knowledge provided
2. If the knowledge contains relevant information, USE IT to give specific answers
3. Reference specific tools, processes, or documents when relevant
4. Use **bold** for emphasis and bullet points for lists
5. Be concise but complete
6. If you truly don't have information about something, say so honestly"""


def build_system_prompt(context: str) -> str:
    if context:
        return f"{SYSTEM_PROMPT}\n\n--- KNOWLEDGE BASE ---\n{context}\n--- END KNOWLEDGE BASE ---"
    return f"{SYSTEM_PROMPT}\n\nNote: No knowledge base is currently connected."


def chat(base, key, model, messages, timeout=CHAT_TIMEOUT_SEC):
    """One OAI-compatible chat completion call. No retries.

    Raises:
        ServiceUnavailable: transport error, non-2xx, bad payload or empty content.
    """
    try:
        r = requests.post(
            f"{base}/chat/completions",
            headers={"Authorization": f"Bearer {key}", "Content-Type": "application/json"},
            json={
                "model": model,
                "messages": messages,
                "max_tokens": ANSWER_MAX_TOKENS,
                "temperature": ANSWER_TEMPERATURE,
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise ServiceUnavailable(f"chat request failed: {e}") from e

    if not r.ok:
        try:
            err = r.json().get("error")
            detail = err.get("message", "") if isinstance(err, dict) else str(err or "")
        except (ValueError, AttributeError):
            detail = (r.text or "")[:240].replace("\n", " ")
        raise ServiceUnavailable(f"chat API {r.status_code}: {detail or 'error'}")

    try:
        payload = r.json()
    except ValueError as e:
        ctype = r.headers.get("content-type", "")
        raise ServiceUnavailable(f"Non-JSON response from chat API (content-type={ctype})") from e

    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not choices:
        raise ServiceUnavailable("Invalid chat response payload: no choices")

    content = ((choices[0] or {}).get("message") or {}).get("content") or ""
    if not content.strip():
        raise ServiceUnavailable("chat API returned empty content")
    return content


def complete(system_prompt: str, question: str) -> str:
    """Ask the configured model; the default completion client for the pipeline."""
    log.debug("answer_model_used=%s", ANSWER_MODEL)
    return chat(OAI_BASE, OAI_KEY, ANSWER_MODEL, [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": question},
    ])
