"""Pipeline: question → (live data | knowledge match) → completion → answer.

LLM call strategy:
- no API key configured  → 0 calls, deterministic answer
- API key configured     → 1 call; any failure falls back to the deterministic answer
"""

from typing import Callable, Optional

from .answer import build_system_prompt, complete as default_complete
from .config import log, completion_configured, ANSWER_MODEL
from .context import assemble_context
from .errors import InputError, ServiceUnavailable
from .fallback import select_rule
from .knowledge import KnowledgeDocument
from .live_data import LiveSnapshot, matches_data_intent, answer_live
from .matcher import match_question
from .metrics import Metrics

MODEL_LIVE = "live-data"
MODEL_KNOWLEDGE = "knowledge-base"


def run(question: str, doc: KnowledgeDocument, snapshot: Optional[LiveSnapshot] = None,
        use_completion: Optional[bool] = None,
        complete: Optional[Callable[[str, str], str]] = None) -> dict:
    """Answer one question. Never raises for service failures.

    Args:
        question: Non-empty user question.
        doc: Loaded knowledge document (read-only).
        snapshot: Live campaign data sent with the request, if any.
        use_completion: Force the completion service on/off; ``None`` means
            "on when an API key is configured".
        complete: ``(system_prompt, question) -> str`` client; defaults to
            :func:`martech_hub.answer.complete`.

    Returns:
        ``{"question", "answer", "model", "source", "meta"}``.
    """
    if not question or not question.strip():
        raise InputError("Question is required")

    m = Metrics()
    if use_completion is None:
        use_completion = completion_configured()
    complete = complete or default_complete
    if snapshot is None:
        snapshot = LiveSnapshot()

    meta = {
        "faq": None,
        "faq_score": 0.0,
        "topics": [],
        "rule": None,
        "live_intent": None,
        "completion_used": False,
        "fallback_reason": None,
    }

    # ── Step 1: live data ──
    live_answer = None
    if snapshot and matches_data_intent(question):
        meta["live_intent"], live_answer = answer_live(question, snapshot.records)
        m.step("live_data", live_answer is not None, {"records": len(snapshot.records)})
    else:
        m.step("live_data", False, {"reason": "no_snapshot" if not snapshot else "no_intent"})

    if live_answer and not use_completion:
        log.info("answer: source=live-data intent=%s", meta["live_intent"])
        return _result(question, live_answer, MODEL_LIVE, MODEL_LIVE, meta, m)

    # ── Step 2: knowledge match ──
    match = match_question(question, doc)
    meta["faq"] = match.faq.question if match.faq else None
    meta["faq_score"] = round(match.score, 4)
    meta["topics"] = sorted(t.value for t in match.topics)
    m.score("faq_score", meta["faq_score"])
    m.step("match", True, {"topics": meta["topics"]})

    # ── Step 3: completion service ──
    if use_completion:
        context = assemble_context(question, doc, match)
        if live_answer:
            context = f"{context}\n\n=== LIVE DATA ===\n{live_answer}"
        m.step("assemble_context", True, {"chars": len(context)})
        try:
            text = complete(build_system_prompt(context), question)
            if not (text or "").strip():
                raise ServiceUnavailable("empty completion")
            meta["completion_used"] = True
            m.step("completion", True)
            source = "live-data+openai" if live_answer else "knowledge-base+openai"
            log.info("answer: source=%s", source)
            return _result(question, text, ANSWER_MODEL, source, meta, m)
        except Exception as e:  # any client failure means "service unavailable"
            log.warning("completion unavailable, using deterministic answer: %s", e)
            meta["fallback_reason"] = str(e)
            m.step("completion", False, {"error": str(e)})

    # ── Step 4: deterministic fallback ──
    if live_answer:
        return _result(question, live_answer, MODEL_LIVE, MODEL_LIVE, meta, m)

    rule, render = select_rule(question, doc, match, snapshot)
    meta["rule"] = rule
    m.flag("rule", rule)
    log.info("answer: source=knowledge-base rule=%s score=%.2f", rule, match.score)
    return _result(question, render(question, doc, match, snapshot),
                   MODEL_KNOWLEDGE, MODEL_KNOWLEDGE, meta, m)


def _result(question: str, answer: str, model: str, source: str, meta: dict, m: Metrics) -> dict:
    report = m.finalize()
    meta["decision_trace"] = m.trace()
    meta["duration_sec"] = report["duration_sec"]
    return {
        "question": question,
        "answer": answer,
        "model": model,
        "source": source,
        "meta": meta,
    }
