"""Deterministic answers: no external service, same input gives same text.

``ANSWER_RULES`` is the whole policy: an ordered list of (name, predicate,
renderer). The first predicate that holds renders the answer.
"""

from __future__ import annotations

from typing import Callable, Optional

from .config import ENGAGEMENT_PLATFORM
from .knowledge import KnowledgeDocument
from .live_data import LiveSnapshot
from .matcher import MatchResult, TopicTag
from .context import context_tools


def _faq_answer(question, doc, match, snapshot) -> str:
    return f"**{match.faq.question}**\n\n{match.faq.answer}"


def _find_model(doc: KnowledgeDocument, keyword: str):
    for m in doc.predictive_models:
        if keyword in m.name.lower():
            return m
    return None


def _model_answer(keyword: str) -> Callable:
    def render(question, doc, match, snapshot) -> str:
        m = _find_model(doc, keyword)
        parts = [f"**{m.name}**", "", m.description]
        if m.scale:
            parts += ["", f"**Scale:** {m.scale}"]
        if m.tiers:
            parts += ["", "**Tiers:**"]
            for t in m.tiers:
                label = f" ({t.label})" if t.label else ""
                parts.append(f"• **{t.tier}**{label}: {t.action}")
        return "\n".join(parts)
    return render


def _channels_answer(question, doc, match, snapshot) -> str:
    blocks = []
    for tool in context_tools(question, doc, match):
        if not tool.channels:
            continue
        lines = [f"**{tool.name} Channels**", ""]
        lines += [f"• {ch}" for ch in tool.channels]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _attribution_answer(question, doc, match, snapshot) -> str:
    fw = doc.measurement_framework
    parts = ["**Measurement Framework**"]
    if fw.description:
        parts += ["", fw.description]
    if fw.approaches:
        parts.append("")
        parts += [f"• **{a.name}** ({a.purpose}): {a.description}" for a in fw.approaches]
    return "\n".join(parts)


def _compliance_answer(question, doc, match, snapshot) -> str:
    c = doc.compliance
    parts = ["**Compliance & Privacy**"]
    if c.regulations:
        parts += ["", f"**Regulations:** {', '.join(c.regulations)}"]
    if c.principle:
        parts += ["", f"**Principle:** {c.principle}"]
    if c.high_risk_areas:
        parts += ["", "**High-Risk Areas:**"]
        for h in c.high_risk_areas:
            parts.append(f"• **{h.area}**")
            parts += [f"  - {req}" for req in h.requirements]
    return "\n".join(parts)


def _data_flow_answer(question, doc, match, snapshot) -> str:
    parts = ["**Data Flows**", ""]
    for f in doc.data_flows:
        kind = f" ({f.data_type})" if f.data_type else ""
        parts.append(f"• **{f.name}**: {f.source} → {f.destination}{kind}")
        if f.description:
            parts.append(f"  {f.description}")
    return "\n".join(parts)


def _platform_menu(question, doc, match, snapshot: Optional[LiveSnapshot]) -> str:
    # an empty snapshot is falsy but may still carry the connection flag
    connected = snapshot is not None and snapshot.braze_connected
    lines = [
        f"**{ENGAGEMENT_PLATFORM} Campaign Questions**",
        "",
        "Here are some things you can ask me:",
        "• How many campaigns do we have?",
        "• Show me our campaigns",
        "• What are the most recent campaigns?",
        "• Find campaigns called \"Welcome\"",
        "",
    ]
    if connected:
        lines.append(f"{ENGAGEMENT_PLATFORM} is connected, so I can answer these from live campaign data.")
    else:
        lines.append(
            f"Live campaign data requires {ENGAGEMENT_PLATFORM} to be connected. "
            "Add your API key and REST endpoint in Settings."
        )
    return "\n".join(lines)


def _generic_menu(question, doc, match, snapshot) -> str:
    return "\n".join([
        "I can help with questions about our marketing technology stack:",
        "",
        "• **Tools**: What does each platform do and how do they integrate?",
        "• **Data**: How is customer data collected and where does it flow?",
        f"• **Campaigns**: How many {ENGAGEMENT_PLATFORM} campaigns do we have? What's most recent?",
        "• **Attribution**: How do we measure marketing impact (MTA, MMM)?",
        "• **Compliance**: What are our GDPR and consent requirements?",
        "",
        "Try asking something like \"How does lead scoring work?\"",
    ])


def _mentions_platform(question: str) -> bool:
    ql = (question or "").lower()
    return ENGAGEMENT_PLATFORM.lower() in ql or "campaign" in ql


def _has_model(keyword: str) -> Callable:
    return lambda doc: _find_model(doc, keyword) is not None


def _has_channel_tools(question, doc, match) -> bool:
    return any(t.channels for t in context_tools(question, doc, match))


def _has_framework(doc) -> bool:
    fw = doc.measurement_framework
    return fw is not None and bool(fw.description or fw.approaches)


def _topic(tag: TopicTag, has_data: Callable) -> Callable:
    return lambda q, doc, match, snap: match.has(tag) and has_data(doc)


ANSWER_RULES: list[tuple[str, Callable, Callable]] = [
    ("faq_confident", lambda q, doc, match, snap: match.confident, _faq_answer),
    ("lead_scoring", _topic(TopicTag.LEAD_SCORING, _has_model("lead")), _model_answer("lead")),
    ("churn", _topic(TopicTag.CHURN, _has_model("churn")), _model_answer("churn")),
    ("channels",
     lambda q, doc, match, snap: match.has(TopicTag.CHANNELS) and _has_channel_tools(q, doc, match),
     _channels_answer),
    ("attribution", _topic(TopicTag.ATTRIBUTION, _has_framework), _attribution_answer),
    ("compliance", _topic(TopicTag.COMPLIANCE, lambda doc: doc.compliance is not None), _compliance_answer),
    ("data_flow", _topic(TopicTag.DATA_FLOW, lambda doc: bool(doc.data_flows)), _data_flow_answer),
    ("faq_best_effort", lambda q, doc, match, snap: match.faq is not None and match.score > 0, _faq_answer),
    ("platform_menu", lambda q, doc, match, snap: _mentions_platform(q), _platform_menu),
    ("generic_menu", lambda q, doc, match, snap: True, _generic_menu),
]


def select_rule(question: str, doc: KnowledgeDocument, match: MatchResult,
                snapshot: Optional[LiveSnapshot] = None) -> tuple[str, Callable]:
    for name, applies, render in ANSWER_RULES:
        if applies(question, doc, match, snapshot):
            return name, render
    # generic_menu always applies
    raise AssertionError("no answer rule applied")


def render_fallback_answer(question: str, doc: KnowledgeDocument, match: MatchResult,
                           snapshot: Optional[LiveSnapshot] = None) -> str:
    _, render = select_rule(question, doc, match, snapshot)
    return render(question, doc, match, snapshot)
