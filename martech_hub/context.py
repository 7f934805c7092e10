"""Context assembly for the completion service.

Sections are appended in a fixed order and skipped when the question does not
route to them or the document lacks the data. An empty result falls back to
the full document so the completion service never gets a bare prompt.
"""

from __future__ import annotations

from .config import log, MAX_CONTEXT_FAQS, MAX_CONTEXT_CHARS
from .knowledge import KnowledgeDocument
from .matcher import (
    MatchResult, TopicTag, PREDICTIVE_TOPICS,
    significant_tokens, tools_named_in,
)


def _section(title: str, lines: list[str]) -> str:
    return f"=== {title} ===\n" + "\n".join(lines)


def _faq_lines(faqs) -> list[str]:
    return ["\n".join((f"Q: {f.question}", f"A: {f.answer}", "")) for f in faqs]


def _model_lines(models) -> list[str]:
    lines = []
    for m in models:
        lines.append(f"{m.name}: {m.description}")
        if m.scale:
            lines.append(f"Scale: {m.scale}")
        for t in m.tiers:
            label = f" ({t.label})" if t.label else ""
            lines.append(f"- {t.tier}{label}: {t.action}")
        lines.append("")
    return lines


def _tool_lines(tools) -> list[str]:
    lines = []
    for tool in tools:
        lines.append(f"{tool.name}: {tool.description}")
        if tool.capabilities:
            lines.append(f"Capabilities: {', '.join(tool.capabilities)}")
        if tool.channels:
            lines.append(f"Channels: {', '.join(tool.channels)}")
        if tool.integrations:
            lines.append(f"Integrations: {', '.join(tool.integrations)}")
        lines.append("")
    return lines


def _framework_lines(fw) -> list[str]:
    lines = [fw.description] if fw.description else []
    lines += [f"- {a.name} ({a.purpose}): {a.description}" for a in fw.approaches]
    return lines


def _compliance_lines(c) -> list[str]:
    lines = []
    if c.regulations:
        lines.append(f"Regulations: {', '.join(c.regulations)}")
    if c.principle:
        lines.append(f"Principle: {c.principle}")
    lines += [f"- {h.area}: {'; '.join(h.requirements)}" for h in c.high_risk_areas]
    return lines


def _flow_lines(flows) -> list[str]:
    return [f"{f.name}: {f.source} -> {f.destination} ({f.data_type})" for f in flows]


def relevant_faqs(question: str, doc: KnowledgeDocument, match: MatchResult,
                  limit: int = MAX_CONTEXT_FAQS) -> list:
    """FAQs sharing any significant token with the question or answer text.

    A context-grade best match leads; the rest follow in document order.
    """
    tokens = significant_tokens(question)
    picked = []
    if match.usable_as_context:
        picked.append(match.faq)
    if tokens:
        for faq in doc.faqs:
            if len(picked) >= limit:
                break
            if any(f is faq for f in picked):
                continue
            text = f"{faq.question}\n{faq.answer}".lower()
            if any(t in text for t in tokens):
                picked.append(faq)
    return picked[:limit]


def context_tools(question: str, doc: KnowledgeDocument, match: MatchResult) -> list:
    """Tools named in the question, else every tool with channels for CHANNELS."""
    named = tools_named_in(question, doc)
    if named:
        return named
    if match.has(TopicTag.CHANNELS):
        return [t for t in doc.tools() if t.channels]
    return []


def render_document(doc: KnowledgeDocument) -> str:
    """Every section of the document, unfiltered."""
    blocks = []
    if doc.faqs:
        blocks.append(_section("FAQS", _faq_lines(doc.faqs)))
    if doc.predictive_models:
        blocks.append(_section("PREDICTIVE MODELS", _model_lines(doc.predictive_models)))
    for cat in doc.categories:
        header = [cat.description, ""] if cat.description else []
        blocks.append(_section(f"TOOLS: {cat.name}", header + _tool_lines(cat.tools)))
    if doc.measurement_framework:
        blocks.append(_section("MEASUREMENT FRAMEWORK", _framework_lines(doc.measurement_framework)))
    if doc.compliance:
        blocks.append(_section("COMPLIANCE", _compliance_lines(doc.compliance)))
    if doc.data_flows:
        blocks.append(_section("DATA FLOWS", _flow_lines(doc.data_flows)))
    return "\n\n".join(b.strip() for b in blocks)[:MAX_CONTEXT_CHARS]


def assemble_context(question: str, doc: KnowledgeDocument, match: MatchResult) -> str:
    blocks = []

    faqs = relevant_faqs(question, doc, match)
    if faqs:
        blocks.append(_section("RELEVANT FAQS", _faq_lines(faqs)))

    if match.has(*PREDICTIVE_TOPICS) and doc.predictive_models:
        blocks.append(_section("PREDICTIVE MODELS", _model_lines(doc.predictive_models)))

    if match.has(TopicTag.TOOL, TopicTag.CHANNELS):
        tools = context_tools(question, doc, match)
        if tools:
            blocks.append(_section("TOOLS", _tool_lines(tools)))

    fw = doc.measurement_framework
    if match.has(TopicTag.ATTRIBUTION) and fw and (fw.description or fw.approaches):
        blocks.append(_section("MEASUREMENT FRAMEWORK", _framework_lines(fw)))

    if match.has(TopicTag.COMPLIANCE) and doc.compliance:
        blocks.append(_section("COMPLIANCE", _compliance_lines(doc.compliance)))

    if match.has(TopicTag.DATA_FLOW) and doc.data_flows:
        blocks.append(_section("DATA FLOWS", _flow_lines(doc.data_flows)))

    if not blocks:
        log.debug("context: no focused sections, using full document")
        return render_document(doc)

    context = "\n\n".join(b.strip() for b in blocks)[:MAX_CONTEXT_CHARS]
    log.debug("context: %d sections, %d chars", len(blocks), len(context))
    return context
