"""Matcher: FAQ scoring and topic routing (rule-based, no API calls)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .config import (
    log,
    SIGNIFICANT_TOKEN_MIN_LEN, THRESHOLD_FAQ_CONFIDENT, THRESHOLD_FAQ_CONTEXT,
)
from .knowledge import FAQ, KnowledgeDocument


class TopicTag(str, Enum):
    LEAD_SCORING = "lead_scoring"
    CHURN = "churn"
    CHANNELS = "channels"
    ATTRIBUTION = "attribution"
    COMPLIANCE = "compliance"
    DATA_FLOW = "data_flow"
    TOOL = "tool"


# Fixed rendering priority; set order never matters.
TOPIC_PRIORITY = (
    TopicTag.LEAD_SCORING,
    TopicTag.CHURN,
    TopicTag.CHANNELS,
    TopicTag.ATTRIBUTION,
    TopicTag.COMPLIANCE,
    TopicTag.DATA_FLOW,
    TopicTag.TOOL,
)

PREDICTIVE_TOPICS = frozenset({TopicTag.LEAD_SCORING, TopicTag.CHURN})


@dataclass(frozen=True)
class MatchResult:
    """Best FAQ plus the topic tags a question routes to.

    Attributes:
        faq: Highest-scoring FAQ, ``None`` when nothing scored above 0.
        score: Share of significant tokens found in ``faq.question`` (0–1).
        topics: Tags from :func:`route_topics`.
    """

    faq: Optional[FAQ] = None
    score: float = 0.0
    topics: frozenset = field(default_factory=frozenset)

    @property
    def confident(self) -> bool:
        """FAQ good enough to be the answer on its own."""
        return self.faq is not None and self.score > THRESHOLD_FAQ_CONFIDENT

    @property
    def usable_as_context(self) -> bool:
        """FAQ good enough to hand to the completion service."""
        return self.faq is not None and self.score > THRESHOLD_FAQ_CONTEXT

    def has(self, *tags: TopicTag) -> bool:
        return any(t in self.topics for t in tags)


def significant_tokens(question: str) -> list[str]:
    """Lowercased whitespace tokens longer than 3 chars, punctuation kept."""
    return [t for t in (question or "").lower().split() if len(t) >= SIGNIFICANT_TOKEN_MIN_LEN]


def find_best_faq(question: str, faqs: list[FAQ]) -> tuple[Optional[FAQ], float]:
    """Score every FAQ by token overlap with its question text.

    ``score = hits / max(1, n_significant)`` where a hit is a significant
    token occurring as a substring of the FAQ's lowercased question. Only a
    strictly higher score replaces the current best, so ties keep the FAQ
    that appears first.

    Returns:
        ``(faq, score)``; ``(None, 0.0)`` when no FAQ scores above zero.
    """
    tokens = significant_tokens(question)
    if not tokens:
        return None, 0.0

    best, best_score = None, 0.0
    denom = max(1, len(tokens))
    for faq in faqs:
        fq = faq.question.lower()
        hits = sum(1 for t in tokens if t in fq)
        score = hits / denom
        if score > best_score:
            best, best_score = faq, score
    return best, best_score


def _has_any(*terms: str) -> Callable[[str, KnowledgeDocument], bool]:
    return lambda ql, doc: any(t in ql for t in terms)


_ACRONYM_ATTRIBUTION = re.compile(r"\b(mta|mmm)\b")


def _is_attribution(ql: str, doc: KnowledgeDocument) -> bool:
    return bool(_ACRONYM_ATTRIBUTION.search(ql)) or "attribution" in ql


def _is_data_flow(ql: str, doc: KnowledgeDocument) -> bool:
    return ("data" in ql and ("collect" in ql or "flow" in ql)) or "segment" in ql


def _names_tool(ql: str, doc: KnowledgeDocument) -> bool:
    return any(tool.name.lower() in ql for tool in doc.tools())


# (tag, predicate) evaluated against the lowercased question. "braze" AND
# "channel" is subsumed by "channel" alone.
TOPIC_RULES: list[tuple[TopicTag, Callable[[str, KnowledgeDocument], bool]]] = [
    (TopicTag.LEAD_SCORING, _has_any("lead scor")),
    (TopicTag.CHURN, _has_any("churn")),
    (TopicTag.CHANNELS, _has_any("channel")),
    (TopicTag.ATTRIBUTION, _is_attribution),
    (TopicTag.COMPLIANCE, _has_any("gdpr", "compliance", "privacy", "consent")),
    (TopicTag.DATA_FLOW, _is_data_flow),
    (TopicTag.TOOL, _names_tool),
]


def route_topics(question: str, doc: KnowledgeDocument) -> frozenset:
    """Every tag whose trigger fires; independent of the FAQ score."""
    ql = (question or "").lower()
    return frozenset(tag for tag, pred in TOPIC_RULES if pred(ql, doc))


def tools_named_in(question: str, doc: KnowledgeDocument) -> list:
    ql = (question or "").lower()
    return [tool for tool in doc.tools() if tool.name.lower() in ql]


def match_question(question: str, doc: KnowledgeDocument) -> MatchResult:
    faq, score = find_best_faq(question, doc.faqs)
    topics = route_topics(question, doc)
    log.debug("match: score=%.2f faq=%s topics=%s",
              score, faq.question if faq else None,
              sorted(t.value for t in topics))
    return MatchResult(faq=faq, score=score, topics=topics)
