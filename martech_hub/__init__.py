"""MarTech Hub: answers questions about the marketing stack.

Architecture:
- KnowledgeDocument: curated JSON (tools, models, flows, compliance, FAQs), read-only
- Matcher: FAQ token-overlap scoring + keyword topic routing
- Live data: templated answers from a Braze campaign snapshot
- Context: focused knowledge sections for the completion service
- Fallback: ordered rule table producing a deterministic answer
- Pipeline: live data → match → completion (optional) → fallback

Boundaries:
- The hub never stores anything: documents and snapshots live for one request
- Braze / Airtable calls are thin proxies; the answer core never calls them
"""

# Re-export public API
from .config import env, log, validate_config, completion_configured
from .errors import InputError, DocumentUnavailable, ServiceUnavailable, UpstreamError
from .knowledge import KnowledgeDocument, FAQ, load_knowledge, search_knowledge
from .matcher import (
    TopicTag, MatchResult,
    significant_tokens, find_best_faq, route_topics, match_question,
)
from .context import assemble_context, render_document
from .fallback import render_fallback_answer
from .live_data import (
    LiveRecord, LiveSnapshot,
    normalize_records, matches_data_intent, answer_live, synthesize,
)
from .answer import build_system_prompt, complete
from .providers import LiveDataProvider, BrazeProvider, StaticProvider
from .pipeline import run

__all__ = [
    # knowledge document
    "KnowledgeDocument", "FAQ", "load_knowledge", "search_knowledge",
    # matcher
    "TopicTag", "MatchResult",
    "significant_tokens", "find_best_faq", "route_topics", "match_question",
    # context + deterministic answers
    "assemble_context", "render_document", "render_fallback_answer",
    # live data
    "LiveRecord", "LiveSnapshot", "normalize_records", "matches_data_intent", "answer_live", "synthesize",
    "LiveDataProvider", "BrazeProvider", "StaticProvider",
    # completion service + pipeline
    "build_system_prompt", "complete", "run",
    # errors
    "InputError", "DocumentUnavailable", "ServiceUnavailable", "UpstreamError",
    # config
    "env", "log", "validate_config", "completion_configured",
]
