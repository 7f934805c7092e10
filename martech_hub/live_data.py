"""Live data: answer campaign questions straight from a Braze snapshot.

The snapshot comes with the request (the browser already fetched it through
``/api/braze-campaigns``). Records are normalized, sorted by recency and
rendered with fixed markdown templates. Anything that is not a clear
count/search/recency/list question returns ``None`` so the caller falls
through to the knowledge matcher.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from .config import (
    log, ENGAGEMENT_PLATFORM,
    LIVE_LIST_LIMIT, LIVE_RECENT_LIMIT, LIVE_SEARCH_LIMIT,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class LiveRecord(BaseModel):
    """One campaign as reported by the engagement platform."""

    name: str = Field(min_length=1)
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at"))
    last_edited: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("lastEdited", "last_edited"))
    is_draft: bool = Field(
        default=False, validation_alias=AliasChoices("isDraft", "is_draft", "draft"))

    model_config = {"frozen": True}

    @field_validator("created_at", "last_edited", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        return None if v == "" else v

    @field_validator("created_at", "last_edited")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def recency(self) -> datetime:
        return self.last_edited or self.created_at or _EPOCH


def normalize_records(raw) -> list[LiveRecord]:
    """Validate raw dicts into records, dropping malformed ones."""
    if not isinstance(raw, (list, tuple)):
        return []
    records = []
    for item in raw:
        if isinstance(item, LiveRecord):
            records.append(item)
            continue
        if not isinstance(item, dict):
            log.debug("live record skipped: not an object (%s)", type(item).__name__)
            continue
        try:
            records.append(LiveRecord.model_validate(item))
        except ValidationError as e:
            log.debug("live record skipped: %s", e.errors()[0].get("msg", "invalid"))
    return records


def sort_by_recency(records: list[LiveRecord]) -> list[LiveRecord]:
    """Newest first by ``last_edited``, falling back to ``created_at``."""
    return sorted(records, key=lambda r: r.recency, reverse=True)


@dataclass(frozen=True)
class LiveSnapshot:
    """Per-request live data plus the platform connection flags."""

    records: tuple = field(default_factory=tuple)
    braze_connected: bool = False
    airtable_connected: bool = False

    @classmethod
    def from_payload(cls, payload) -> "LiveSnapshot":
        """Build from the ``liveData`` request object; junk becomes empty."""
        if not isinstance(payload, dict):
            return cls()
        raw = payload.get("campaigns")
        if raw is None:
            raw = payload.get("brazeCampaigns")
        records = tuple(normalize_records(raw))
        return cls(
            records=records,
            braze_connected=bool(payload.get("brazeConnected")) or bool(records),
            airtable_connected=bool(payload.get("airtableConnected")),
        )

    def __bool__(self) -> bool:
        return bool(self.records)


# ── Intent patterns ──

_ENTITY = re.compile(r"campaign")
_COUNT = re.compile(r"\b(how many|count|total)\b")
_LIST = re.compile(r"\b(list|show|what|which)\b")
_RECENT = re.compile(r"\b(recent\w*|latest|last|new(est)?)\b")
_SEARCH = re.compile(
    r"campaigns?\b.*?\b(?P<kw>called|named|about|for)\s+"
    r"(?:\"(?P<dq>[^\"]+)\"|'(?P<sq>[^']+)'|(?P<bare>[^?.!\"]+))",
    re.IGNORECASE,
)
# "for"/"about" also appear in ordinary phrasing ("latest campaigns for this
# week"); a miss on them is not a search.
_LOOSE_SEARCH_KEYWORDS = frozenset({"for", "about"})


def matches_data_intent(question: str) -> bool:
    ql = (question or "").lower()
    if not _ENTITY.search(ql):
        return False
    return any(p.search(ql) for p in (_COUNT, _LIST, _RECENT))


# ── Templates ──

def format_date(dt: Optional[datetime]) -> str:
    if dt is None:
        return "Unknown date"
    return f"{dt:%b} {dt.day}, {dt.year}"


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def _record_line(i: int, r: LiveRecord) -> str:
    draft = " (Draft)" if r.is_draft else ""
    return f"{i}. **{r.name}**{draft} - Last edited: {format_date(r.last_edited or r.created_at)}"


def _render_count(records: list[LiveRecord], m) -> str:
    drafts = sum(1 for r in records if r.is_draft)
    active = len(records) - drafts
    return (
        f"**Campaign Overview**\n\n"
        f"You have **{_plural(len(records), 'campaign')}** in {ENGAGEMENT_PLATFORM}.\n\n"
        f"• **Active:** {active}\n"
        f"• **Drafts:** {drafts}"
    )


def _render_list(records: list[LiveRecord], m) -> str:
    shown = records[:LIVE_LIST_LIMIT]
    lines = [f"**Your {ENGAGEMENT_PLATFORM} Campaigns** ({len(records)} total)", ""]
    lines += [_record_line(i, r) for i, r in enumerate(shown, 1)]
    rest = len(records) - len(shown)
    if rest > 0:
        lines += ["", f"...and {rest} more"]
    return "\n".join(lines)


def _render_recent(records: list[LiveRecord], m) -> str:
    shown = records[:LIVE_RECENT_LIMIT]
    lines = ["**Most Recent Campaigns**", ""]
    lines += [_record_line(i, r) for i, r in enumerate(shown, 1)]
    return "\n".join(lines)


def search_term(m) -> str:
    raw = next(g for g in (m.group("dq"), m.group("sq"), m.group("bare")) if g is not None)
    return raw.strip().strip("'\"")


def _render_search(records: list[LiveRecord], m) -> Optional[str]:
    term = search_term(m)
    tl = term.lower()
    hits = [r for r in records if tl in r.name.lower()]
    if not hits:
        if m.group("kw").lower() in _LOOSE_SEARCH_KEYWORDS:
            return None
        return (
            f"No campaigns found matching \"{term}\". "
            f"You have {_plural(len(records), 'campaign')} total."
        )
    shown = hits[:LIVE_SEARCH_LIMIT]
    lines = [f"**Campaigns matching \"{term}\"** ({len(hits)} found)", ""]
    lines += [_record_line(i, r) for i, r in enumerate(shown, 1)]
    return "\n".join(lines)


# (name, detector, renderer), first detector that matches wins. Search sits
# above recency/list so "show campaigns called X" filters instead of listing.
# A renderer returning None hands over to the next rule.
SUB_INTENTS = [
    ("count", lambda q: _COUNT.search(q.lower()), _render_count),
    ("search", lambda q: _SEARCH.search(q), _render_search),
    ("recent", lambda q: _RECENT.search(q.lower()), _render_recent),
    ("list", lambda q: _LIST.search(q.lower()), _render_list),
]


def answer_live(question: str, records) -> tuple[Optional[str], Optional[str]]:
    """``(sub_intent, answer)`` from live records; ``(None, None)`` when nothing applies."""
    recs = normalize_records(records)
    if not recs:
        return None, None
    ordered = sort_by_recency(recs)
    q = question or ""
    for name, detect, render in SUB_INTENTS:
        m = detect(q)
        if not m:
            continue
        answer = render(ordered, m)
        if answer is None:
            log.debug("live data: intent=%s gave nothing, trying next", name)
            continue
        log.debug("live data: intent=%s records=%d", name, len(ordered))
        return name, answer
    log.debug("live data: no sub-intent, falling through")
    return None, None


def synthesize(question: str, records) -> Optional[str]:
    """Templated markdown answer from live records, or ``None``.

    ``None`` means "not a live-data answer": empty or malformed records, or
    no sub-intent produced an answer.
    """
    return answer_live(question, records)[1]
