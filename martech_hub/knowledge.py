"""Knowledge document: schema, loader and keyword search.

The document is hand-curated JSON (``data/knowledge-base.json``) with camelCase
keys. It is parsed once into frozen pydantic models and handed to the matcher
per request; nothing in the hub mutates it.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from .config import log
from .errors import DocumentUnavailable


_MODEL_CONFIG = {"populate_by_name": True, "frozen": True}


class FAQ(BaseModel):
    question: str
    answer: str

    model_config = _MODEL_CONFIG


class Tier(BaseModel):
    tier: str
    label: Optional[str] = None
    action: str = ""

    model_config = _MODEL_CONFIG


class PredictiveModel(BaseModel):
    name: str
    description: str = ""
    scale: Optional[str] = None
    tiers: list[Tier] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class Tool(BaseModel):
    name: str
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)
    integrations: list[str] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class Category(BaseModel):
    name: str
    description: str = ""
    tools: list[Tool] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class DataFlow(BaseModel):
    name: str
    source: str
    destination: str
    description: str = ""
    data_type: str = Field(default="", alias="dataType")

    model_config = _MODEL_CONFIG


class Approach(BaseModel):
    name: str
    purpose: str = ""
    description: str = ""

    model_config = _MODEL_CONFIG


class MeasurementFramework(BaseModel):
    description: str = ""
    approaches: list[Approach] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class HighRiskArea(BaseModel):
    area: str
    requirements: list[str] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class Compliance(BaseModel):
    regulations: list[str] = Field(default_factory=list)
    principle: str = ""
    high_risk_areas: list[HighRiskArea] = Field(default_factory=list, alias="highRiskAreas")

    model_config = _MODEL_CONFIG


class KnowledgeDocument(BaseModel):
    """The whole curated knowledge base.

    Every section is optional so a partial document still loads; the
    renderers skip whatever is empty.
    """

    faqs: list[FAQ] = Field(default_factory=list)
    predictive_models: list[PredictiveModel] = Field(default_factory=list, alias="predictiveModels")
    categories: list[Category] = Field(default_factory=list)
    data_flows: list[DataFlow] = Field(default_factory=list, alias="dataFlows")
    measurement_framework: Optional[MeasurementFramework] = Field(default=None, alias="measurementFramework")
    compliance: Optional[Compliance] = None

    model_config = _MODEL_CONFIG

    def tools(self) -> list[Tool]:
        """All tools across categories, in document order."""
        return [tool for cat in self.categories for tool in cat.tools]

    def is_empty(self) -> bool:
        return not (
            self.faqs or self.predictive_models or self.categories or self.data_flows
            or self.measurement_framework or self.compliance
        )


def load_knowledge(path: str | Path) -> KnowledgeDocument:
    """Parse the knowledge JSON file.

    Raises:
        DocumentUnavailable: the file is missing, not JSON, or off-schema.
    """
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise DocumentUnavailable(f"knowledge document not found: {p}") from e
    except (OSError, ValueError) as e:
        raise DocumentUnavailable(f"knowledge document unreadable: {p}: {e}") from e

    try:
        doc = KnowledgeDocument.model_validate(raw)
    except ValidationError as e:
        raise DocumentUnavailable(f"knowledge document invalid: {p}: {e.error_count()} errors") from e

    log.info("knowledge loaded: faqs=%d, models=%d, tools=%d, flows=%d",
             len(doc.faqs), len(doc.predictive_models), len(doc.tools()), len(doc.data_flows))
    return doc


def search_knowledge(query: str, doc: KnowledgeDocument) -> dict:
    """Plain keyword search across tools, data flows and FAQs.

    Any whitespace-split term of the query that is a substring of a field
    counts as a hit. Tools hit directly get ``relevance="high"``; tools only
    reached through a matching category get ``"medium"``.
    """
    terms = [t for t in query.lower().split() if t]

    def _hit(*fields) -> bool:
        texts = [f.lower() for f in fields if f]
        return any(term in text for term in terms for text in texts)

    tools = []
    for category in doc.categories:
        category_match = _hit(category.name, category.description)
        for tool in category.tools:
            tool_match = _hit(tool.name, tool.description, *tool.capabilities, *tool.integrations)
            if tool_match or category_match:
                tools.append({
                    "category": category.name,
                    "tool": tool.name,
                    "description": tool.description,
                    "capabilities": list(tool.capabilities),
                    "integrations": list(tool.integrations),
                    "relevance": "high" if tool_match else "medium",
                })

    flows = [
        flow.model_dump(by_alias=True)
        for flow in doc.data_flows
        if _hit(flow.name, flow.description, flow.source, flow.destination)
    ]
    faqs = [faq.model_dump() for faq in doc.faqs if _hit(faq.question, faq.answer)]

    return {
        "tools": tools,
        "dataFlows": flows,
        "faqs": faqs,
        "total": len(tools) + len(flows) + len(faqs),
    }
