"""Tests for the answer pipeline and the completion client."""
import os
import sys
from unittest.mock import MagicMock, patch

import pytest
import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("OPENAI_API_KEY", "")

from martech_hub import config
from martech_hub.answer import build_system_prompt, chat
from martech_hub.errors import InputError, ServiceUnavailable
from martech_hub.knowledge import load_knowledge
from martech_hub.live_data import LiveSnapshot
from martech_hub.pipeline import MODEL_KNOWLEDGE, MODEL_LIVE, run
from martech_hub.providers import StaticProvider

DOC = load_knowledge(config.PROJECT_ROOT / "data" / "knowledge-base.json")
SNAP = LiveSnapshot.from_payload({"campaigns": [
    {"name": "Summer Sale", "isDraft": False, "lastEdited": "2024-06-01T10:00:00Z"},
    {"name": "Winter Promo", "isDraft": True, "createdAt": "2024-01-15T08:00:00Z"},
]})

LEAD_Q = "How does lead scoring work in our system"
COUNT_Q = "How many campaigns do we have?"


class FakeCompletion:
    def __init__(self, reply="From the model.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def __call__(self, system_prompt, question):
        self.calls.append((system_prompt, question))
        if self.error:
            raise self.error
        return self.reply


class TestDeterministic:
    def test_confident_faq(self):
        r = run(LEAD_Q, DOC, use_completion=False)
        assert r["model"] == MODEL_KNOWLEDGE
        assert r["source"] == "knowledge-base"
        assert r["answer"].startswith("**How does lead scoring work?**")
        assert r["meta"]["rule"] == "faq_confident"
        assert r["meta"]["faq_score"] == 0.8
        assert "lead_scoring" in r["meta"]["topics"]

    def test_live_data_answer(self):
        r = run(COUNT_Q, DOC, SNAP, use_completion=False)
        assert r["model"] == MODEL_LIVE
        assert r["source"] == "live-data"
        assert "**2 campaigns**" in r["answer"]
        assert r["meta"]["live_intent"] == "count"
        assert r["meta"]["faq"] is None

    def test_loose_search_miss_reports_recent_intent(self):
        campaigns = [{"name": f"Campaign {i:02d}", "lastEdited": f"2024-01-{i + 1:02d}T09:00:00Z"}
                     for i in range(12)]
        snap = LiveSnapshot.from_payload({"campaigns": campaigns})
        r = run("show latest campaigns for this week", DOC, snap, use_completion=False)
        assert r["meta"]["live_intent"] == "recent"
        assert r["answer"].startswith("**Most Recent Campaigns**")

    def test_live_intent_without_records(self):
        r = run(COUNT_Q, DOC, None, use_completion=False)
        assert r["model"] == MODEL_KNOWLEDGE
        assert r["meta"]["rule"] == "platform_menu"

    def test_empty_question(self):
        with pytest.raises(InputError):
            run("", DOC)
        with pytest.raises(InputError):
            run("   ", DOC)

    def test_idempotent(self):
        a = run("what channels does Braze support", DOC, use_completion=False)
        b = run("what channels does Braze support", DOC, use_completion=False)
        assert a["answer"] == b["answer"]
        assert a["meta"]["decision_trace"] == b["meta"]["decision_trace"]

    def test_decision_trace(self):
        r = run(LEAD_Q, DOC, use_completion=False)
        steps = [name for name, ok in r["meta"]["decision_trace"]["steps"]]
        assert steps == ["live_data", "match"]
        assert r["meta"]["decision_trace"]["flags"]["rule"] == "faq_confident"
        assert r["meta"]["duration_sec"] >= 0

    def test_no_key_means_no_completion(self, monkeypatch):
        monkeypatch.setattr(config, "OAI_KEY", "")
        fake = FakeCompletion()
        r = run(LEAD_Q, DOC, complete=fake)
        assert fake.calls == []
        assert r["meta"]["completion_used"] is False

    def test_static_provider_snapshot(self):
        snap = StaticProvider([{"name": "Welcome", "draft": True}]).snapshot()
        r = run(COUNT_Q, DOC, snap, use_completion=False)
        assert "**Drafts:** 1" in r["answer"]


class TestCompletion:
    def test_model_answer_used(self):
        fake = FakeCompletion("Lead scores run 0-100.")
        r = run(LEAD_Q, DOC, use_completion=True, complete=fake)
        assert r["answer"] == "Lead scores run 0-100."
        assert r["model"] == config.ANSWER_MODEL
        assert r["source"] == "knowledge-base+openai"
        system_prompt, question = fake.calls[0]
        assert question == LEAD_Q
        assert "--- KNOWLEDGE BASE ---" in system_prompt
        assert "=== RELEVANT FAQS ===" in system_prompt

    def test_live_answer_folded_into_context(self):
        fake = FakeCompletion()
        r = run(COUNT_Q, DOC, SNAP, use_completion=True, complete=fake)
        assert r["source"] == "live-data+openai"
        system_prompt, _ = fake.calls[0]
        assert "=== LIVE DATA ===" in system_prompt
        assert "**Campaign Overview**" in system_prompt

    def test_service_unavailable_falls_back(self):
        fake = FakeCompletion(error=ServiceUnavailable("chat API 503: down"))
        r = run(LEAD_Q, DOC, use_completion=True, complete=fake)
        assert r["model"] == MODEL_KNOWLEDGE
        assert r["answer"].startswith("**How does lead scoring work?**")
        assert r["meta"]["fallback_reason"] == "chat API 503: down"
        assert r["meta"]["completion_used"] is False

    def test_unexpected_error_falls_back(self):
        fake = FakeCompletion(error=RuntimeError("socket closed"))
        r = run("hi", DOC, use_completion=True, complete=fake)
        assert r["meta"]["rule"] == "generic_menu"

    def test_empty_reply_falls_back(self):
        fake = FakeCompletion("   ")
        r = run(LEAD_Q, DOC, use_completion=True, complete=fake)
        assert r["model"] == MODEL_KNOWLEDGE
        assert r["meta"]["fallback_reason"] == "empty completion"

    def test_live_answer_survives_failure(self):
        fake = FakeCompletion(error=ServiceUnavailable("timeout"))
        r = run(COUNT_Q, DOC, SNAP, use_completion=True, complete=fake)
        assert r["model"] == MODEL_LIVE
        assert "**2 campaigns**" in r["answer"]


def _response(status=200, payload=None):
    r = MagicMock()
    r.status_code = status
    r.ok = 200 <= status < 300
    r.json.return_value = payload if payload is not None else {}
    r.text = ""
    r.headers = {"content-type": "application/json"}
    return r


class TestChatClient:
    MESSAGES = [{"role": "user", "content": "hi"}]

    def test_success(self):
        payload = {"choices": [{"message": {"content": "Hello"}}]}
        with patch("martech_hub.answer.requests.post", return_value=_response(200, payload)) as post:
            assert chat("https://api.example.com/v1", "k", "m", self.MESSAGES) == "Hello"
        args, kwargs = post.call_args
        assert args[0] == "https://api.example.com/v1/chat/completions"
        assert kwargs["json"]["model"] == "m"
        assert kwargs["headers"]["Authorization"] == "Bearer k"

    def test_http_error(self):
        payload = {"error": {"message": "overloaded"}}
        with patch("martech_hub.answer.requests.post", return_value=_response(503, payload)):
            with pytest.raises(ServiceUnavailable, match="overloaded"):
                chat("https://api.example.com/v1", "k", "m", self.MESSAGES)

    def test_timeout(self):
        with patch("martech_hub.answer.requests.post", side_effect=requests.Timeout("slow")):
            with pytest.raises(ServiceUnavailable):
                chat("https://api.example.com/v1", "k", "m", self.MESSAGES)

    def test_no_choices(self):
        with patch("martech_hub.answer.requests.post", return_value=_response(200, {"choices": []})):
            with pytest.raises(ServiceUnavailable, match="no choices"):
                chat("https://api.example.com/v1", "k", "m", self.MESSAGES)

    def test_empty_content(self):
        payload = {"choices": [{"message": {"content": ""}}]}
        with patch("martech_hub.answer.requests.post", return_value=_response(200, payload)):
            with pytest.raises(ServiceUnavailable, match="empty content"):
                chat("https://api.example.com/v1", "k", "m", self.MESSAGES)

    def test_prompt_without_context(self):
        assert "No knowledge base is currently connected" in build_system_prompt("")
        assert build_system_prompt("X").endswith("--- KNOWLEDGE BASE ---\nX\n--- END KNOWLEDGE BASE ---")
