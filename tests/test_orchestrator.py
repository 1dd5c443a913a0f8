import os, sys
from datetime import datetime, timedelta, timezone

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.agent.base_agent import Outcome
from app.agent.geo import GeoContextResolver
from app.agent.governance import GovernanceReporter
from app.agent.intent import IntentClassifier
from app.agent.memory import SessionMemory
from app.agent.moderation import ModerationScorer
from app.agent.organizer import OrganizerAssistant
from app.agent.ranking import RankingEngine
from app.agent.retrieval import RetrievalService
from app.agent.roles import RoleResolver
from app.config import Settings
from app.flows.orchestrator import (
    DEGRADED_MESSAGE,
    GUEST_RECOMMEND_MESSAGE,
    AssistantRequest,
    Orchestrator,
    build_orchestrator,
)
from app.models.events import EventCandidate
from app.models.memory import UserRecord
from app.services.fallback import GREETING
from app.store import InMemoryEventStore, InMemoryUserStore

NOW = datetime.now(timezone.utc)
BERLIN = (13.405, 52.52)


class FakeProse:
    name = "LLMAgent"

    def __init__(self, degraded=False):
        self.degraded = degraded
        self.prompts = []

    def complete(self, prompt, max_tokens=None):
        self.prompts.append(prompt)
        if self.degraded:
            return Outcome.fallback("static reply", "down")
        return Outcome.ok("model reply")

    def complete_json(self, prompt, default, max_tokens=None):
        return Outcome.fallback(dict(default), "down")

    def classify_intent(self, text):
        return Outcome.fallback("general", "down")


def _build(prose=None, event_store=None):
    prose = prose or FakeProse()
    users = InMemoryUserStore(
        [
            UserRecord(id="u1", name="Ann", role="user", preferences={"categories": ["technology"]}),
            UserRecord(id="o1", name="Org", role="organizer"),
            UserRecord(id="a1", name="Root", role="admin"),
        ]
    )
    events = event_store or InMemoryEventStore(
        [
            EventCandidate(
                id=f"t{i}", title=f"Tech Talk {i}", description="A talk about software and the web platform.",
                category="technology", location=f"Venue {i}", coordinates=BERLIN,
                date=NOW + timedelta(days=i + 1), attendee_count=10 * i,
            )
            for i in range(3)
        ]
        + [
            EventCandidate(
                id="m1", title="Jazz Evening", description="Live jazz with local bands and friends.",
                category="music", location="Blue Bar", coordinates=BERLIN, date=NOW + timedelta(days=2),
            ),
            EventCandidate(id="p1", title="Pending", category="music", status="pending", risk_score=0.7, warnings=("spam",)),
        ]
    )
    return Orchestrator(
        intents=IntentClassifier(prose),
        roles=RoleResolver(users),
        memory=SessionMemory(users),
        geo=GeoContextResolver(),
        retrieval=RetrievalService(events),
        moderation=ModerationScorer(prose, events),
        ranking=RankingEngine(prose),
        governance=GovernanceReporter(events, users),
        organizer=OrganizerAssistant(prose, events),
        prose=prose,
    ), users


def _ask(orch, message, user_id=None, **kw):
    return orch.process_request(AssistantRequest(message=message, user_id=user_id, **kw))


def test_user_search_is_personalized():
    orch, users = _build()
    resp = _ask(orch, "find tech events in Berlin", "u1")
    assert resp.message == "model reply"
    assert resp.confidence == 0.9
    assert resp.safety_status == "safe"
    assert resp.data["total_found"] == 3
    assert {e["id"] for e in resp.data["events"]} == {"t0", "t1", "t2"}
    assert resp.agents_used[:4] == ["IntentAgent", "RoleAgent", "MemoryAgent", "GeoContextAgent"]
    assert "RecommendationAgent" in resp.agents_used
    # interaction persisted
    assert users.find_by_id("u1").interaction_history[-1]["intent"] == "search"


def test_search_uses_local_summary_when_model_degrades():
    orch, _ = _build(FakeProse(degraded=True))
    resp = _ask(orch, "find tech events", "u1")
    assert "Tech Talk" in resp.message
    assert resp.message != "static reply"


def test_search_with_no_results():
    orch, _ = _build(event_store=InMemoryEventStore())
    resp = _ask(orch, "find tech events", "u1")
    assert resp.data["events"] == []
    assert resp.data["total_found"] == 0
    assert resp.message


def test_guest_search_is_basic():
    orch, users = _build()
    resp = _ask(orch, "find music events")
    assert resp.confidence == 0.7
    assert resp.data["login_prompt"]
    assert resp.reasoning == ["Basic event search for guest user", "No personalization applied"]
    assert [e["id"] for e in resp.data["events"]] == ["m1"]


def test_guest_recommend_prompts_login():
    orch, _ = _build()
    resp = _ask(orch, "recommend something", "stranger")
    assert resp.message == GUEST_RECOMMEND_MESSAGE
    assert resp.confidence == 1.0
    assert resp.data["login_prompt"] is True


def test_guest_general():
    orch, _ = _build()
    resp = _ask(orch, "hello there")
    assert resp.confidence == 0.8
    assert "Personalized recommendations" in resp.data["login_benefits"]


def test_user_cannot_create_events():
    orch, _ = _build()
    resp = _ask(orch, "create an event for my book club", "u1")
    assert "OrganizerAssistantAgent" not in resp.agents_used
    assert resp.confidence == 0.7
    assert "Create events" not in resp.data["capabilities"]


def test_organizer_create_is_moderated():
    orch, _ = _build()
    resp = _ask(orch, 'create a description for "Tech Talk 1" in Berlin', "o1")
    assert "OrganizerAssistantAgent" in resp.agents_used
    assert "SafetyModerationAgent" in resp.agents_used
    assert resp.data["content"]["description"] == "model reply"
    assert resp.safety_status == resp.data["moderation"]["status"]


def test_organizer_create_reads_typed_date():
    orch, _ = _build()
    past = (NOW - timedelta(days=30)).strftime("%d/%m/%Y")
    resp = _ask(orch, f'create a description for "Python Night" in Berlin on {past}', "o1")
    assert resp.data["content"]["date"] == past
    checks = resp.data["moderation"]["checks"]
    assert "past date" in checks["suspicious"]["indicators"]
    assert "event date is in the past" in checks["validation"]["indicators"]
    assert "date missing" not in checks["validation"]["indicators"]


def test_admin_moderation():
    orch, _ = _build()
    resp = _ask(orch, "show flagged events", "a1")
    assert resp.safety_status == "admin_action"
    assert resp.data["request_type"] == "flagged_events"
    assert [e["id"] for e in resp.data["flagged_events"]] == ["p1"]


def test_non_admin_moderation_falls_to_general():
    orch, _ = _build()
    resp = _ask(orch, "show flagged events", "o1")
    assert "AdminGovernanceAgent" not in resp.agents_used


def test_recommendations():
    orch, _ = _build()
    resp = _ask(orch, "recommend events for me", "u1")
    assert resp.confidence == 0.85
    assert resp.data["recommendations"]
    assert all(r["category"] == "technology" for r in resp.data["recommendations"])


def test_analysis_per_role():
    orch, _ = _build()
    assert "health" in _ask(orch, "platform analytics", "a1").data
    assert "event_count" in _ask(orch, "show my analytics", "o1").data


def test_failure_returns_degraded_response():
    orch, _ = _build()

    class Exploding:
        name = "IntentAgent"

        def classify(self, text):
            raise RuntimeError("boom")

    orch.intents = Exploding()
    resp = _ask(orch, "find events", "u1")
    assert resp.message == DEGRADED_MESSAGE
    assert resp.agents_used == ["ErrorHandler"]
    assert resp.confidence == 0.1
    assert resp.safety_status == "error"
    out = resp.to_dict()
    assert out["explanation"]["safety_status"] == "error"


def test_build_orchestrator_without_model_key(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    orch = build_orchestrator(Settings(events_db_path=str(tmp_path / "db" / "events.db")))
    resp = orch.process_request(AssistantRequest(message="hello"))
    assert resp.message == GREETING
    assert resp.safety_status == "safe"
    assert orch.retrieval.index is None
