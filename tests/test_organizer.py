import os, sys
from datetime import datetime, timedelta, timezone

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.agent.base_agent import Outcome
from app.agent.organizer import OrganizerAssistant, content_type, extract_details, readability
from app.models.events import EventCandidate
from app.store import InMemoryEventStore

NOW = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
REQUEST = 'Write a description for "Code and Coffee", a tech meetup in Berlin on 12/05/2025'


class FakeProse:
    name = "LLMAgent"

    def __init__(self, text="", degraded=False):
        self.text = text
        self.degraded = degraded
        self.prompts = []

    def complete(self, prompt, max_tokens=None):
        self.prompts.append(prompt)
        if self.degraded:
            return Outcome.fallback("static", "down")
        return Outcome.ok(self.text)


def test_content_type():
    assert content_type(REQUEST) == "description"
    assert content_type("Suggest a headline") == "title"
    assert content_type("which tags should I use") == "tags"
    assert content_type("make it better") == "improvement"
    assert content_type("hello") == "general"


def test_extract_details():
    d = extract_details(REQUEST)
    assert d["title"] == "Code and Coffee"
    assert d["category"] == "technology"
    assert d["location"] == "Berlin"
    assert d["date"] == "12/05/2025"
    labelled = extract_details("title: Jazz Brunch, audience: families")
    assert labelled["title"] == "Jazz Brunch"
    assert labelled["audience"] == "families"


def test_description_from_model():
    prose = FakeProse("Come and code with us. Coffee is on the house.")
    reply = OrganizerAssistant(prose).generate_event_content(REQUEST)
    content = reply.data["content"]
    assert content["description"] == "Come and code with us. Coffee is on the house."
    assert content["title"] == "Code and Coffee"
    assert reply.confidence == 0.9
    assert reply.data["readability"] == "Excellent"
    assert "Code and Coffee" in prose.prompts[0]


def test_description_falls_back_to_template():
    reply = OrganizerAssistant(FakeProse(degraded=True)).generate_event_content(REQUEST)
    description = reply.data["content"]["description"]
    assert description.startswith("Join us for Code and Coffee in Berlin!")
    assert reply.confidence == 0.6
    assert "Add a photo to improve engagement" in reply.suggestions


def test_titles():
    reply = OrganizerAssistant().generate_event_content("Give me a title for my workshop")
    assert len(reply.data["content"]["titles"]) == 5
    assert reply.data["content"]["titles"][0] == "Workshop Meetup"
    reply = OrganizerAssistant(FakeProse("1. Hands On\n\n2. Learn Fast")).generate_event_content("title ideas please")
    assert reply.data["content"]["titles"] == ["1. Hands On", "2. Learn Fast"]


def test_tags():
    reply = OrganizerAssistant().generate_event_content("Suggest tags for my music festival")
    content = reply.data["content"]
    assert content["primary_category"] == "music"
    assert content["suggested_tags"][:2] == ["live", "performance"]
    assert "#community" in content["hashtags"]


def test_readability_bands():
    assert readability("Short one. Another short one.") == "Excellent"
    assert readability(" ".join(["word"] * 30) + ".") == "Needs improvement"


def test_analytics():
    store = InMemoryEventStore(
        [
            EventCandidate(id="a", title="A", category="music", organizer="o1", attendee_count=10, date=NOW + timedelta(days=2)),
            EventCandidate(id="b", title="B", category="music", organizer="o1", attendee_count=30, date=NOW - timedelta(days=2), status="pending"),
            EventCandidate(id="c", title="C", category="art", organizer="o2", attendee_count=99),
        ]
    )
    assistant = OrganizerAssistant(event_store=store, clock=lambda: NOW)
    reply = assistant.generate_analytics("o1")
    assert reply.data["event_count"] == 2
    assert reply.data["upcoming"] == 1
    assert reply.data["total_attendees"] == 40
    assert reply.data["average_attendees"] == 20.0
    assert reply.data["top_category"] == "music"
    assert "You have 2 events" in reply.response

    assert assistant.generate_analytics("nobody").data["event_count"] == 0
    assert assistant.generate_analytics(None).confidence == 0.5
