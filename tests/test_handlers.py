import importlib
import os, sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.agent.roles import ROLE_GREETINGS, RoleResolver
from app.blocks.events import event_to_blocks, response_blocks
from app.flows.assistant_flow import HELP_TEXT, register_assistant_flow, strip_mention
from app.flows.orchestrator import AssistantResponse
from app.models.memory import UserRecord
from app.store import InMemoryUserStore


class DummyApp:
    def __init__(self, *args, **kwargs):
        self.handlers = {}

    def event(self, name, *args, **kwargs):
        def decorator(func):
            self.handlers[name] = func
            return func

        return decorator

    command = view = action = event


class FakeOrchestrator:
    def __init__(self):
        self.requests = []
        self.roles = RoleResolver(InMemoryUserStore([UserRecord(id="O1", role="organizer")]))

    def process_request(self, req):
        self.requests.append(req)
        return AssistantResponse(
            message="Found 1 event",
            data={"events": [{"title": "Jazz", "date": "2025-06-07T20:00:00+00:00", "location": "Blue Bar",
                              "category": "music", "explanation": {"reasons": ["Trending"], "score": 80}}]},
            agents_used=["IntentAgent"],
        )


def test_strip_mention():
    assert strip_mention("<@U123> hello") == "hello"
    assert strip_mention("no mention") == "no mention"
    assert strip_mention("") == ""


def test_main_builds_app(monkeypatch):
    monkeypatch.setenv("SLACK_BOT_TOKEN", "x")
    monkeypatch.setenv("SLACK_APP_TOKEN", "x")
    monkeypatch.setattr("slack_bolt.App", DummyApp)
    main = importlib.reload(importlib.import_module("main"))
    assert isinstance(main.app, DummyApp)


def test_mention_replies_in_thread():
    app, orch = DummyApp(), FakeOrchestrator()
    register_assistant_flow(app, orch, bot_user_id="UBOT")
    said = []
    app.handlers["app_mention"](
        event={"user": "U1", "text": "<@UBOT> find jazz", "ts": "1.0"},
        say=lambda **kw: said.append(kw),
        logger=None,
    )
    assert orch.requests[0].message == "find jazz"
    assert orch.requests[0].user_id == "U1"
    assert said[0]["thread_ts"] == "1.0"
    assert said[0]["text"] == "<@U1> Found 1 event"

    app.handlers["app_mention"](event={"user": "U1", "text": "<@UBOT>", "ts": "2.0"}, say=lambda **kw: said.append(kw), logger=None)
    assert said[1]["text"] == HELP_TEXT
    assert len(orch.requests) == 1


def test_help_command():
    app = DummyApp()
    register_assistant_flow(app, FakeOrchestrator())
    acked, said = [], []
    app.handlers["/event-help"](ack=lambda: acked.append(True), body={"user_id": "O1"}, say=lambda **kw: said.append(kw))
    app.handlers["/event-help"](ack=lambda: acked.append(True), body={}, say=lambda **kw: said.append(kw))
    assert acked == [True, True]
    assert said[0]["text"].startswith(ROLE_GREETINGS["organizer"])
    assert "Analyze your event performance" in said[0]["text"]
    assert said[1]["text"].startswith(ROLE_GREETINGS["guest"])
    assert said[1]["text"].endswith(HELP_TEXT)


def test_blocks():
    resp = FakeOrchestrator().process_request(None).to_dict()
    blocks = response_blocks(resp)
    assert blocks[0]["text"]["text"] == "Found 1 event"
    assert any("*Jazz*" in b.get("text", {}).get("text", "") for b in blocks)
    assert "safe" in blocks[-1]["elements"][0]["text"]
    ev = event_to_blocks({"title": "Untimed"})
    assert ev[0]["text"]["text"] == "*Untimed*\nTBD | TBD"
    assert len(ev) == 1
