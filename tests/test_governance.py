import os, sys
from datetime import datetime, timedelta, timezone

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.agent.governance import GovernanceReporter, request_type, risk_band
from app.models.events import EventCandidate
from app.models.memory import UserRecord
from app.store import InMemoryEventStore, InMemoryUserStore

NOW = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)


def _store():
    return InMemoryEventStore(
        [
            EventCandidate(id="e1", title="Fine", category="music", created_at=NOW - timedelta(days=1)),
            EventCandidate(
                id="e2", title="Scammy", category="business", organizer="o9", organizer_name="Shady",
                risk_score=0.95, warnings=("free money",), status="pending", created_at=NOW - timedelta(hours=3),
            ),
            EventCandidate(
                id="e3", title="Meh", category="business", organizer="o9",
                risk_score=0.61, warnings=("minimal description",), status="pending", created_at=NOW - timedelta(days=3),
            ),
            EventCandidate(id="e4", title="Quiet", status="pending", created_at=NOW - timedelta(minutes=10)),
        ]
    )


class Broken:
    def find(self, query):
        raise RuntimeError("down")

    def count(self, query):
        raise RuntimeError("down")


def _gov(store=None, users=None):
    return GovernanceReporter(store or _store(), users, clock=lambda: NOW)


def test_request_types():
    assert request_type("show flagged events") == "flagged_events"
    assert request_type("risk assessment for event e12") == "risk_assessment"
    assert request_type("what is pending?") == "moderation_queue"
    assert request_type("platform health") == "platform_health"
    assert request_type("any complaints") == "user_reports"
    assert request_type("show trends") == "trends"
    assert request_type("hello") == "general"
    assert risk_band(0.81) == "high" and risk_band(0.61) == "medium" and risk_band(0.6) == "low"


def test_flagged_digest_orders_by_risk():
    reply = _gov().analyze_request("show flagged events")
    data = reply.data
    assert [e["id"] for e in data["flagged_events"]] == ["e2", "e3", "e4"]
    assert data["action_required"] == 1
    assert data["summary"]["risk_distribution"] == {"high": 1, "medium": 1, "low": 1}
    assert data["summary"]["organizer_patterns"] == {"o9": 2}
    assert data["request_type"] == "flagged_events"
    assert reply.confidence == 0.9


def test_moderation_queue_priorities():
    reply = _gov().moderation_queue()
    queue = {q["id"]: q for q in reply.data["queue"]}
    assert [q["id"] for q in reply.data["queue"]] == ["e2", "e3", "e4"]
    assert queue["e2"]["priority"] == "high"
    assert queue["e2"]["recommended_action"] == "Reject - High risk"
    assert queue["e2"]["waiting_time"] == "3 hours"
    assert queue["e3"]["priority"] == "high"  # waiting over 48h
    assert queue["e3"]["waiting_time"] == "3 days"
    assert queue["e3"]["recommended_action"] == "Approve with monitoring"
    assert queue["e4"]["priority"] == "low"
    assert queue["e4"]["waiting_time"] == "Less than 1 hour"
    assert queue["e4"]["recommended_action"] == "Approve"
    assert reply.data["high_priority"] == 2


def test_health_score_bands():
    h = GovernanceReporter.health_score(total=100, recent=10, flagged=1, active_users=50)
    assert h["score"] == 100 and h["status"] == "Excellent"
    h = GovernanceReporter.health_score(total=10, recent=1, flagged=5, active_users=2)
    assert h["score"] == 55 and h["status"] == "Needs Attention"
    assert "High flagged content rate" in h["alerts"]
    h = GovernanceReporter.health_score(total=0, recent=10, flagged=0, active_users=20)
    assert h["metrics"]["flagged_rate"] == "0.00%"


def test_platform_health_counts_active_users():
    users = InMemoryUserStore([UserRecord(id="u1", last_active=NOW - timedelta(days=2)), UserRecord(id="u2")])
    reply = _gov(users=users).platform_health()
    m = reply.data["metrics"]
    assert m["total_events"] == 4
    assert m["recent_events"] == 4
    assert m["flagged_events"] == 2
    assert m["active_users"] == 1


def test_risk_assessment_targets():
    gov = _gov()
    reply = gov.analyze_request("risk assessment for event e2")
    assert reply.data["event_id"] == "e2"
    assert reply.data["risk_level"] == "High"
    reply = gov.analyze_request("assess organizer o9")
    assert reply.data["event_count"] == 2
    assert reply.data["risk_level"] == "Medium"
    reply = gov.analyze_request("general risk overview")
    assert "flagged_rate" in reply.data


def test_missing_event_becomes_error_reply():
    reply = _gov().analyze_request("risk assessment for event e999")
    assert reply.confidence == 0.1
    assert "Unable to complete the risk assessment request" in reply.response


def test_store_failure_is_reported_not_raised():
    gov = _gov(store=Broken())
    assert gov.analyze_request("show flagged events").confidence == 0.1
    assert gov.generate_insights("insights").confidence == 0.1


def test_trends_reports_and_help():
    gov = _gov()
    assert "free money" in gov.trends().response
    reports = gov.user_reports()
    assert reports.confidence == 0.5
    assert reports.data["total_flagged"] == 3
    assert gov.analyze_request("hello").data["request_type"] == "general"


def test_generate_insights():
    reply = _gov().generate_insights("platform insights")
    assert reply.data["health"]["metrics"]["total_events"] == 4
    assert "3 events needing attention" in reply.response
