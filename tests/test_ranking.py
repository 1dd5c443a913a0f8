import os, sys
from datetime import datetime, timezone

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.agent.base_agent import Outcome
from app.agent.ranking import RankingEngine, fallback_explanation
from app.models.events import EventCandidate, ScoredEvent
from app.models.memory import HistoryEntry, UserMemory

BERLIN = (13.405, 52.52)


class FakeProse:
    name = "LLMAgent"

    def __init__(self, degraded=False):
        self.degraded = degraded
        self.calls = 0

    def complete(self, prompt, max_tokens=None):
        self.calls += 1
        if self.degraded:
            return Outcome.fallback("static", "down")
        return Outcome.ok("You will love it.")


def _ev(i, category="music", location="Hall", attendees=0, coords=None, date=None):
    return EventCandidate(
        id=str(i),
        title=f"Event {i}",
        category=category,
        location=location,
        attendee_count=attendees,
        coordinates=coords,
        date=date,
    )


def _memory(**prefs):
    m = UserMemory(user_id="u1")
    m.preferences.update(prefs)
    return m


def test_empty_input():
    engine = RankingEngine()
    assert engine.rank([], _memory()) == []
    assert engine.personalize([], _memory()) == []


def test_rank_orders_by_score_and_is_idempotent():
    events = [_ev(1, "sports"), _ev(2, "technology", attendees=150), _ev(3, "music")]
    engine = RankingEngine()
    memory = _memory(categories=["tech"])
    first = engine.rank(events, memory)
    assert first[0].event.id == "2"
    again = engine.rank(first, memory)
    assert [s.event.id for s in again] == [s.event.id for s in first]
    assert [s.total_score for s in again] == [s.total_score for s in first]


def test_ties_keep_input_order():
    events = [_ev(i) for i in range(4)]
    ranked = RankingEngine().rank(events, _memory())
    assert [s.event.id for s in ranked] == ["0", "1", "2", "3"]


def test_category_scores():
    engine = RankingEngine()
    memory = _memory(categories=["technology"])
    assert engine.category_score(_ev(1, "Technology"), memory) == 1.0
    assert engine.category_score(_ev(1, "business"), memory) == 0.7
    liked = UserMemory(user_id="u", history=[HistoryEntry(action="attended", category="food")])
    assert engine.category_score(_ev(1, "food"), liked) == 0.8
    assert engine.category_score(_ev(1, "opera"), memory) == 0.1


def test_location_and_popularity_buckets():
    engine = RankingEngine()
    assert engine.location_score(_ev(1), None) == 0.5
    assert engine.location_score(_ev(1, coords=BERLIN), BERLIN) == 1.0
    assert engine.location_score(_ev(1, coords=(2.35, 48.86)), BERLIN) == 0.2
    assert engine.popularity_score(_ev(1, attendees=100)) == 1.0
    assert engine.popularity_score(_ev(1, attendees=20)) == 0.6
    assert engine.popularity_score(_ev(1, attendees=1)) == 0.2


def test_time_and_behavior_scores():
    engine = RankingEngine()
    saturday_evening = datetime(2025, 6, 7, 19, tzinfo=timezone.utc)
    memory = _memory(time_preferences=["evening", "weekend"])
    assert engine.time_score(_ev(1, date=saturday_evening), memory) == 1.0
    assert engine.time_score(_ev(1, date=saturday_evening), _memory()) == 0.5

    history = [
        HistoryEntry(action="attended", category="music"),
        HistoryEntry(action="skipped", category="music"),
        HistoryEntry(rating=5, location="Hall"),
    ]
    m = UserMemory(user_id="u", history=history)
    # two positives, one negative
    assert abs(engine.behavior_score(_ev(1, "music", "Hall"), m) - 0.6) < 1e-9
    assert engine.behavior_score(_ev(1), UserMemory(user_id="u")) == 0.5


def test_diversity_caps_per_category_and_location():
    events = [_ev(i, "music", f"L{i}") for i in range(3)]
    events += [_ev(10 + i, "art", "Same") for i in range(2)]
    events += [_ev(20 + i, f"c{i}", "Same") for i in range(3)]
    ranked = [ScoredEvent(e, {}, 1.0 - k * 0.01) for k, e in enumerate(events)]
    out = RankingEngine().diversity_filter(ranked)
    ids = [s.event.id for s in out]
    assert ids == ["0", "1", "10", "11", "20"]
    assert sum(1 for s in out if s.event.category == "music") == 2
    assert sum(1 for s in out if s.event.location == "Same") == 3


def test_diversity_tops_up_to_minimum():
    ranked = [ScoredEvent(_ev(i, "music", "Hall"), {}, 1.0 - i * 0.1) for i in range(6)]
    out = RankingEngine().diversity_filter(ranked)
    assert [s.event.id for s in out] == ["0", "1", "2", "3", "4"]


def test_diversity_hard_cap():
    ranked = [ScoredEvent(_ev(i, f"c{i}", f"L{i}"), {}, 1.0) for i in range(20)]
    assert len(RankingEngine().diversity_filter(ranked)) == 15


def test_explanation_bands():
    engine = RankingEngine()
    se = engine.rank([_ev(1, "technology", attendees=200, coords=BERLIN)], _memory(categories=["technology"]), BERLIN)[0]
    assert "Matches your interest in technology events" in se.explanation["reasons"]
    assert "Conveniently located near you" in se.explanation["reasons"]
    assert "Highly popular with other attendees" in se.explanation["reasons"]
    assert se.explanation["confidence"] == "Highly recommended"
    assert engine.recommendation_reason(se) == "Perfect category match"


def test_personalize_explains_top_events():
    prose = FakeProse()
    events = [_ev(i, f"c{i}", f"L{i}") for i in range(12)]
    out = RankingEngine(prose).personalize(events, _memory())
    assert len(out) == 12
    assert prose.calls == 10
    assert out[0].ai_explanation == "You will love it."
    assert out[-1].ai_explanation is None
    assert all(s.recommendation_reason for s in out)


def test_ai_explanation_falls_back():
    se = RankingEngine().rank([_ev(1, "workshop")], _memory())[0]
    text = RankingEngine(FakeProse(degraded=True)).ai_explanation(se, _memory())
    assert text == fallback_explanation(se.event)
    assert "learn something new" in text
