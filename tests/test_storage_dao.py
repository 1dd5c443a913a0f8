import os, sys
from datetime import datetime, timedelta, timezone

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.models.events import EventCandidate, EventQuery
from app.models.memory import UserRecord
from app.storage import SqliteEventStore, SqliteUserStore, init_db
from app.store import InMemoryEventStore, InMemoryUserStore

NOW = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
BERLIN = (13.405, 52.52)


def _events():
    return [
        EventCandidate(id="a", title="A", category="music", coordinates=BERLIN, date=NOW + timedelta(days=2), organizer="o1"),
        EventCandidate(id="b", title="B", category="technology", date=NOW + timedelta(days=1), status="pending", organizer="o1", risk_score=0.7, warnings=("spam",)),
        EventCandidate(id="c", title="C", category="music", coordinates=(2.35, 48.86), date=NOW + timedelta(days=3), attendee_count=50, price=12.5),
    ]


def test_init_db_creates_folder(tmp_path):
    path = tmp_path / "nested" / "events.db"
    init_db(str(path))
    assert path.exists()


def test_sqlite_event_store_round_trip(tmp_path):
    store = SqliteEventStore(str(tmp_path / "e.db"))
    for e in _events():
        store.add(e)
    c = store.get("c")
    assert c.coordinates == (2.35, 48.86)
    assert c.price == 12.5
    assert c.created_at is not None
    b = store.get("b")
    assert b.risk_score == 0.7 and b.warnings == ("spam",)
    assert store.get("zzz") is None


def test_event_stores_agree_on_queries(tmp_path):
    sqlite = SqliteEventStore(str(tmp_path / "e.db"))
    memory = InMemoryEventStore()
    for e in _events():
        sqlite.add(e)
        memory.add(e)
    queries = [
        EventQuery(),
        EventQuery(statuses=None),
        EventQuery(include_organizer="o1"),
        EventQuery(statuses=None, organizer="o1"),
        EventQuery(near=BERLIN, radius_km=25),
        EventQuery(categories=("MUSIC",), sort=(("attendee_count", -1),)),
        EventQuery(statuses=None, min_risk_score=0.6),
        EventQuery(statuses=None, date_to=NOW + timedelta(days=2)),
        EventQuery(statuses=None, limit=1),
    ]
    for q in queries:
        assert [e.id for e in sqlite.find(q)] == [e.id for e in memory.find(q)]
        assert sqlite.count(q) == memory.count(q)
    assert [e.id for e in sqlite.find(EventQuery())] == ["a", "c"]
    assert [e.id for e in sqlite.find(EventQuery(include_organizer="o1"))] == ["b", "a", "c"]


def test_update_flags(tmp_path):
    store = SqliteEventStore(str(tmp_path / "e.db"))
    store.add(_events()[0])
    assert store.update_flags("a", 0.9, ["bad"])
    assert store.get("a").risk_score == 0.9
    assert store.get("a").warnings == ("bad",)
    assert not store.update_flags("missing", 0.1, [])


def test_sqlite_user_store(tmp_path):
    store = SqliteUserStore(str(tmp_path / "u.db"))
    store.add(UserRecord(id="u1", name="Ann", role="organizer"))
    user = store.find_by_id("u1")
    assert user.role == "organizer" and user.preferences is None

    for i in range(5):
        assert store.append_interaction("u1", {"query": f"q{i}"}, cap=3)
    user = store.find_by_id("u1")
    assert [h["query"] for h in user.interaction_history] == ["q2", "q3", "q4"]
    assert user.last_active is not None

    assert store.add_preferences("u1", ["music"], ["Berlin"])
    assert store.add_preferences("u1", ["music", "art"])
    prefs = store.find_by_id("u1").preferences
    assert prefs["categories"] == ["music", "art"]
    assert prefs["locations"] == ["Berlin"]

    assert store.set_preferences("u1", {"time_preferences": ["evening"]})
    assert store.find_by_id("u1").preferences["categories"] == ["music", "art"]

    assert not store.append_interaction("ghost", {})
    assert not store.add_preferences("ghost", ["x"])
    assert store.find_by_id("ghost") is None


def test_active_users_counted_in_both_stores(tmp_path):
    recent = datetime.now(timezone.utc) - timedelta(days=1)
    old = datetime.now(timezone.utc) - timedelta(days=90)
    users = [UserRecord(id="u1", last_active=recent), UserRecord(id="u2", last_active=old), UserRecord(id="u3")]
    sqlite = SqliteUserStore(str(tmp_path / "u.db"))
    memory = InMemoryUserStore(users)
    for u in users:
        sqlite.add(u)
    since = datetime.now(timezone.utc) - timedelta(days=30)
    assert sqlite.count_active_since(since) == 1
    assert memory.count_active_since(since) == 1
