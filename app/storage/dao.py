"""SQLite Data Access Objects for users and events."""

from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.models.events import EventCandidate, EventQuery, parse_datetime, utcnow
from app.models.memory import UserRecord, default_preferences


def init_db(db_path: str) -> None:
    """Initialize database and ensure tables exist."""
    folder = os.path.dirname(db_path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            name TEXT,
            email TEXT,
            role TEXT DEFAULT 'user',
            preferences_json TEXT,
            history_json TEXT DEFAULT '[]',
            created_at TEXT,
            last_active TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS events (
            id TEXT PRIMARY KEY,
            title TEXT,
            description TEXT,
            category TEXT,
            location TEXT,
            lon REAL,
            lat REAL,
            date TEXT,
            organizer TEXT,
            organizer_name TEXT,
            attendee_count INTEGER DEFAULT 0,
            price REAL,
            status TEXT DEFAULT 'approved',
            flags_json TEXT DEFAULT '{}',
            created_at TEXT
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_events_status ON events(status)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_events_organizer ON events(organizer)")
    conn.commit()
    conn.close()


def _connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return default


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


# ===================== Users =====================


class SqliteUserStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        init_db(db_path)

    def _row_to_user(self, row: sqlite3.Row) -> UserRecord:
        return UserRecord(
            id=row["id"],
            name=row["name"] or "",
            email=row["email"] or "",
            role=row["role"] or "user",
            preferences=_loads(row["preferences_json"], None),
            interaction_history=_loads(row["history_json"], []),
            created_at=parse_datetime(row["created_at"]) or utcnow(),
            last_active=parse_datetime(row["last_active"]),
        )

    def add(self, user: UserRecord) -> UserRecord:
        conn = _connect(self.db_path)
        conn.execute(
            "INSERT OR REPLACE INTO users (id, name, email, role, preferences_json, history_json, created_at, last_active)"
            " VALUES (?,?,?,?,?,?,?,?)",
            (
                user.id,
                user.name,
                user.email,
                user.role,
                json.dumps(user.preferences, ensure_ascii=False) if user.preferences is not None else None,
                json.dumps(user.interaction_history, ensure_ascii=False),
                _iso(user.created_at),
                _iso(user.last_active),
            ),
        )
        conn.commit()
        conn.close()
        return user

    def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        conn = _connect(self.db_path)
        row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
        conn.close()
        return self._row_to_user(row) if row else None

    def append_interaction(self, user_id: str, record: Dict[str, Any], cap: int = 100) -> bool:
        conn = _connect(self.db_path)
        try:
            row = conn.execute("SELECT history_json FROM users WHERE id=?", (user_id,)).fetchone()
            if not row:
                return False
            history = _loads(row["history_json"], [])
            history.append(record)
            conn.execute(
                "UPDATE users SET history_json=?, last_active=? WHERE id=?",
                (json.dumps(history[-cap:], ensure_ascii=False), _iso(utcnow()), user_id),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def _update_preferences(self, user_id: str, fn) -> bool:
        conn = _connect(self.db_path)
        try:
            row = conn.execute("SELECT preferences_json FROM users WHERE id=?", (user_id,)).fetchone()
            if not row:
                return False
            prefs = _loads(row["preferences_json"], None) or default_preferences()
            fn(prefs)
            conn.execute(
                "UPDATE users SET preferences_json=? WHERE id=?",
                (json.dumps(prefs, ensure_ascii=False), user_id),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def add_preferences(self, user_id: str, categories: Iterable[str] = (), locations: Iterable[str] = ()) -> bool:
        categories, locations = list(categories), list(locations)

        def merge(prefs: Dict[str, Any]) -> None:
            for key, values in (("categories", categories), ("locations", locations)):
                current = list(prefs.get(key) or [])
                current.extend(v for v in values if v not in current)
                prefs[key] = current

        return self._update_preferences(user_id, merge)

    def set_preferences(self, user_id: str, preferences: Dict[str, Any]) -> bool:
        return self._update_preferences(user_id, lambda prefs: prefs.update(preferences))

    def count_active_since(self, since: datetime) -> int:
        conn = _connect(self.db_path)
        rows = conn.execute("SELECT last_active FROM users WHERE last_active IS NOT NULL").fetchall()
        conn.close()
        # compare as datetimes: stored offsets may differ
        seen = (parse_datetime(r["last_active"]) for r in rows)
        return sum(1 for ts in seen if ts is not None and ts >= since)


# ===================== Events =====================


class SqliteEventStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        init_db(db_path)

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> EventCandidate:
        flags = _loads(row["flags_json"], {})
        coords = (row["lon"], row["lat"]) if row["lon"] is not None and row["lat"] is not None else None
        return EventCandidate(
            id=row["id"],
            title=row["title"] or "",
            description=row["description"] or "",
            category=row["category"] or "",
            location=row["location"] or "",
            coordinates=coords,
            date=parse_datetime(row["date"]),
            organizer=row["organizer"],
            organizer_name=row["organizer_name"],
            attendee_count=int(row["attendee_count"] or 0),
            price=row["price"],
            status=row["status"] or "approved",
            risk_score=float(flags.get("risk_score", 0.0)),
            warnings=tuple(flags.get("moderation_warnings", ())),
            created_at=parse_datetime(row["created_at"]),
        )

    def add(self, event: EventCandidate) -> EventCandidate:
        created = event.created_at or utcnow()
        lon, lat = event.coordinates if event.coordinates else (None, None)
        conn = _connect(self.db_path)
        conn.execute(
            "INSERT OR REPLACE INTO events (id, title, description, category, location, lon, lat, date,"
            " organizer, organizer_name, attendee_count, price, status, flags_json, created_at)"
            " VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
            (
                event.id,
                event.title,
                event.description,
                event.category,
                event.location,
                lon,
                lat,
                _iso(event.date),
                event.organizer,
                event.organizer_name,
                event.attendee_count,
                event.price,
                event.status,
                json.dumps({"risk_score": event.risk_score, "moderation_warnings": list(event.warnings)}),
                _iso(created),
            ),
        )
        conn.commit()
        conn.close()
        return self.get(event.id) or event

    def get(self, event_id: str) -> Optional[EventCandidate]:
        conn = _connect(self.db_path)
        row = conn.execute("SELECT * FROM events WHERE id=?", (event_id,)).fetchone()
        conn.close()
        return self._row_to_event(row) if row else None

    def _candidates(self, query: EventQuery) -> List[EventCandidate]:
        sql, params = "SELECT * FROM events", []
        # status and organizer go to SQL; geo, dates and the rest are applied in Python
        where = []
        if query.statuses is not None and not query.include_organizer:
            where.append("status IN (%s)" % ",".join("?" * len(query.statuses)))
            params.extend(query.statuses)
        if query.organizer is not None:
            where.append("organizer=?")
            params.append(query.organizer)
        if where:
            sql += " WHERE " + " AND ".join(where)
        conn = _connect(self.db_path)
        rows = conn.execute(sql, params).fetchall()
        conn.close()
        return [self._row_to_event(r) for r in rows]

    def find(self, query: EventQuery) -> List[EventCandidate]:
        return query.apply(self._candidates(query))

    def count(self, query: EventQuery) -> int:
        return sum(1 for e in self._candidates(query) if query.matches(e))

    def update_flags(self, event_id: str, risk_score: float, warnings: Iterable[str]) -> bool:
        conn = _connect(self.db_path)
        cur = conn.execute(
            "UPDATE events SET flags_json=? WHERE id=?",
            (json.dumps({"risk_score": float(risk_score), "moderation_warnings": list(warnings)}), event_id),
        )
        conn.commit()
        conn.close()
        return cur.rowcount > 0
