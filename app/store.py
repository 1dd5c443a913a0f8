# app/store.py
"""In-memory user and event stores.

Used by development runs and tests; the SQLite variants in
``app.storage.dao`` expose the same methods.
"""

from __future__ import annotations

import copy
import dataclasses
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.models.events import EventCandidate, EventQuery, utcnow
from app.models.memory import UserRecord, default_preferences


class InMemoryUserStore:
    def __init__(self, users: Iterable[UserRecord] = ()) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._lock = threading.Lock()
        for u in users:
            self.add(u)

    def add(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self._users[user.id] = user
        return user

    def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            u = self._users.get(user_id)
            # callers get a snapshot, not the live record
            return copy.deepcopy(u) if u else None

    def append_interaction(self, user_id: str, record: Dict[str, Any], cap: int = 100) -> bool:
        with self._lock:
            u = self._users.get(user_id)
            if u is None:
                return False
            u.interaction_history.append(dict(record))
            if len(u.interaction_history) > cap:
                u.interaction_history = u.interaction_history[-cap:]
            u.last_active = utcnow()
            return True

    def add_preferences(self, user_id: str, categories: Iterable[str] = (), locations: Iterable[str] = ()) -> bool:
        with self._lock:
            u = self._users.get(user_id)
            if u is None:
                return False
            prefs = u.preferences if u.preferences is not None else default_preferences()
            for key, values in (("categories", categories), ("locations", locations)):
                current = list(prefs.get(key) or [])
                for v in values:
                    if v not in current:
                        current.append(v)
                prefs[key] = current
            u.preferences = prefs
            return True

    def set_preferences(self, user_id: str, preferences: Dict[str, Any]) -> bool:
        with self._lock:
            u = self._users.get(user_id)
            if u is None:
                return False
            merged = u.preferences if u.preferences is not None else default_preferences()
            merged.update(copy.deepcopy(preferences))
            u.preferences = merged
            return True

    def count_active_since(self, since: datetime) -> int:
        with self._lock:
            return sum(1 for u in self._users.values() if u.last_active and u.last_active >= since)


class InMemoryEventStore:
    def __init__(self, events: Iterable[EventCandidate] = ()) -> None:
        self._events: Dict[str, EventCandidate] = {}
        self._lock = threading.Lock()
        for e in events:
            self.add(e)

    def add(self, event: EventCandidate) -> EventCandidate:
        if event.created_at is None:
            event = dataclasses.replace(event, created_at=utcnow())
        with self._lock:
            self._events[event.id] = event
        return event

    def get(self, event_id: str) -> Optional[EventCandidate]:
        with self._lock:
            return self._events.get(event_id)

    def find(self, query: EventQuery) -> List[EventCandidate]:
        with self._lock:
            events = list(self._events.values())
        return query.apply(events)

    def count(self, query: EventQuery) -> int:
        with self._lock:
            events = list(self._events.values())
        return sum(1 for e in events if query.matches(e))

    def update_flags(self, event_id: str, risk_score: float, warnings: Iterable[str]) -> bool:
        with self._lock:
            ev = self._events.get(event_id)
            if ev is None:
                return False
            self._events[event_id] = dataclasses.replace(
                ev, risk_score=float(risk_score), warnings=tuple(warnings)
            )
            return True
