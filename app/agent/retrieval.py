"""Candidate-event retrieval over the event store."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from app import rules
from app.agent.base_agent import BaseAgent
from app.models.events import Coordinates, EventCandidate, EventQuery, utcnow


def map_categories(tags: Iterable[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for tag in tags or ():
        cat = rules.CATEGORY_ALIASES.get(tag.lower(), tag.lower())
        if cat not in out:
            out.append(cat)
    return tuple(out)


def date_range(timeframe: Sequence[str], now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """[start, end) for the first recognised timeframe tag."""

    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tags = set(timeframe or ())
    if "today" in tags:
        return today, today + timedelta(days=1)
    if "tomorrow" in tags:
        return today + timedelta(days=1), today + timedelta(days=2)
    if "weekend" in tags:
        saturday = today + timedelta(days=(5 - today.weekday()) % 7)
        return saturday, saturday + timedelta(days=2)
    if "next week" in tags:
        return today + timedelta(days=7), today + timedelta(days=14)
    if "this month" in tags:
        first = today.replace(day=1)
        nxt = (first + timedelta(days=32)).replace(day=1)
        return today, nxt
    return None


class RetrievalService(BaseAgent):
    """Builds store queries from intent filters and geo context.

    Results are in store order (date ascending), optionally with semantic
    hits moved to the front. Ranking is not done here.
    """

    def __init__(
        self,
        event_store: Any,
        index: Any = None,
        embedder: Any = None,
        max_results: int = rules.MAX_RESULTS,
        default_radius: float = rules.DEFAULT_RADIUS_KM,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__("EventRetrievalAgent")
        self.event_store = event_store
        self.index = index
        self.embedder = embedder
        self.max_results = max_results
        self.default_radius = default_radius
        self.clock = clock

    def _base_query(
        self,
        coordinates: Optional[Coordinates],
        radius_km: Optional[float],
        role: Any,
    ) -> Dict[str, Any]:
        q: Dict[str, Any] = dict(role.event_scope()) if role is not None else {"statuses": ("approved",)}
        if coordinates is not None:
            q["near"] = coordinates
            q["radius_km"] = radius_km or self.default_radius
        return q

    def build_query(
        self,
        coordinates: Optional[Coordinates],
        radius_km: Optional[float],
        filters: Dict[str, Sequence[str]],
        role: Any = None,
        simplified: bool = False,
    ) -> EventQuery:
        q = self._base_query(coordinates, radius_km, role)
        filters = filters or {}
        if filters.get("categories"):
            q["categories"] = map_categories(filters["categories"])
        if not simplified:
            span = date_range(filters.get("timeframe") or (), self.clock())
            if span:
                q["date_from"], q["date_to"] = span
            if "free" in (filters.get("price") or ()):
                q["max_price"] = 0
        q["limit"] = 20 if simplified else self.max_results
        return EventQuery(**q)

    def search(
        self,
        query: str,
        coordinates: Optional[Coordinates] = None,
        radius_km: Optional[float] = None,
        filters: Optional[Dict[str, Sequence[str]]] = None,
        preferences: Optional[Dict[str, Any]] = None,
        role: Any = None,
    ) -> List[EventCandidate]:
        filters = filters or {}
        res = self.guard(
            "event search",
            lambda: self.event_store.find(self.build_query(coordinates, radius_km, filters, role)),
            None,
        )
        events = res.value
        if res.degraded:
            retry = self.guard(
                "simplified event search",
                lambda: self.event_store.find(self.build_query(coordinates, radius_km, filters, role, simplified=True)),
                [],
            )
            events = retry.value
        events = self.apply_preferences(list(events or []), preferences)
        return self._semantic_boost(query, events)

    @staticmethod
    def preference_score(event: EventCandidate, preferences: Dict[str, Any]) -> int:
        score = 0
        if event.category and event.category in map_categories(preferences.get("categories") or ()):
            score += 2
        where = (event.location or "").lower()
        if where and any(loc.lower() in where for loc in preferences.get("locations") or () if loc):
            score += 1
        times = preferences.get("time_preferences") or ()
        if times and event.date is not None:
            if "morning" in times and event.date.hour < 12:
                score += 1
            if "evening" in times and event.date.hour >= 18:
                score += 1
        return score

    def apply_preferences(
        self, events: List[EventCandidate], preferences: Optional[Dict[str, Any]]
    ) -> List[EventCandidate]:
        """Stable reorder by preference matches; no-op without preferences."""

        if not preferences or not events:
            return events
        return sorted(events, key=lambda e: -self.preference_score(e, preferences))

    def recommendation_candidates(
        self,
        coordinates: Optional[Coordinates] = None,
        radius_km: Optional[float] = None,
        preferences: Optional[Dict[str, Any]] = None,
        role: Any = None,
    ) -> List[EventCandidate]:
        q = self._base_query(coordinates, radius_km, role)
        q["date_from"] = self.clock()
        cats = map_categories((preferences or {}).get("categories") or ())
        if cats:
            q["categories"] = cats
        q["sort"] = (("date", 1), ("attendee_count", -1))
        q["limit"] = self.max_results
        return self.guard("recommendation candidates", lambda: self.event_store.find(EventQuery(**q)), []).value

    # ===================== semantic (optional) =====================

    def _semantic_boost(self, query: str, events: List[EventCandidate]) -> List[EventCandidate]:
        if not query or not events or self.index is None or self.embedder is None:
            return events

        def hits() -> List[str]:
            vec = self.embedder.embed_query(query)
            return [item_id for item_id, _ in self.index.query(vec, 20)]

        res = self.guard("semantic search", hits, [])
        if not res.value:
            return events
        by_id = {e.id: e for e in events}
        front = [by_id[i] for i in res.value if i in by_id]
        front_ids = {e.id for e in front}
        return front + [e for e in events if e.id not in front_ids]

    def index_event(self, event: EventCandidate) -> bool:
        """Upsert ``event`` into the vector index. Best-effort."""

        if self.index is None or self.embedder is None:
            return False
        text = " ".join(p for p in (event.title, event.description, event.category, event.location) if p)

        def upsert() -> bool:
            vec = self.embedder.embed_documents([text])[0]
            self.index.upsert(event.id, vec, {"title": event.title, "category": event.category})
            return True

        return self.guard("index event", upsert, False).value
