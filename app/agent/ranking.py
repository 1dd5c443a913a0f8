"""Personalized ranking, diversity filtering and recommendation explanations."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app import rules
from app.agent.base_agent import BaseAgent
from app.models.events import Coordinates, EventCandidate, ScoredEvent, haversine_km
from app.models.memory import HistoryEntry, UserMemory

REASON_MAP = {
    "category_match": "Perfect category match",
    "location_proximity": "Great location",
    "time_preference": "Ideal timing",
    "behavior_history": "Based on your history",
    "popularity": "Trending event",
}

POSITIVE_ACTIONS = ("attended", "interested")


def _norm(value: Optional[str]) -> str:
    value = (value or "").lower()
    return rules.CATEGORY_ALIASES.get(value, value)


def _is_positive(h: HistoryEntry) -> bool:
    return h.action in POSITIVE_ACTIONS or (h.rating is not None and h.rating >= 4)


def _is_negative(h: HistoryEntry) -> bool:
    return h.action == "skipped" or (h.rating is not None and h.rating <= 2)


def fallback_explanation(event: EventCandidate) -> str:
    category = (event.category or "").lower()
    doing = "learn something new" if category == "workshop" else "have a great time"
    return (
        f"This {category} event looks like a great match for your interests! "
        f"{event.title} offers an exciting opportunity to {doing}."
    )


class RankingEngine(BaseAgent):
    def __init__(
        self,
        prose: Any = None,
        weights: Dict[str, float] = rules.RANKING_WEIGHTS,
        affinities: Dict[str, Tuple[str, ...]] = rules.CATEGORY_AFFINITIES,
        max_per_category: int = rules.MAX_PER_CATEGORY,
        max_per_location: int = rules.MAX_PER_LOCATION,
        min_results: int = rules.MIN_RECOMMENDATIONS,
        max_results: int = rules.MAX_RECOMMENDATIONS,
        ai_explained: int = rules.AI_EXPLAINED,
    ) -> None:
        super().__init__("RecommendationAgent")
        self.prose = prose
        self.weights = weights
        self.affinities = affinities
        self.max_per_category = max_per_category
        self.max_per_location = max_per_location
        self.min_results = min_results
        self.max_results = max_results
        self.ai_explained = ai_explained

    # ===================== scoring =====================

    def rank(
        self,
        events: Sequence[Any],
        memory: UserMemory,
        location: Optional[Coordinates] = None,
    ) -> List[ScoredEvent]:
        """Score every event; best first. Ties keep their input order."""

        if not events:
            return []
        scored = []
        for item in events:
            ev = item.event if isinstance(item, ScoredEvent) else item
            subscores = self.subscores(ev, memory, location)
            total = sum(subscores[k] * self.weights[k] for k in self.weights)
            se = ScoredEvent(event=ev, subscores=subscores, total_score=total)
            se.explanation = self.explain(se)
            scored.append(se)
        scored.sort(key=lambda s: s.total_score, reverse=True)
        return scored

    def subscores(self, ev: EventCandidate, memory: UserMemory, location: Optional[Coordinates]) -> Dict[str, float]:
        return {
            "category_match": self.category_score(ev, memory),
            "location_proximity": self.location_score(ev, location),
            "time_preference": self.time_score(ev, memory),
            "behavior_history": self.behavior_score(ev, memory),
            "popularity": self.popularity_score(ev),
        }

    def category_score(self, ev: EventCandidate, memory: UserMemory) -> float:
        category = _norm(ev.category)
        preferred = [_norm(c) for c in memory.preferences.get("categories") or ()]
        if category in preferred:
            return 1.0
        for pref in preferred:
            if category in self.affinities.get(pref, ()):
                return 0.7
        liked = {_norm(h.category) for h in memory.history if h.category and h.action in POSITIVE_ACTIONS}
        if category in liked:
            return 0.8
        return 0.1

    @staticmethod
    def location_score(ev: EventCandidate, location: Optional[Coordinates]) -> float:
        if location is None or ev.coordinates is None:
            return 0.5
        distance = haversine_km(location, ev.coordinates)
        for limit, score in rules.DISTANCE_BUCKETS:
            if distance <= limit:
                return score
        return 0.2

    @staticmethod
    def time_score(ev: EventCandidate, memory: UserMemory) -> float:
        prefs = memory.preferences.get("time_preferences") or ()
        if not prefs or ev.date is None:
            return 0.5
        hour, day = ev.date.hour, ev.date.weekday()
        score = 0.5
        if "morning" in prefs and hour < 12:
            score += 0.3
        if "afternoon" in prefs and 12 <= hour < 18:
            score += 0.3
        if "evening" in prefs and hour >= 18:
            score += 0.3
        if "weekday" in prefs and day < 5:
            score += 0.2
        if "weekend" in prefs and day >= 5:
            score += 0.2
        return min(score, 1.0)

    @staticmethod
    def behavior_score(ev: EventCandidate, memory: UserMemory) -> float:
        if not memory.history:
            return 0.5
        related = [
            h
            for h in memory.history
            if (h.category and h.category == ev.category)
            or (h.location and h.location == ev.location)
            or (h.organizer and h.organizer == ev.organizer)
        ]
        score = 0.5 + 0.2 * sum(1 for h in related if _is_positive(h)) - 0.3 * sum(1 for h in related if _is_negative(h))
        return max(0.1, min(score, 1.0))

    @staticmethod
    def popularity_score(ev: EventCandidate) -> float:
        for floor, score in rules.POPULARITY_BUCKETS:
            if ev.attendee_count >= floor:
                return score
        return 0.2

    # ===================== diversity =====================

    def diversity_filter(self, ranked: Sequence[ScoredEvent]) -> List[ScoredEvent]:
        """Cap same-category and same-location results.

        The caps give way only when fewer than ``min_results`` events would
        survive them; the top-up then takes the best remaining events. Output
        stays in score order.
        """

        admitted: List[int] = []
        by_category: Counter = Counter()
        by_location: Counter = Counter()
        for i, se in enumerate(ranked):
            if len(admitted) >= self.max_results:
                break
            cat, loc = se.event.category, se.event.location
            if by_category[cat] < self.max_per_category and by_location[loc] < self.max_per_location:
                admitted.append(i)
                by_category[cat] += 1
                by_location[loc] += 1

        if len(admitted) < self.min_results:
            taken = set(admitted)
            for i in range(len(ranked)):
                if len(admitted) >= self.min_results:
                    break
                if i not in taken:
                    admitted.append(i)
            admitted.sort()
        return [ranked[i] for i in admitted]

    # ===================== explanations =====================

    @staticmethod
    def explain(se: ScoredEvent) -> Dict[str, Any]:
        s = se.subscores
        reasons = []
        if s["category_match"] > 0.7:
            reasons.append(f"Matches your interest in {(se.event.category or '').lower()} events")
        if s["location_proximity"] > 0.6:
            reasons.append("Conveniently located near you")
        elif s["location_proximity"] > 0.3:
            reasons.append("Within reasonable distance")
        if s["time_preference"] > 0.7:
            reasons.append("Scheduled at your preferred time")
        if s["behavior_history"] > 0.7:
            reasons.append("Similar to events you've enjoyed before")
        if s["popularity"] > 0.8:
            reasons.append("Highly popular with other attendees")

        score = min(se.total_score, 1.0)
        if score > 0.8:
            band = "Highly recommended"
        elif score > 0.6:
            band = "Good match"
        elif score > 0.4:
            band = "Might interest you"
        else:
            band = "Worth considering"
        return {"reasons": reasons, "confidence": band, "score": round(score * 100)}

    @staticmethod
    def recommendation_reason(se: ScoredEvent) -> str:
        if not se.subscores:
            return "Good overall match"
        top = max(se.subscores, key=lambda k: se.subscores[k])
        return REASON_MAP.get(top, "Good overall match")

    def ai_explanation(self, se: ScoredEvent, memory: UserMemory) -> str:
        if self.prose is None:
            return fallback_explanation(se.event)
        ev = se.event
        preferred = ", ".join(memory.preferences.get("categories") or ()) or "Not specified"
        past = ", ".join(h.category for h in memory.history[:3] if h.category) or "None"
        prompt = (
            "Write a personal 1-2 sentence recommendation explaining why this user would enjoy the event. "
            "Be specific and enthusiastic, not promotional.\n"
            f"Event: {ev.title}\nCategory: {ev.category}\nDescription: {(ev.description or '')[:200]}\n"
            f"Preferred categories: {preferred}\nPrevious interests: {past}\n"
            f"Recommendation score: {se.explanation.get('score', 0)}%"
        )
        res = self.guard("ai explanation", lambda: self.prose.complete(prompt, max_tokens=120), None)
        if res.degraded or res.value is None or res.value.degraded:
            return fallback_explanation(ev)
        return res.value.value

    def personalize(
        self,
        events: Sequence[Any],
        memory: UserMemory,
        location: Optional[Coordinates] = None,
    ) -> List[ScoredEvent]:
        diverse = self.diversity_filter(self.rank(events, memory, location))
        for i, se in enumerate(diverse):
            se.recommendation_reason = self.recommendation_reason(se)
            if i < self.ai_explained:
                se.ai_explanation = self.ai_explanation(se, memory)
        return diverse
