from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

Coordinates = Tuple[float, float]  # (longitude, latitude)

EARTH_RADIUS_KM = 6371.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


ENTITY_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y")


def _parse_text(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in ENTITY_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Coerce ``value`` to an aware datetime (UTC when no zone is given)."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        dt = _parse_text(str(value).strip())
        if dt is None:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in km between two (lon, lat) points."""

    lon1, lat1 = a
    lon2, lat2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


@dataclass(frozen=True)
class EventCandidate:
    """An event as the assistant pipeline sees it. Read-only."""

    id: str
    title: str
    description: str = ""
    category: str = ""
    location: str = ""
    coordinates: Optional[Coordinates] = None
    date: Optional[datetime] = None
    organizer: Optional[str] = None
    organizer_name: Optional[str] = None
    attendee_count: int = 0
    price: Optional[float] = None
    status: str = "approved"
    risk_score: float = 0.0
    warnings: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EventCandidate":
        coords = d.get("coordinates")
        flags = d.get("ai_flags") or {}
        return cls(
            id=str(d.get("id") or d.get("_id")),
            title=d.get("title") or "",
            description=d.get("description") or "",
            category=d.get("category") or "",
            location=d.get("location") or "",
            coordinates=(float(coords[0]), float(coords[1])) if coords else None,
            date=parse_datetime(d.get("date")),
            organizer=d.get("organizer"),
            organizer_name=d.get("organizer_name"),
            attendee_count=int(d.get("attendee_count") or len(d.get("attendees") or [])),
            price=d.get("price"),
            status=d.get("status") or "approved",
            risk_score=float(d.get("risk_score", flags.get("risk_score", 0.0)) or 0.0),
            warnings=tuple(d.get("warnings", flags.get("moderation_warnings", ())) or ()),
            created_at=parse_datetime(d.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "coordinates": list(self.coordinates) if self.coordinates else None,
            "date": self.date.isoformat() if self.date else None,
            "organizer": self.organizer,
            "organizer_name": self.organizer_name,
            "attendee_count": self.attendee_count,
            "price": self.price,
            "status": self.status,
            "risk_score": self.risk_score,
            "warnings": list(self.warnings),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class ScoredEvent:
    event: EventCandidate
    subscores: Dict[str, float]
    total_score: float
    explanation: Dict[str, Any] = field(default_factory=dict)
    ai_explanation: Optional[str] = None
    recommendation_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = self.event.to_dict()
        out.update(
            {
                "subscores": dict(self.subscores),
                "total_score": round(self.total_score, 4),
                "explanation": self.explanation,
            }
        )
        if self.ai_explanation is not None:
            out["ai_explanation"] = self.ai_explanation
        if self.recommendation_reason is not None:
            out["recommendation_reason"] = self.recommendation_reason
        return out


@dataclass
class CheckResult:
    """One moderation sub-check."""

    name: str
    score: float
    flagged: bool
    indicators: List[str] = field(default_factory=list)
    severity: str = "minimal"


@dataclass
class ModerationVerdict:
    risk_score: float
    status: str  # safe | flagged | requires_review | rejected
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    checks: Dict[str, CheckResult] = field(default_factory=dict)

    @property
    def is_flagged(self) -> bool:
        return self.status != "safe"

    @property
    def requires_review(self) -> bool:
        return self.status in ("requires_review", "rejected")

    @property
    def auto_reject(self) -> bool:
        return self.status == "rejected"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_score": round(self.risk_score, 4),
            "status": self.status,
            "is_flagged": self.is_flagged,
            "requires_review": self.requires_review,
            "auto_reject": self.auto_reject,
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "checks": {
                name: {"score": c.score, "flagged": c.flagged, "indicators": c.indicators, "severity": c.severity}
                for name, c in self.checks.items()
            },
        }


@dataclass
class DuplicateReport:
    is_duplicate: bool
    duplicates: List[Dict[str, Any]] = field(default_factory=list)
    highest_similarity: float = 0.0
    risk_level: Optional[str] = None


@dataclass
class ResultsValidation:
    status: str  # safe | flagged_content_detected
    flagged_events: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    safe_count: int = 0
    total_count: int = 0


@dataclass
class EventQuery:
    """Store-agnostic description of an event lookup.

    ``statuses=None`` means any status. ``include_organizer`` adds that
    organizer's own events regardless of status.
    """

    statuses: Optional[Tuple[str, ...]] = ("approved",)
    include_organizer: Optional[str] = None
    organizer: Optional[str] = None
    near: Optional[Coordinates] = None
    radius_km: Optional[float] = None
    categories: Tuple[str, ...] = ()
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    created_from: Optional[datetime] = None
    max_price: Optional[float] = None
    min_risk_score: Optional[float] = None
    predicate: Optional[Callable[[EventCandidate], bool]] = None
    sort: Sequence[Tuple[str, int]] = (("date", 1),)
    limit: Optional[int] = None

    def matches(self, ev: EventCandidate) -> bool:
        status_ok = self.statuses is None or ev.status in self.statuses
        if self.include_organizer and ev.organizer == self.include_organizer:
            status_ok = True
        if not status_ok:
            return False
        if self.organizer is not None and ev.organizer != self.organizer:
            return False
        if self.near is not None and self.radius_km is not None:
            if ev.coordinates is None or haversine_km(self.near, ev.coordinates) > self.radius_km:
                return False
        if self.categories:
            wanted = {c.lower() for c in self.categories}
            if (ev.category or "").lower() not in wanted:
                return False
        if self.date_from is not None and (ev.date is None or ev.date < self.date_from):
            return False
        if self.date_to is not None and (ev.date is None or ev.date >= self.date_to):
            return False
        if self.created_from is not None and (ev.created_at is None or ev.created_at < self.created_from):
            return False
        if self.max_price is not None and (ev.price or 0) > self.max_price:
            return False
        if self.min_risk_score is not None and ev.risk_score <= self.min_risk_score:
            return False
        if self.predicate is not None and not self.predicate(ev):
            return False
        return True

    def apply(self, events: Sequence[EventCandidate]) -> List[EventCandidate]:
        """Filter, sort and limit an in-process sequence of events."""

        out = [e for e in events if self.matches(e)]
        # Apply sort keys last-to-first so the first key dominates.
        for key, direction in reversed(list(self.sort)):
            out.sort(key=lambda e, k=key: _sort_value(e, k), reverse=direction < 0)
        if self.limit is not None:
            out = out[: self.limit]
        return out


_MIN_DT = datetime.min.replace(tzinfo=timezone.utc)


def _sort_value(ev: EventCandidate, key: str) -> Any:
    value = getattr(ev, key, None)
    if key in ("date", "created_at"):
        return value or _MIN_DT
    if value is None:
        return 0
    return value
