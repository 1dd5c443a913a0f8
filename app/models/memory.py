from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.models.events import parse_datetime, utcnow

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "categories": [],
    "locations": [],
    "time_preferences": [],
    "price_range": {"min": 0, "max": 1000},
    "notification_settings": {"email": True, "push": False, "frequency": "weekly"},
}


def default_preferences() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_PREFERENCES)


@dataclass(frozen=True)
class HistoryEntry:
    """One persisted interaction. Fields are optional; writers fill what they know."""

    timestamp: Optional[datetime] = None
    action: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    organizer: Optional[str] = None
    rating: Optional[float] = None
    query: Optional[str] = None
    intent: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HistoryEntry":
        rating = d.get("rating")
        return cls(
            timestamp=parse_datetime(d.get("timestamp")),
            action=d.get("action"),
            category=d.get("category"),
            location=d.get("location"),
            organizer=d.get("organizer"),
            rating=float(rating) if rating is not None else None,
            query=d.get("query"),
            intent=d.get("intent"),
        )


@dataclass
class UserRecord:
    """Persisted user as the assistant reads it."""

    id: str
    name: str = ""
    email: str = ""
    role: str = "user"
    preferences: Optional[Dict[str, Any]] = None
    interaction_history: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    last_active: Optional[datetime] = None


@dataclass
class Interaction:
    """What the orchestrator hands to memory after each request."""

    query: str
    intent: Optional[str] = None
    filters: Dict[str, List[str]] = field(default_factory=dict)
    response: str = ""
    timestamp: datetime = field(default_factory=utcnow)

    def to_record(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "query": self.query,
            "intent": self.intent,
            "response": self.response,
            "satisfaction": None,
        }


@dataclass
class UserMemory:
    user_id: Optional[str]
    preferences: Dict[str, Any] = field(default_factory=default_preferences)
    history: List[HistoryEntry] = field(default_factory=list)
    profile: Optional[Dict[str, Any]] = None
    conversation: List[Dict[str, Any]] = field(default_factory=list)
    session_start: Optional[datetime] = None
    is_anonymous: bool = False

    @classmethod
    def anonymous(cls) -> "UserMemory":
        return cls(user_id=None, is_anonymous=True)

    @classmethod
    def default(cls, user_id: Optional[str]) -> "UserMemory":
        return cls(user_id=user_id)


@dataclass
class SessionEntry:
    """Short-term state for one session key."""

    user_id: str
    session_start: datetime = field(default_factory=utcnow)
    conversation: List[Dict[str, Any]] = field(default_factory=list)
    temporary_preferences: Dict[str, Any] = field(default_factory=dict)
