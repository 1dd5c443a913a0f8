"""Role resolution: who is asking, and what they may do."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from app.agent.base_agent import BaseAgent
from app.models.events import EventQuery

ROLES = ("guest", "user", "organizer", "admin")

ROLE_CAPABILITIES: Dict[str, Dict[str, Any]] = {
    "guest": {
        "can_create_events": False,
        "can_moderate": False,
        "can_analyze": False,
        "can_view_all": False,
        "is_admin": False,
        "permissions": ("search", "view_public", "basic_recommend"),
    },
    "user": {
        "can_create_events": False,
        "can_moderate": False,
        "can_analyze": False,
        "can_view_all": False,
        "is_admin": False,
        "permissions": ("search", "attend", "recommend", "view_public"),
    },
    "organizer": {
        "can_create_events": True,
        "can_moderate": False,
        "can_analyze": True,
        "can_view_all": False,
        "is_admin": False,
        "permissions": ("search", "attend", "recommend", "create", "manage_own", "analytics", "view_public"),
    },
    "admin": {
        "can_create_events": True,
        "can_moderate": True,
        "can_analyze": True,
        "can_view_all": True,
        "is_admin": True,
        "permissions": ("all",),
    },
}

ROLE_GREETINGS = {
    "guest": (
        "Hi! I'm your AI Event Assistant. I can help you discover events and browse what's "
        "happening. For personalized recommendations, consider creating an account!"
    ),
    "user": "Hi! I'm your AI Event Assistant. I can help you discover events and get personalized recommendations.",
    "organizer": (
        "Hello Event Organizer! I can help you find events, write compelling descriptions, "
        "and analyze your event performance."
    ),
    "admin": "Welcome Admin! I can assist with event moderation, platform analytics, and governance insights.",
}

ROLE_HELP = {
    "guest": (
        "Search for events by keyword or category",
        "Find events by location and date",
        "Browse popular and trending events",
        "Get basic event information and details",
    ),
    "user": (
        "Ask me to find events near you",
        "Get personalized recommendations",
        "Learn about event details and timing",
        "Find events by category or date",
    ),
    "organizer": (
        "Generate compelling event descriptions",
        "Get suggestions for event categories and tags",
        "Analyze your event performance",
        "Check for duplicate events",
        "Get tips to improve event visibility",
    ),
    "admin": (
        "Review flagged events and content",
        "Get moderation insights and risk scores",
        "View platform analytics and trends",
        "Monitor platform health",
    ),
}

ROLE_RESTRICTIONS = {
    "guest": (
        "Cannot save favorite events (login required)",
        "Cannot create events (account required)",
        "Limited to basic search and browsing",
        "No personalized recommendations",
    ),
    "user": (
        "Cannot create events (upgrade to organizer)",
        "Cannot access moderation tools",
        "Cannot view private analytics",
    ),
    "organizer": (
        "Cannot moderate other users' content",
        "Cannot access admin-level analytics",
        "Cannot manage platform settings",
    ),
    "admin": ("Full access - no restrictions",),
}


@dataclass(frozen=True)
class RoleContext:
    role: str
    can_create_events: bool
    can_moderate: bool
    can_analyze: bool
    can_view_all: bool
    is_admin: bool
    permissions: Tuple[str, ...]
    greeting: str
    contextual_help: Tuple[str, ...]
    restrictions: Tuple[str, ...]
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None

    @classmethod
    def for_role(cls, role: str, user: Any = None) -> "RoleContext":
        """Build the context for ``role``; capability flags come only from the table."""

        if role not in ROLE_CAPABILITIES:
            role = "user"
        return cls(
            role=role,
            greeting=ROLE_GREETINGS[role],
            contextual_help=ROLE_HELP[role],
            restrictions=ROLE_RESTRICTIONS[role],
            user_id=getattr(user, "id", None),
            user_name=getattr(user, "name", None),
            user_email=getattr(user, "email", None),
            **ROLE_CAPABILITIES[role],
        )

    def has_permission(self, action: str) -> bool:
        return "all" in self.permissions or action in self.permissions

    def event_scope(self) -> Dict[str, Any]:
        """Store-facing visibility filter, as ``EventQuery`` keyword arguments."""

        if self.is_admin:
            return {"statuses": None}
        if self.can_create_events and self.user_id:
            return {"statuses": ("approved",), "include_organizer": self.user_id}
        return {"statuses": ("approved",)}

    def can_access(self, event: Any) -> bool:
        return EventQuery(**self.event_scope(), sort=()).matches(event)


class RoleResolver(BaseAgent):
    """Resolves a :class:`RoleContext` from a user id. Never raises."""

    def __init__(self, user_store: Any) -> None:
        super().__init__("RoleAgent")
        self.user_store = user_store

    def resolve(self, user_id: Optional[str], claimed_role: Optional[str] = None) -> RoleContext:
        if not user_id or claimed_role == "guest":
            return RoleContext.for_role("guest")
        try:
            user = self.user_store.find_by_id(user_id)
        except Exception as e:
            self.log.warning("role lookup failed for user=%s: %s", user_id, e)
            return RoleContext.for_role("guest")
        if user is None:
            return RoleContext.for_role("guest")
        if claimed_role and claimed_role == user.role:
            return RoleContext.for_role(claimed_role, user)
        return RoleContext.for_role(user.role, user)
