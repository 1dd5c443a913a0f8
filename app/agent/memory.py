"""Two-tier user memory: a short-term session cache over the persisted user record."""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, List, Optional

from app import rules
from app.agent.base_agent import BaseAgent
from app.models.memory import (
    HistoryEntry,
    Interaction,
    SessionEntry,
    UserMemory,
    default_preferences,
)
from app.state.session_store import SessionStore

_LOCATION_HINT = re.compile(r"\b(?:in|near|at)\s+([a-zA-Z]+(?:\s+[a-zA-Z]+)*)")


def session_key(user_id: str) -> str:
    return f"session_{user_id}"


class SessionMemory(BaseAgent):
    """Advisory memory for the assistant.

    Nothing here may fail a request: store errors are logged and the caller
    gets a default memory (on read) or nothing (on write).
    """

    def __init__(
        self,
        user_store: Any,
        sessions: Optional[SessionStore] = None,
        window: int = 10,
        history_cap: int = 100,
    ) -> None:
        super().__init__("MemoryAgent")
        self.user_store = user_store
        self.sessions: SessionStore = sessions if sessions is not None else SessionStore()
        self.window = window
        self.history_cap = history_cap

    # ===================== read =====================

    def read(self, user_id: Optional[str]) -> UserMemory:
        if not user_id:
            return UserMemory.anonymous()
        try:
            key = session_key(user_id)
            entry = self.sessions.get(key)
            persisted = self._load(user_id)
            if entry is None:
                self.sessions.set(key, SessionEntry(user_id=user_id))
                return persisted
            prefs = dict(persisted.preferences)
            prefs.update(entry.temporary_preferences)
            return UserMemory(
                user_id=user_id,
                preferences=prefs,
                history=persisted.history,
                profile=persisted.profile,
                conversation=list(entry.conversation),
                session_start=entry.session_start,
            )
        except Exception as e:
            self.log.warning("memory read failed for user=%s: %s", user_id, e)
            return UserMemory.default(user_id)

    def _load(self, user_id: str) -> UserMemory:
        res = self.guard("load user", lambda: self.user_store.find_by_id(user_id), None)
        user = res.value
        if user is None:
            return UserMemory.default(user_id)
        prefs = default_preferences()
        prefs.update(user.preferences or {})
        return UserMemory(
            user_id=user_id,
            preferences=prefs,
            history=[HistoryEntry.from_dict(h) for h in user.interaction_history or []],
            profile={
                "name": user.name,
                "email": user.email,
                "role": user.role,
                "join_date": user.created_at,
            },
        )

    # ===================== write =====================

    def write(self, user_id: Optional[str], interaction: Interaction) -> None:
        if not user_id:
            return
        key = session_key(user_id)
        with self.sessions.lock(key):
            entry = self.sessions.get(key) or SessionEntry(user_id=user_id)
            entry.conversation.append(
                {
                    "timestamp": interaction.timestamp,
                    "query": interaction.query,
                    "intent": interaction.intent,
                    "response": interaction.response,
                }
            )
            del entry.conversation[: -self.window]
            self._update_temporary(entry, interaction.filters)
            self.sessions.set(key, entry)

        self.guard(
            "persist interaction",
            lambda: self.user_store.append_interaction(user_id, interaction.to_record(), self.history_cap),
            False,
        )
        self._learn(user_id, interaction)

    @staticmethod
    def _update_temporary(entry: SessionEntry, filters: Dict[str, Any]) -> None:
        temp = entry.temporary_preferences
        for group, pref_key in (("categories", "categories"), ("location", "locations")):
            for tag in filters.get(group) or ():
                current = temp.setdefault(pref_key, [])
                if tag not in current:
                    current.append(tag)

    def _learn(self, user_id: str, interaction: Interaction) -> None:
        if interaction.intent != "search":
            return
        categories = self.categories_in(interaction.query)
        locations = self.locations_in(interaction.query)
        if not categories and not locations:
            return
        self.guard(
            "learn preferences",
            lambda: self.user_store.add_preferences(user_id, categories, locations),
            False,
        )

    @staticmethod
    def categories_in(query: str) -> List[str]:
        lowered = (query or "").lower()
        return [cat for cat, hits in rules.score_table(lowered, rules.CATEGORY_KEYWORDS).items() if hits]

    @staticmethod
    def locations_in(query: str) -> List[str]:
        found = []
        for m in _LOCATION_HINT.finditer(query or ""):
            loc = m.group(1).strip()
            if len(loc) > 2 and loc not in found:
                found.append(loc)
        return found

    # ===================== extras =====================

    def update_preferences(self, user_id: str, preferences: Dict[str, Any]) -> bool:
        """Explicit preference update; also mirrored into the live session."""

        full = default_preferences()
        full.update(preferences)
        res = self.guard("update preferences", lambda: self.user_store.set_preferences(user_id, full), False)

        key = session_key(user_id)
        with self.sessions.lock(key):
            entry = self.sessions.get(key)
            if entry is not None:
                entry.temporary_preferences.update(preferences)
                self.sessions.set(key, entry)
        return bool(res.value)

    def conversation_context(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        if not user_id:
            return []
        entry = self.sessions.get(session_key(user_id))
        return list(entry.conversation) if entry else []

    def learning_insights(self, user_id: str) -> Dict[str, Any]:
        empty = {"total_interactions": 0, "top_categories": [], "learning_trends": []}
        user = self.guard("load user", lambda: self.user_store.find_by_id(user_id), None).value
        if user is None or not user.interaction_history:
            return empty

        history = user.interaction_history
        counts = Counter(h.get("intent") for h in history if h.get("intent"))
        trends = []
        recent = history[-20:]
        if len(recent) > 10:
            recent_counts = Counter(h.get("intent") for h in recent if h.get("intent"))
            if recent_counts:
                trends.append(f"Frequently asks about {recent_counts.most_common(1)[0][0]}")
        return {
            "total_interactions": len(history),
            "top_categories": [{"category": c, "count": n} for c, n in counts.most_common(5)],
            "learning_trends": trends,
        }

    def sweep(self) -> int:
        evicted = self.sessions.sweep()
        if evicted:
            self.log.info("evicted %d idle sessions", evicted)
        return evicted
