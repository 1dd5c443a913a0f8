"""Deterministic replies used whenever prose generation is unavailable."""

from __future__ import annotations

import re

_USER_ASKED = re.compile(r'User (?:asked|said): "([^"]+)"')

GREETING = (
    "Hello! I'm your AI Event Assistant. I can help you discover events, get personalized "
    "recommendations, and answer questions about events. What would you like to explore today?"
)
DEFAULT_REPLY = (
    "I'm here to help you with all things events! Whether you're looking to attend events, "
    "organize them, or just explore what's happening in your area, I've got you covered. "
    "What would you like to do today?"
)
HELP_REPLY = (
    "I'm a multi-agent assistant specialized in events. I can:\n"
    "- find events by category, location, date or price\n"
    "- give personalized recommendations\n"
    "- help organizers write event descriptions\n"
    "- analyze event performance\n"
    "- keep events safe and high quality\n"
    "What would you like to start with?"
)


def _has_word(text: str, *words: str) -> bool:
    return any(re.search(rf"\b{re.escape(w)}\b", text) for w in words)


def static_fallback(prompt: str) -> str:
    """Pick a canned reply from the user's words.

    ``prompt`` may be a full generation prompt; the quoted user message is
    extracted when present.
    """

    m = _USER_ASKED.search(prompt or "")
    text = (m.group(1) if m else (prompt or "")).lower()

    if _has_word(text, "hello", "hi", "hey"):
        return GREETING
    if _has_word(text, "find", "search", "show"):
        if "tech" in text:
            return (
                "I can help you find technology events: meetups, conferences, workshops and "
                "networking nights. Try 'AI events' or 'startup meetups' for sharper results."
            )
        if "music" in text:
            return (
                "Looking for music events? I can find concerts, festivals, open mic nights and "
                "music workshops. Tell me a genre to narrow it down."
            )
        if "weekend" in text:
            return (
                "I can look for events happening this Saturday and Sunday. Any particular type: "
                "social, educational, entertainment or networking?"
            )
        return (
            "I can help you find events! Be specific, like 'tech meetups', 'art workshops' or "
            "'weekend activities'. I can also filter by location, date or price."
        )
    if _has_word(text, "recommend", "suggest"):
        return (
            "I'd love to give you personalized recommendations! Log in so I can learn your "
            "preferences, or tell me what kinds of activities you enjoy."
        )
    if _has_word(text, "create", "organize", "plan"):
        return (
            "I can help you create great events: compelling descriptions, the right categories "
            "and better visibility. What type of event are you planning?"
        )
    if "near me" in text or "nearby" in text:
        return (
            "I can find events near you. Share your location or name a city or area you're "
            "planning to visit."
        )
    if _has_word(text, "today", "tonight"):
        return (
            "Looking for something today? I'll search for events with same-day availability; "
            "popular ones may be full, but there are often last-minute spots."
        )
    if _has_word(text, "free", "cheap"):
        return (
            "Budget-friendly events are great! Many meetups, networking events and community "
            "sessions are free or very affordable."
        )
    if "help" in text or "what can you do" in text:
        return HELP_REPLY
    return DEFAULT_REPLY


def classify_intent_fallback(message: str) -> str:
    text = (message or "").lower()
    if any(w in text for w in ("find", "search", "show", "look")):
        return "search"
    if any(w in text for w in ("recommend", "suggest", "advice")):
        return "recommend"
    if any(w in text for w in ("create", "organize", "make", "plan")):
        return "create"
    if any(w in text for w in ("moderate", "admin", "flag", "review")):
        return "moderate"
    if any(w in text for w in ("analyze", "analytics", "stats", "report")):
        return "analyze"
    return "general"


def search_summary(titles: list, guest: bool = False) -> str:
    """Templated reply for a search or recommendation that found events."""

    if not titles:
        return "I couldn't find any events matching your search. Try different keywords or check back later!"
    n = len(titles)
    tail = "Log in for personalized recommendations!" if guest else "Would you like more details?"
    return f'I found {n} event{"s" if n > 1 else ""} for you! The top result is "{titles[0]}". {tail}'
