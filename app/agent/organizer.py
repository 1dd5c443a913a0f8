"""Copywriting help and simple analytics for event organizers."""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app import rules
from app.agent.base_agent import BaseAgent
from app.agent.intent import DATE_PATTERN
from app.models.events import EventQuery, utcnow
from app.models.reply import AgentReply

EVENT_TYPES = ("workshop", "conference", "meetup", "seminar", "training", "networking")

CATEGORY_TAGS: Dict[str, tuple] = {
    "technology": ("innovation", "digital", "ai", "software", "coding", "development"),
    "music": ("live", "performance", "artist", "sound", "rhythm"),
    "workshop": ("learn", "hands-on", "skill", "practice", "interactive"),
    "business": ("networking", "growth", "strategy", "professional", "opportunity"),
}

_QUOTED = re.compile(r"[\"“]([^\"”]{3,80})[\"”]")
_CALLED = re.compile(r"\b(?:called|titled|named)\s+([^,.\n]{3,80})", re.IGNORECASE)
_LABELLED = re.compile(r"\b(title|category|location|audience)\s*:\s*([^,\n]+)", re.IGNORECASE)
_PLACE = re.compile(r"\b(?:in|at)\s+([A-Z][\w-]*(?:\s+[A-Z][\w-]*)*)")


def content_type(message: str) -> str:
    lowered = (message or "").lower()
    if "description" in lowered or "write about" in lowered:
        return "description"
    if "title" in lowered or "headline" in lowered:
        return "title"
    if "tags" in lowered or "categories" in lowered:
        return "tags"
    if "improve" in lowered or "better" in lowered:
        return "improvement"
    return "general"


def extract_details(message: str) -> Dict[str, Optional[str]]:
    message = message or ""
    lowered = message.lower()
    details: Dict[str, Optional[str]] = {"title": None, "category": None, "location": None, "date": None}

    for key, value in _LABELLED.findall(message):
        details[key.lower()] = value.strip()

    if not details["title"]:
        m = _QUOTED.search(message) or _CALLED.search(message)
        if m:
            details["title"] = m.group(1).strip()

    if not details["category"]:
        for cat, hits in rules.score_table(lowered, rules.CATEGORY_KEYWORDS).items():
            if hits:
                details["category"] = cat
                break
    if not details["category"]:
        details["category"] = next((t for t in EVENT_TYPES if t in lowered), None)

    if not details["location"]:
        m = _PLACE.search(message)
        if m:
            details["location"] = m.group(1)

    m = DATE_PATTERN.search(message)
    if m:
        details["date"] = m.group(0)
    return {k: v for k, v in details.items() if k in ("title", "category", "location", "date", "audience")}


def template_description(details: Dict[str, Optional[str]]) -> str:
    category = (details.get("category") or "community").lower()
    title = details.get("title") or f"our next {category} event"
    where = f" in {details['location']}" if details.get("location") else ""
    return (
        f"Join us for {title}{where}! This {category} event brings people together to learn, "
        "connect and have a great time. Expect practical takeaways, friendly faces and plenty "
        "of time to meet others who share your interests. Spots are limited, so register early "
        "to save your place."
    )


def readability(text: str) -> str:
    words = len(text.split())
    sentences = len([s for s in re.split(r"[.!?]+", text) if s.strip()]) or 1
    avg = words / sentences
    if avg <= 15:
        return "Excellent"
    if avg <= 20:
        return "Good"
    if avg <= 25:
        return "Fair"
    return "Needs improvement"


class OrganizerAssistant(BaseAgent):
    def __init__(self, prose: Any = None, event_store: Any = None, clock: Callable[[], datetime] = utcnow) -> None:
        super().__init__("OrganizerAssistantAgent")
        self.prose = prose
        self.event_store = event_store
        self.clock = clock

    def _write(self, prompt: str, max_tokens: int) -> Optional[str]:
        if self.prose is None:
            return None
        res = self.guard("organizer copy", lambda: self.prose.complete(prompt, max_tokens=max_tokens), None)
        if res.degraded or res.value is None or res.value.degraded:
            return None
        return res.value.value

    def generate_event_content(self, message: str) -> AgentReply:
        kind = content_type(message)
        details = extract_details(message)
        known = "\n".join(f"{k.capitalize()}: {v}" for k, v in details.items() if v)

        if kind == "tags":
            return self._tags(details)

        if kind == "title":
            text = self._write(
                "Suggest 5 catchy event titles, each under 60 characters, as a numbered list.\n"
                f"{known}\nOriginal request: \"{message}\"",
                200,
            )
            titles = [t.strip() for t in (text or "").splitlines() if t.strip()]
            if not titles:
                cat = (details.get("category") or "community").capitalize()
                titles = [f"{cat} Meetup", f"Discover {cat}", f"{cat} Night Live", f"The {cat} Exchange", f"{cat} Connect"]
            return AgentReply(
                response="Here are some title options for your event:",
                data={"content": {"titles": titles, **details}},
                suggestions=["Keep titles under 60 characters", "Lead with the key benefit"],
                reasoning=["Generated several options for comparison"],
                confidence=0.85 if text else 0.6,
            )

        verb = "Improve" if kind == "improvement" else "Write"
        text = self._write(
            f"{verb} a compelling event description of 150-250 words. Hook the reader in the first "
            "sentence, explain what attendees gain and end with a call to action.\n"
            f"{known}\nOriginal request: \"{message}\"",
            400,
        )
        description = text or template_description(details)
        content = dict(details, description=description)
        return AgentReply(
            response="I've drafted an event description for you! Here it is:",
            data={
                "content": content,
                "word_count": len(description.split()),
                "readability": readability(description),
            },
            suggestions=self._suggestions(details),
            reasoning=["Used a hook, value proposition and call to action"],
            confidence=0.9 if text else 0.6,
        )

    def _tags(self, details: Dict[str, Optional[str]]) -> AgentReply:
        category = (details.get("category") or "business").lower()
        tags = list(CATEGORY_TAGS.get(category, CATEGORY_TAGS["business"]))
        for extra in ("networking", "learning", "community"):
            if extra not in tags:
                tags.append(extra)
        tags = tags[:10]
        return AgentReply(
            response="Here are suggested tags and categories for your event:",
            data={
                "content": {
                    "primary_category": category,
                    "suggested_tags": tags,
                    "hashtags": ["#" + re.sub(r"\s+", "", t) for t in tags],
                }
            },
            suggestions=["Use 5-8 tags", "Mix broad and specific tags", "Add location tags if relevant"],
            reasoning=["Based on category keyword templates"],
            confidence=0.8,
        )

    @staticmethod
    def _suggestions(details: Dict[str, Optional[str]]) -> List[str]:
        out = []
        if not details.get("title"):
            out.append("Add a clear, benefit-focused title")
        if not details.get("location"):
            out.append("Include the venue or say it is online")
        if not details.get("date"):
            out.append("Set a date so people can plan ahead")
        out.append("Add a photo to improve engagement")
        return out

    def generate_analytics(self, organizer_id: Optional[str]) -> AgentReply:
        if not organizer_id or self.event_store is None:
            return AgentReply(
                response="I need your organizer account to analyze event performance.",
                confidence=0.5,
            )
        res = self.guard(
            "organizer events",
            lambda: self.event_store.find(EventQuery(statuses=None, organizer=organizer_id, sort=())),
            [],
        )
        events = res.value
        if res.degraded:
            return AgentReply(
                response="I couldn't load your events right now. Please try again later.",
                reasoning=["Event store unavailable"],
                confidence=0.1,
            )
        now = self.clock()
        total_attendees = sum(e.attendee_count for e in events)
        categories = Counter(e.category for e in events if e.category)
        data = {
            "event_count": len(events),
            "upcoming": sum(1 for e in events if e.date and e.date >= now),
            "total_attendees": total_attendees,
            "average_attendees": round(total_attendees / len(events), 1) if events else 0,
            "top_category": categories.most_common(1)[0][0] if categories else None,
            "flagged": sum(1 for e in events if e.risk_score > rules.RISK_THRESHOLDS["medium"]),
        }
        if not events:
            text = "You haven't created any events yet. Ask me to draft a description to get started!"
        else:
            text = (
                f"You have {data['event_count']} events ({data['upcoming']} upcoming) with "
                f"{data['total_attendees']} attendees in total, {data['average_attendees']} on average."
            )
        return AgentReply(
            response=text,
            data=data,
            reasoning=["Summarised attendance across your events"],
            confidence=0.8,
        )
