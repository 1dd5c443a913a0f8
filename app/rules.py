"""Keyword vocabularies, weights and thresholds used by the assistant pipeline.

Every table here is a constructor default somewhere else; nothing in this
module is tuned, it only records the values the platform has always used.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

# ===================== Intent classification =====================
# Order matters: on a tie the first category reaching the max wins.
INTENT_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "search": ("find", "search", "looking for", "show me", "list", "what events", "any events"),
    "create": ("create", "make", "organize", "plan", "host", "generate description", "help me write"),
    "recommend": ("recommend", "suggest", "what should", "best events", "popular", "for me"),
    "moderate": ("flagged", "review", "moderation", "risky", "spam", "inappropriate"),
    "analyze": ("analytics", "insights", "performance", "statistics", "how many", "trends"),
    "when": ("when", "what time", "schedule", "date"),
    "where": ("where", "location", "venue", "place"),
    "price": ("price", "cost", "ticket", "fee", "how much", "free"),
    "attend": ("attend", "join", "register", "sign up", "rsvp"),
    "greeting": ("hello", "hi", "hey", "good morning", "good afternoon", "help"),
}

INTENT_CATEGORIES: Tuple[str, ...] = tuple(INTENT_PATTERNS) + ("general",)

FILTER_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "categories": ("music", "tech", "art", "sports", "food", "business", "education", "workshop"),
    "timeframe": ("today", "tomorrow", "weekend", "next week", "this month"),
    "location": ("near me", "downtown", "online", "virtual"),
    "price": ("free", "cheap", "expensive", "under", "over"),
}

URGENCY_HIGH = ("urgent", "asap", "immediately")
URGENCY_LOW = ("when you can", "no rush")
SPECIFICITY_HIGH = ("specific", "exact", "particular")
POSITIVE_WORDS = ("great", "awesome", "love", "excited", "amazing")
NEGATIVE_WORDS = ("bad", "terrible", "hate", "awful", "disappointed")

LOW_CONFIDENCE = 0.7

# Filter tags as typed by users -> category names as stored on events.
CATEGORY_ALIASES: Dict[str, str] = {
    "tech": "technology",
}

# Query keywords used by the memory learning step.
CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "technology": ("tech", "ai", "software", "coding", "programming", "digital"),
    "music": ("music", "concert", "band", "singer", "performance"),
    "sports": ("sports", "game", "match", "tournament", "fitness"),
    "food": ("food", "restaurant", "cooking", "culinary", "dining"),
    "art": ("art", "gallery", "exhibition", "painting", "sculpture"),
    "business": ("business", "networking", "professional", "career"),
}

# ===================== Moderation =====================
RISK_THRESHOLDS: Dict[str, float] = {
    "low": 0.3,
    "medium": 0.6,  # flagged
    "high": 0.8,  # requires_review
    "critical": 0.9,  # rejected
}

SPAM_PHRASES: Tuple[str, ...] = (
    "guaranteed money",
    "make money fast",
    "click here now",
    "limited time only",
    "act now",
    "free money",
    "work from home",
    "no experience needed",
    "earn $$$",
    "multilevel marketing",
    "pyramid scheme",
)

DISALLOWED_TOPICS: Tuple[str, ...] = (
    "explicit",
    "adult content",
    "gambling",
    "illegal",
    "drugs",
    "weapons",
    "hate speech",
    "discrimination",
)

VAGUE_LOCATIONS: Tuple[str, ...] = ("tbd", "to be determined")

# spam, inappropriate, suspicious, ai_generated, validation
RISK_WEIGHTS: Dict[str, float] = {
    "spam": 0.3,
    "inappropriate": 0.3,
    "suspicious": 0.2,
    "ai_generated": 0.1,
    "validation": 0.1,
}

DUPLICATE_THRESHOLD = 0.85
SIMILARITY_WEIGHTS: Dict[str, float] = {
    "title": 0.4,
    "description": 0.3,
    "location": 0.2,
    "date": 0.1,
}

# ===================== Ranking =====================
RANKING_WEIGHTS: Dict[str, float] = {
    "category_match": 0.30,
    "location_proximity": 0.25,
    "time_preference": 0.20,
    "behavior_history": 0.15,
    "popularity": 0.10,
}

CATEGORY_AFFINITIES: Dict[str, Tuple[str, ...]] = {
    "technology": ("business", "education", "workshop"),
    "music": ("art", "entertainment", "festival"),
    "sports": ("fitness", "outdoor", "competition"),
    "food": ("culture", "social", "festival"),
    "art": ("culture", "workshop", "exhibition"),
    "business": ("technology", "networking", "education"),
}

# (max distance km, score); anything farther scores 0.2
DISTANCE_BUCKETS: Tuple[Tuple[float, float], ...] = ((5, 1.0), (15, 0.8), (30, 0.6), (50, 0.4))
# (min attendees, score); anything smaller scores 0.2
POPULARITY_BUCKETS: Tuple[Tuple[int, float], ...] = ((100, 1.0), (50, 0.8), (20, 0.6), (5, 0.4))

MAX_PER_CATEGORY = 2
MAX_PER_LOCATION = 3
MIN_RECOMMENDATIONS = 5
MAX_RECOMMENDATIONS = 15
AI_EXPLAINED = 10

# ===================== Retrieval / geo =====================
DEFAULT_RADIUS_KM = 25
GUEST_RADIUS_KM = 50
MAX_RADIUS_KM = 100
MAX_RESULTS = 50

# ===================== Governance =====================
HEALTH_BANDS: Tuple[Tuple[int, str], ...] = ((60, "Needs Attention"), (80, "Good"))
HEALTH_TOP_BAND = "Excellent"


def match_keywords(text: str, patterns: Iterable[str]) -> List[str]:
    """Return the patterns that occur as literal substrings of ``text``.

    ``text`` is expected to be lower-cased already.
    """

    return [p for p in patterns if p in text]


def score_table(text: str, table: Dict[str, Tuple[str, ...]]) -> Dict[str, List[str]]:
    """Apply :func:`match_keywords` to every row of a rule table."""

    return {key: match_keywords(text, patterns) for key, patterns in table.items()}
