"""Content moderation: composite risk scoring and duplicate detection."""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from app import rules
from app.agent.base_agent import BaseAgent
from app.models.events import (
    CheckResult,
    DuplicateReport,
    EventCandidate,
    EventQuery,
    ModerationVerdict,
    ResultsValidation,
    parse_datetime,
    utcnow,
)

_PUNCT_RUN = re.compile(r"[!?]{2,}")

FAILSAFE_WARNING = "Moderation system error - manual review required"
FAILSAFE_RECOMMENDATION = "Review manually due to system error"


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def text_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Jaccard overlap of lower-cased whitespace tokens; 0 when both are empty."""

    wa = set((a or "").lower().split())
    wb = set((b or "").lower().split())
    union = wa | wb
    if not union:
        return 0.0
    return len(wa & wb) / len(union)


def _same_day(a: Any, b: Any) -> bool:
    da, db = parse_datetime(a), parse_datetime(b)
    return da is not None and db is not None and da.date() == db.date()


def event_similarity(a: Any, b: Any, weights: Dict[str, float] = rules.SIMILARITY_WEIGHTS) -> float:
    """Weighted similarity over the fields both events actually have."""

    total = 0.0
    applied = 0.0
    for name in ("title", "description", "location"):
        va, vb = _field(a, name), _field(b, name)
        if va and vb:
            total += text_similarity(va, vb) * weights[name]
            applied += weights[name]
    if _field(a, "date") and _field(b, "date"):
        total += (1.0 if _same_day(_field(a, "date"), _field(b, "date")) else 0.0) * weights["date"]
        applied += weights["date"]
    return total / applied if applied > 0 else 0.0


class ModerationScorer(BaseAgent):
    """Scores event content for risk.

    ``prose`` answers the two model-backed sub-checks (content safety and
    AI-generation). Either may be missing or failing; both then score zero.
    """

    def __init__(
        self,
        prose: Any = None,
        event_store: Any = None,
        thresholds: Dict[str, float] = rules.RISK_THRESHOLDS,
        weights: Dict[str, float] = rules.RISK_WEIGHTS,
        duplicate_threshold: float = rules.DUPLICATE_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__("SafetyModerationAgent")
        self.prose = prose
        self.event_store = event_store
        self.thresholds = thresholds
        self.weights = weights
        self.duplicate_threshold = duplicate_threshold
        self.clock = clock

    # ===================== composite verdict =====================

    def moderate(self, content: Dict[str, Any]) -> ModerationVerdict:
        try:
            title = content.get("title") or ""
            description = content.get("description") or ""
            checks = {
                "spam": self.check_spam(title, description),
                "inappropriate": self.check_inappropriate(title, description),
                "suspicious": self.check_suspicious(content),
                "ai_generated": self.check_ai_generated(title, description),
                "validation": self.check_fields(content),
            }
            risk = min(max(sum(c.score * self.weights[n] for n, c in checks.items()), 0.0), 1.0)
            warnings: List[str] = []
            for c in checks.values():
                warnings.extend(c.indicators)
            return ModerationVerdict(
                risk_score=risk,
                status=self.status_for(risk),
                warnings=warnings,
                recommendations=self.recommendations_for(risk),
                checks=checks,
            )
        except Exception as e:
            self.log.warning("moderation failed, returning fail-safe verdict: %s", e)
            return self.failsafe()

    def failsafe(self) -> ModerationVerdict:
        return ModerationVerdict(
            risk_score=0.5,
            status="requires_review",
            warnings=[FAILSAFE_WARNING],
            recommendations=[FAILSAFE_RECOMMENDATION],
        )

    def status_for(self, risk: float) -> str:
        if risk >= self.thresholds["critical"]:
            return "rejected"
        if risk >= self.thresholds["high"]:
            return "requires_review"
        if risk >= self.thresholds["medium"]:
            return "flagged"
        return "safe"

    def recommendations_for(self, risk: float) -> List[str]:
        if risk >= self.thresholds["high"]:
            return ["Manual review required before approval", "Consider contacting organizer for clarification"]
        if risk >= self.thresholds["medium"]:
            return ["Monitor event closely after approval", "Check organizer history and reputation"]
        return []

    def severity(self, score: float) -> str:
        for level in ("critical", "high", "medium", "low"):
            if score >= self.thresholds[level]:
                return level
        return "minimal"

    def _result(self, name: str, raw: float, flag_above: float, indicators: List[str]) -> CheckResult:
        score = min(max(raw, 0.0), 1.0)
        return CheckResult(name, score, score > flag_above, indicators, self.severity(score))

    # ===================== sub-checks =====================

    def check_spam(self, title: str, description: str) -> CheckResult:
        text = f"{title} {description}".lower()
        indicators = rules.match_keywords(text, rules.SPAM_PHRASES)
        score = 0.2 * len(indicators)

        if title and sum(1 for ch in title if ch.isupper()) / len(title) > 0.5:
            score += 0.3
            indicators.append("excessive capitalization")
        if len(_PUNCT_RUN.findall(text)) >= 2:
            score += 0.2
            indicators.append("excessive punctuation")
        words = text.split()
        if words and max(Counter(words).values()) > 5:
            score += 0.3
            indicators.append("excessive word repetition")
        return self._result("spam", score, 0.5, indicators)

    def check_inappropriate(self, title: str, description: str) -> CheckResult:
        text = f"{title} {description}".lower()
        indicators = rules.match_keywords(text, rules.DISALLOWED_TOPICS)
        score = 0.4 * len(indicators)

        data = self._ask_json(
            "content safety",
            "Analyze this event content for inappropriate or harmful content "
            "(hate speech, explicit content, illegal activity, scams, violence).\n"
            f"Title: {title}\nDescription: {description}\n"
            'Respond with JSON only: {"inappropriate": boolean, "score": 0.0-1.0, "reasons": [string]}',
            {"inappropriate": False, "score": 0, "reasons": []},
        )
        if data and data.get("inappropriate"):
            score += _as_float(data.get("score"))
            indicators.extend(str(r) for r in data.get("reasons") or ())
        return self._result("inappropriate", score, 0.3, indicators)

    def _ask_json(self, what: str, prompt: str, default: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Model-backed sub-check; None when there is no real answer."""

        if self.prose is None:
            return None
        res = self.guard(what, lambda: self.prose.complete_json(prompt, default=default, max_tokens=200), None)
        if res.degraded or res.value is None or res.value.degraded:
            return None
        return res.value.value

    def check_suspicious(self, content: Dict[str, Any]) -> CheckResult:
        indicators: List[str] = []
        score = 0.0
        description = content.get("description") or ""
        if len(description) < 50:
            score += 0.3
            indicators.append("minimal description")
        location = (content.get("location") or "").lower()
        if location and any(v in location for v in rules.VAGUE_LOCATIONS):
            score += 0.2
            indicators.append("vague location")
        price = content.get("price")
        if price is not None and _as_float(price) < 0:
            score += 0.4
            indicators.append("invalid pricing")
        when = parse_datetime(content.get("date"))
        if when is not None and when < self.clock():
            score += 0.5
            indicators.append("past date")
        return self._result("suspicious", score, 0.4, indicators)

    def check_ai_generated(self, title: str, description: str) -> CheckResult:
        data = self._ask_json(
            "ai-generation check",
            "Does this event content look AI-generated? Look for generic template language, "
            "overly perfect structure, missing specifics and repetitive phrasing.\n"
            f"Title: {title}\nDescription: {description}\n"
            'Respond with JSON only: {"isAIGenerated": boolean, "confidence": 0.0-1.0, "indicators": [string]}',
            {"isAIGenerated": False, "confidence": 0, "indicators": []},
        )
        if not data:
            return self._result("ai_generated", 0.0, 0.5, [])
        if not data.get("isAIGenerated"):
            return self._result("ai_generated", 0.0, 0.5, [])
        indicators = [str(i) for i in data.get("indicators") or ()]
        return self._result("ai_generated", _as_float(data.get("confidence")), 0.5, indicators)

    def check_fields(self, content: Dict[str, Any]) -> CheckResult:
        indicators: List[str] = []
        score = 0.0
        if len(content.get("title") or "") < 5:
            score += 0.3
            indicators.append("title too short or missing")
        if len(content.get("description") or "") < 20:
            score += 0.3
            indicators.append("description too short or missing")
        if not content.get("location"):
            score += 0.2
            indicators.append("location missing")
        when = parse_datetime(content.get("date"))
        if when is None:
            score += 0.4
            indicators.append("date missing")
        else:
            now = self.clock()
            if when < now:
                score += 0.5
                indicators.append("event date is in the past")
            elif when > now + timedelta(days=365):
                score += 0.2
                indicators.append("event date is too far in the future")
        return self._result("validation", score, 0.2, indicators)

    # ===================== duplicates =====================

    def detect_duplicates(self, new_event: Any, pool: Optional[Iterable[Any]] = None) -> DuplicateReport:
        if pool is None:
            if self.event_store is None:
                return DuplicateReport(is_duplicate=False)
            pool = self.guard(
                "load duplicate pool",
                lambda: self.event_store.find(EventQuery(statuses=("approved", "pending"), sort=())),
                [],
            ).value

        own_id = _field(new_event, "id")
        duplicates = []
        for existing in pool:
            if own_id and _field(existing, "id") == own_id:
                continue
            sim = event_similarity(new_event, existing)
            if sim > self.duplicate_threshold:
                duplicates.append(
                    {
                        "event_id": _field(existing, "id"),
                        "title": _field(existing, "title"),
                        "similarity": sim,
                        "reasons": self._duplicate_reasons(new_event, existing),
                    }
                )
        duplicates.sort(key=lambda d: d["similarity"], reverse=True)
        highest = duplicates[0]["similarity"] if duplicates else 0.0
        return DuplicateReport(
            is_duplicate=bool(duplicates),
            duplicates=duplicates,
            highest_similarity=highest,
            risk_level=_duplicate_level(highest) if duplicates else None,
        )

    @staticmethod
    def _duplicate_reasons(a: Any, b: Any) -> List[str]:
        reasons = []
        if text_similarity(_field(a, "title"), _field(b, "title")) > 0.8:
            reasons.append("Very similar titles")
        if _field(a, "location") and _field(a, "location") == _field(b, "location"):
            reasons.append("Same location")
        if _same_day(_field(a, "date"), _field(b, "date")):
            reasons.append("Same date")
        return reasons

    # ===================== result sweep =====================

    def validate_results(self, events: Sequence[EventCandidate]) -> ResultsValidation:
        flagged = []
        warnings = []
        limit = self.thresholds["medium"]
        for ev in events:
            if ev.risk_score > limit:
                flagged.append(
                    {
                        "event_id": ev.id,
                        "title": ev.title,
                        "reason": "Previously flagged content",
                        "risk_score": ev.risk_score,
                    }
                )
            if len(ev.description or "") < 30 or ev.risk_score > limit:
                warnings.append(f'Event "{ev.title}" may need review')
        return ResultsValidation(
            status="flagged_content_detected" if flagged else "safe",
            flagged_events=flagged,
            warnings=warnings,
            safe_count=len(events) - len(flagged),
            total_count=len(events),
        )

    def moderate_event(self, event_id: str) -> Optional[ModerationVerdict]:
        """Re-moderate a stored event and write the flags back."""

        if self.event_store is None:
            return None
        event = self.guard("load event", lambda: self.event_store.get(event_id), None).value
        if event is None:
            return None
        verdict = self.moderate(event.to_dict())
        self.guard(
            "write moderation flags",
            lambda: self.event_store.update_flags(event_id, verdict.risk_score, verdict.warnings),
            False,
        )
        return verdict


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _duplicate_level(similarity: float) -> str:
    if similarity > 0.95:
        return "critical"
    if similarity > 0.9:
        return "high"
    if similarity > 0.85:
        return "medium"
    return "low"
