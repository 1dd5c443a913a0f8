"""Keyword-based intent classification for chat messages."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from app import rules
from app.agent.base_agent import BaseAgent
from app.models.intent import Entities, IntentResult, MessageContext

DATE_PATTERN = re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b|\b\d{1,2}-\d{1,2}-\d{4}\b")
NUMBER_PATTERN = re.compile(r"\b\d+\b")
LOCATION_PATTERN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")


class IntentClassifier(BaseAgent):
    """Maps raw text to an :class:`IntentResult`.

    ``prose`` is optional; when given it is asked for a second opinion on
    low-confidence messages.
    """

    def __init__(
        self,
        prose: Any = None,
        patterns: Optional[Dict[str, Tuple[str, ...]]] = None,
        filter_patterns: Optional[Dict[str, Tuple[str, ...]]] = None,
        low_confidence: float = rules.LOW_CONFIDENCE,
    ) -> None:
        super().__init__("IntentAgent")
        self.prose = prose
        self.patterns = patterns or rules.INTENT_PATTERNS
        self.filter_patterns = filter_patterns or rules.FILTER_PATTERNS
        self.low_confidence = low_confidence

    def classify(self, text: str) -> IntentResult:
        text = text or ""
        lowered = text.lower()
        matches = rules.score_table(lowered, self.patterns)

        category = self._pick_category(matches)
        confidence = self._confidence(lowered, category, matches)

        enhanced = None
        if confidence < self.low_confidence and self.prose is not None:
            enhanced = self._enhanced_intent(text)

        return IntentResult(
            category=category,
            confidence=confidence,
            filters=self.extract_filters(lowered),
            entities=self.extract_entities(text),
            context=self.extract_context(lowered),
            enhanced_intent=enhanced,
            original_message=text,
        )

    @staticmethod
    def _pick_category(matches: Dict[str, List[str]]) -> str:
        best, best_count = "general", 0
        for category, hits in matches.items():
            if len(hits) > best_count:
                best, best_count = category, len(hits)
        return best

    def _confidence(self, lowered: str, category: str, matches: Dict[str, List[str]]) -> float:
        hits = len(matches.get(category, ()))
        total = len(self.patterns.get(category, ())) or 1
        confidence = hits / total
        if hits > 0:
            confidence = min(confidence + 0.3, 1.0)
        if len(lowered) < 10:
            confidence *= 0.8
        return round(confidence, 2)

    def extract_filters(self, lowered: str) -> Dict[str, Tuple[str, ...]]:
        filters: Dict[str, Tuple[str, ...]] = {}
        for group, hits in rules.score_table(lowered, self.filter_patterns).items():
            if hits:
                filters[group] = tuple(hits)
        return filters

    @staticmethod
    def extract_entities(text: str) -> Entities:
        return Entities(
            locations=tuple(LOCATION_PATTERN.findall(text)),
            dates=tuple(DATE_PATTERN.findall(text)),
            numbers=tuple(NUMBER_PATTERN.findall(text)),
        )

    @staticmethod
    def extract_context(lowered: str) -> MessageContext:
        urgency = "normal"
        if rules.match_keywords(lowered, rules.URGENCY_HIGH):
            urgency = "high"
        elif rules.match_keywords(lowered, rules.URGENCY_LOW):
            urgency = "low"

        specificity = "high" if rules.match_keywords(lowered, rules.SPECIFICITY_HIGH) else "general"

        pos = len(rules.match_keywords(lowered, rules.POSITIVE_WORDS))
        neg = len(rules.match_keywords(lowered, rules.NEGATIVE_WORDS))
        sentiment = "positive" if pos > neg else "negative" if neg > pos else "neutral"
        return MessageContext(urgency=urgency, specificity=specificity, sentiment=sentiment)

    def _enhanced_intent(self, text: str) -> Optional[Dict[str, Any]]:
        """Second-opinion label and reasoning; None whenever the model is unavailable."""

        try:
            label = self.prose.classify_intent(text)
            if label.degraded:
                return None
            analysis = self.prose.complete(
                f'Analyze this user message for event-related intent: "{text}"\n'
                "Extract location, category, time and price preferences and any other "
                "specific needs. Give a brief reasoning for the classification.",
                max_tokens=200,
            )
            if analysis.degraded:
                return None
        except Exception as e:
            self.log.warning("enhanced intent analysis failed: %s", e)
            return None

        return {
            "intent": label.value,
            "confidence": 0.8,
            "requirements": self._requirements(analysis.value),
            "reasoning": analysis.value,
        }

    @staticmethod
    def _requirements(analysis: str) -> List[str]:
        lowered = analysis.lower()
        out = []
        if "location" in lowered or "near" in lowered:
            out.append("location_specific")
        if "time" in lowered or "date" in lowered:
            out.append("time_specific")
        if "category" in lowered or "type" in lowered:
            out.append("category_specific")
        if "price" in lowered or "free" in lowered or "cost" in lowered:
            out.append("price_sensitive")
        return out
