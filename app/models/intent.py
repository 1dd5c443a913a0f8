from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Entities:
    locations: Tuple[str, ...] = ()
    dates: Tuple[str, ...] = ()
    numbers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MessageContext:
    urgency: str = "normal"  # low | normal | high
    specificity: str = "general"  # general | high
    sentiment: str = "neutral"  # positive | neutral | negative


@dataclass(frozen=True)
class IntentResult:
    category: str
    confidence: float
    filters: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    entities: Entities = field(default_factory=Entities)
    context: MessageContext = field(default_factory=MessageContext)
    enhanced_intent: Optional[Dict[str, Any]] = None
    original_message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "confidence": self.confidence,
            "filters": {k: list(v) for k, v in self.filters.items()},
            "entities": {
                "locations": list(self.entities.locations),
                "dates": list(self.entities.dates),
                "numbers": list(self.entities.numbers),
            },
            "context": {
                "urgency": self.context.urgency,
                "specificity": self.context.specificity,
                "sentiment": self.context.sentiment,
            },
            "enhanced_intent": self.enhanced_intent,
        }
