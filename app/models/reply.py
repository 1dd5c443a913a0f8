from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class AgentReply:
    """What a routed sub-agent hands back to the orchestrator."""

    response: str
    data: Dict[str, Any] = field(default_factory=dict)
    reasoning: List[str] = field(default_factory=list)
    confidence: float = 0.8
    suggestions: List[str] = field(default_factory=list)
