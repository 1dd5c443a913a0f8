"""Agent package exposing the assistant pipeline components."""

from .base_agent import BaseAgent, Outcome
from .geo import GeoContextResolver
from .governance import GovernanceReporter
from .intent import IntentClassifier
from .llm_agent import LLMAgent
from .memory import SessionMemory
from .moderation import ModerationScorer
from .organizer import OrganizerAssistant
from .ranking import RankingEngine
from .retrieval import RetrievalService
from .roles import RoleResolver

__all__ = [
    "BaseAgent",
    "Outcome",
    "GeoContextResolver",
    "GovernanceReporter",
    "IntentClassifier",
    "LLMAgent",
    "SessionMemory",
    "ModerationScorer",
    "OrganizerAssistant",
    "RankingEngine",
    "RetrievalService",
    "RoleResolver",
]
