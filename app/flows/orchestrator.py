"""Request pipeline: intent, role and memory, then one routed flow, then memory write."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app import rules
from app.agent.base_agent import Outcome
from app.agent.geo import GeoContext
from app.agent.roles import RoleContext
from app.models.events import Coordinates, ScoredEvent, utcnow
from app.models.intent import IntentResult
from app.models.memory import Interaction, UserMemory
from app.services.fallback import search_summary, static_fallback

log = logging.getLogger(__name__)

DEGRADED_MESSAGE = "I'm experiencing some technical difficulties. Please try again in a moment."

GUEST_RECOMMEND_MESSAGE = (
    "I'd love to give you personalized recommendations! To provide the best suggestions based on "
    "your interests and location, please log in to your account. I can still help you search for "
    "specific types of events though - try asking 'find tech events' or 'show music events this weekend'."
)

GUEST_CAPABILITIES = [
    "Search for events by keyword",
    "Find events by location",
    "Browse events by category",
    "View event details",
]

LOGIN_BENEFITS = [
    "Personalized recommendations",
    "Save favorite events",
    "Get location-based suggestions",
    "Advanced AI assistance",
]

SWEEP_INTERVAL = 5 * 60


@dataclass
class AssistantRequest:
    message: str
    user_id: Optional[str] = None
    role: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    location: Optional[str] = None


@dataclass
class AssistantResponse:
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    agents_used: List[str] = field(default_factory=list)
    reasoning: List[Any] = field(default_factory=list)
    confidence: float = 0.8
    safety_status: str = "safe"
    execution_time_ms: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "data": self.data,
            "explanation": {
                "agents_used": list(self.agents_used),
                "reasoning": list(self.reasoning),
                "confidence": self.confidence,
                "safety_status": self.safety_status,
            },
            "execution_time_ms": self.execution_time_ms,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class _Routed:
    """What one flow produced, before assembly."""

    flow: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    reasoning: List[Any] = field(default_factory=list)
    confidence: float = 0.8
    safety_status: str = "safe"


def _format_events(events: List[ScoredEvent]) -> str:
    lines = []
    for i, se in enumerate(events[:5], 1):
        ev = se.event
        when = ev.date.strftime("%Y-%m-%d") if ev.date else "TBD"
        desc = (ev.description[:100] + "...") if ev.description else "No description"
        reasons = "; ".join(se.explanation.get("reasons") or ())
        line = f"{i}. {ev.title}\n   - {desc}\n   - Location: {ev.location or 'TBD'}\n   - Date: {when}"
        if reasons:
            line += f"\n   - Why recommended: {reasons}"
        lines.append(line)
    return "\n\n".join(lines)


def _explanation_text(se: ScoredEvent) -> str:
    reasons = se.explanation.get("reasons") or []
    band = se.explanation.get("confidence", "")
    return f"{se.event.title}: {'; '.join(reasons) if reasons else band}"


def role_capabilities(role: RoleContext) -> List[str]:
    caps = ["Find events", "Get recommendations", "Ask questions"]
    if role.can_create_events:
        caps += ["Create events", "Generate descriptions", "Get analytics"]
    if role.is_admin:
        caps += ["Review flagged content", "View moderation insights", "Manage platform"]
    return caps


class Orchestrator:
    """Composes the pipeline components for one request/response cycle.

    Every collaborator is injected; see :func:`build_orchestrator` for the
    production wiring.
    """

    def __init__(
        self,
        intents: Any,
        roles: Any,
        memory: Any,
        geo: Any,
        retrieval: Any,
        moderation: Any,
        ranking: Any,
        governance: Any,
        organizer: Any,
        prose: Any,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.intents = intents
        self.roles = roles
        self.memory = memory
        self.geo = geo
        self.retrieval = retrieval
        self.moderation = moderation
        self.ranking = ranking
        self.governance = governance
        self.organizer = organizer
        self.prose = prose
        self.clock = clock
        self._last_sweep = time.monotonic()

    # ===================== entry point =====================

    def process_request(self, req: AssistantRequest) -> AssistantResponse:
        started = time.monotonic()
        used: List[str] = []
        try:
            intent = self.intents.classify(req.message)
            used.append(self.intents.name)
            role = self.roles.resolve(req.user_id, req.role)
            used.append(self.roles.name)
            memory = self.memory.read(req.user_id if role.role != "guest" else None)
            used.append(self.memory.name)

            routed = self._route(req, intent, role, memory, used)

            self.memory.write(
                req.user_id if role.role != "guest" else None,
                Interaction(
                    query=req.message,
                    intent=intent.category,
                    filters={k: list(v) for k, v in intent.filters.items()},
                    response=routed.message,
                ),
            )
            self._maybe_sweep()
            log.info("flow=%s role=%s agents=%s", routed.flow, role.role, used)
            return AssistantResponse(
                message=routed.message,
                data=routed.data,
                agents_used=used,
                reasoning=routed.reasoning,
                confidence=routed.confidence,
                safety_status=routed.safety_status,
                execution_time_ms=int((time.monotonic() - started) * 1000),
                timestamp=self.clock(),
            )
        except Exception:
            log.exception("assistant request failed after agents=%s", used)
            return AssistantResponse(
                message=DEGRADED_MESSAGE,
                agents_used=["ErrorHandler"],
                reasoning=["System error occurred"],
                confidence=0.1,
                safety_status="error",
                execution_time_ms=int((time.monotonic() - started) * 1000),
                timestamp=self.clock(),
            )

    def _route(
        self,
        req: AssistantRequest,
        intent: IntentResult,
        role: RoleContext,
        memory: UserMemory,
        used: List[str],
    ) -> _Routed:
        category = intent.category
        if role.role == "guest":
            return self._guest_flow(req, intent, role, used)
        if category in ("search", "find"):
            return self._search_flow(req, intent, role, memory, used, personalization_enabled=True)
        if category == "create" and role.can_create_events:
            return self._create_flow(req, used)
        if category == "moderate" and role.is_admin:
            return self._moderation_flow(req, used)
        if category == "recommend":
            return self._recommend_flow(req, intent, role, memory, used)
        if category == "analyze" and role.can_analyze:
            return self._analysis_flow(req, role, used)
        return self._general_flow(req, role, used)

    def _maybe_sweep(self) -> None:
        now = time.monotonic()
        if now - self._last_sweep >= SWEEP_INTERVAL:
            self._last_sweep = now
            self.memory.sweep()

    # ===================== prose =====================

    def _say(self, prompt: str, fallback: str, used: List[str]) -> str:
        """Prose reply; ``fallback`` whenever the collaborator degrades."""

        res: Outcome = self.prose.complete(prompt, max_tokens=300)
        used.append(self.prose.name)
        return fallback if res.degraded else res.value

    # ===================== flows =====================

    def _guest_flow(self, req: AssistantRequest, intent: IntentResult, role: RoleContext, used: List[str]) -> _Routed:
        if intent.category in ("search", "find"):
            return self._search_flow(req, intent, role, UserMemory.anonymous(), used, personalization_enabled=False)
        if intent.category == "recommend":
            return _Routed(
                flow="guest_recommend",
                message=GUEST_RECOMMEND_MESSAGE,
                data={
                    "login_prompt": True,
                    "guest_capabilities": ["Basic event search", "Browse all events", "Filter by category"],
                },
                reasoning=["Guest user requested recommendations", "Login required for personalization"],
                confidence=1.0,
            )
        message = self._say(self._general_prompt(req.message, role), static_fallback(req.message), used)
        return _Routed(
            flow="guest_general",
            message=message,
            data={
                "greeting": role.greeting,
                "guest_capabilities": GUEST_CAPABILITIES,
                "login_benefits": LOGIN_BENEFITS,
            },
            reasoning=["Guest user general interaction", "Promoting login benefits"],
            confidence=0.8,
        )

    def _search_flow(
        self,
        req: AssistantRequest,
        intent: IntentResult,
        role: RoleContext,
        memory: UserMemory,
        used: List[str],
        personalization_enabled: bool,
    ) -> _Routed:
        geo: GeoContext = self.geo.analyze(req.message, req.coordinates, req.location)
        used.append(self.geo.name)
        radius = geo.radius_km if personalization_enabled else max(geo.radius_km, rules.GUEST_RADIUS_KM)

        events = self.retrieval.search(
            req.message,
            coordinates=geo.coordinates,
            radius_km=radius,
            filters=dict(intent.filters),
            preferences=memory.preferences if personalization_enabled else None,
            role=role,
        )
        used.append(self.retrieval.name)
        safety = self.moderation.validate_results(events)
        used.append(self.moderation.name)
        ranked = self.ranking.rank(events, memory, geo.coordinates)
        used.append(self.ranking.name)

        guest = not personalization_enabled
        if not ranked:
            message = static_fallback(req.message)
        else:
            near = f" near {geo.location_name}" if geo.location_name else ""
            prompt = (
                f'User asked: "{req.message}"\n'
                f"I found {len(ranked)} events{near}:\n{_format_events(ranked)}\n\n"
                "Write a friendly, concise reply that summarizes what was found, highlights the most "
                "relevant events and explains why they match."
                + (" Mention that logging in gives personalized recommendations." if guest else "")
            )
            message = self._say(prompt, search_summary([s.event.title for s in ranked], guest=guest), used)

        data: Dict[str, Any] = {
            "events": [s.to_dict() for s in ranked[:5]],
            "total_found": len(events),
            "location": geo.location_name,
            "validation": {
                "flagged_events": safety.flagged_events,
                "warnings": safety.warnings,
                "safe_count": safety.safe_count,
            },
        }
        if guest:
            data["login_prompt"] = "Log in for personalized recommendations and advanced features!"
            reasoning: List[Any] = ["Basic event search for guest user", "No personalization applied"]
        else:
            reasoning = [_explanation_text(s) for s in ranked[:3]]
        return _Routed(
            flow="guest_search" if guest else "search",
            message=message,
            data=data,
            reasoning=reasoning,
            confidence=0.7 if guest else 0.9,
            safety_status=safety.status,
        )

    def _create_flow(self, req: AssistantRequest, used: List[str]) -> _Routed:
        reply = self.organizer.generate_event_content(req.message)
        used.append(self.organizer.name)
        content = reply.data.get("content") or {}
        verdict = self.moderation.moderate(content)
        used.append(self.moderation.name)

        data = dict(reply.data)
        data["suggestions"] = reply.suggestions
        data["moderation"] = verdict.to_dict()
        if content.get("title"):
            dupes = self.moderation.detect_duplicates(content)
            if dupes.is_duplicate:
                data["possible_duplicates"] = dupes.duplicates
        return _Routed(
            flow="create",
            message=reply.response,
            data=data,
            reasoning=reply.reasoning,
            confidence=reply.confidence,
            safety_status=verdict.status,
        )

    def _moderation_flow(self, req: AssistantRequest, used: List[str]) -> _Routed:
        reply = self.governance.analyze_request(req.message)
        used.append(self.governance.name)
        return _Routed(
            flow="moderate",
            message=reply.response,
            data=reply.data,
            reasoning=reply.reasoning,
            confidence=reply.confidence,
            safety_status="admin_action",
        )

    def _recommend_flow(
        self,
        req: AssistantRequest,
        intent: IntentResult,
        role: RoleContext,
        memory: UserMemory,
        used: List[str],
    ) -> _Routed:
        geo: GeoContext = self.geo.analyze(req.message, req.coordinates, req.location)
        used.append(self.geo.name)
        candidates = self.retrieval.recommendation_candidates(
            coordinates=geo.coordinates,
            radius_km=geo.radius_km or rules.DEFAULT_RADIUS_KM,
            preferences=memory.preferences,
            role=role,
        )
        used.append(self.retrieval.name)
        recs = self.ranking.personalize(candidates, memory, geo.coordinates)
        used.append(self.ranking.name)

        if not recs:
            message = "I'd love to recommend events for you! Try searching for some events first so I can learn your preferences."
        else:
            fallback = (
                f'I recommend "{recs[0].event.title}" - it looks like a great match for your interests! '
                "Would you like to see more recommendations?"
            )
            prompt = (
                f'User asked: "{req.message}"\n'
                f"Based on their preferences and location, I recommend these events:\n{_format_events(recs)}\n\n"
                "Write an enthusiastic, personal reply explaining why these are good matches."
            )
            message = self._say(prompt, fallback, used)
        return _Routed(
            flow="recommend",
            message=message,
            data={
                "recommendations": [s.to_dict() for s in recs[:5]],
                "total_candidates": len(candidates),
                "location": geo.location_name,
            },
            reasoning=[_explanation_text(s) for s in recs[:3]],
            confidence=0.85,
        )

    def _analysis_flow(self, req: AssistantRequest, role: RoleContext, used: List[str]) -> _Routed:
        if role.is_admin:
            reply = self.governance.generate_insights(req.message)
            used.append(self.governance.name)
        else:
            reply = self.organizer.generate_analytics(role.user_id)
            used.append(self.organizer.name)
        return _Routed(
            flow="analyze",
            message=reply.response,
            data=reply.data,
            reasoning=reply.reasoning,
            confidence=reply.confidence,
        )

    def _general_flow(self, req: AssistantRequest, role: RoleContext, used: List[str]) -> _Routed:
        message = self._say(self._general_prompt(req.message, role), static_fallback(req.message), used)
        return _Routed(
            flow="general",
            message=message,
            data={"greeting": role.greeting, "capabilities": role_capabilities(role), "help": list(role.contextual_help)},
            reasoning=["General conversation"],
            confidence=0.7,
        )

    @staticmethod
    def _general_prompt(message: str, role: RoleContext) -> str:
        return (
            f'User said: "{message}"\n'
            f"User role: {role.role}\n"
            "You are an AI assistant for an event discovery platform. Reply naturally and helpfully. "
            "You can help find events, give recommendations, create events (organizers) and "
            "manage the platform (admins)."
        )


def build_orchestrator(settings: Any, user_store: Any = None, event_store: Any = None) -> Orchestrator:
    """Production wiring from :class:`app.config.Settings`."""

    from app.agent.geo import GeoContextResolver
    from app.agent.governance import GovernanceReporter
    from app.agent.intent import IntentClassifier
    from app.agent.llm_agent import LLMAgent
    from app.agent.memory import SessionMemory
    from app.agent.moderation import ModerationScorer
    from app.agent.organizer import OrganizerAssistant
    from app.agent.ranking import RankingEngine
    from app.agent.retrieval import RetrievalService
    from app.agent.roles import RoleResolver
    from app.models.events import EventQuery
    from app.services.geocoding import NominatimGeocoder
    from app.state.session_store import SessionStore
    from app.storage.dao import SqliteEventStore, SqliteUserStore

    if user_store is None:
        user_store = SqliteUserStore(settings.events_db_path)
    if event_store is None:
        event_store = SqliteEventStore(settings.events_db_path)

    prose = LLMAgent(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout=settings.llm_timeout,
        max_tokens=settings.llm_max_tokens,
    )

    index = embedder = None
    if settings.semantic_search and settings.gemini_api_key:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        from app.storage.vector_index import VectorIndex

        index = VectorIndex()
        embedder = GoogleGenerativeAIEmbeddings(model=settings.embed_model, google_api_key=settings.gemini_api_key)

    geocoder = None
    if settings.geocoder_url:
        geocoder = NominatimGeocoder(url=settings.geocoder_url, user_agent=settings.geocoder_user_agent)

    retrieval = RetrievalService(event_store, index=index, embedder=embedder)
    if index is not None:
        for ev in event_store.find(EventQuery(sort=())):
            retrieval.index_event(ev)

    return Orchestrator(
        intents=IntentClassifier(prose),
        roles=RoleResolver(user_store),
        memory=SessionMemory(
            user_store,
            SessionStore(maxsize=settings.session_maxsize, ttl=settings.session_ttl),
        ),
        geo=GeoContextResolver(geocoder),
        retrieval=retrieval,
        moderation=ModerationScorer(prose, event_store),
        ranking=RankingEngine(prose),
        governance=GovernanceReporter(event_store, user_store),
        organizer=OrganizerAssistant(prose, event_store),
        prose=prose,
    )
