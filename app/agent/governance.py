"""Admin-facing governance reports built from stored moderation flags."""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Sequence

from app import rules
from app.agent.base_agent import BaseAgent
from app.models.events import EventCandidate, EventQuery, utcnow
from app.models.reply import AgentReply

_EVENT_TARGET = re.compile(r"\bevent(?:\s+id)?[:\s]+([\w-]*\d[\w-]*)", re.IGNORECASE)
_USER_TARGET = re.compile(r"\b(?:user|organizer)(?:\s+id)?[:\s]+([\w-]*\d[\w-]*)", re.IGNORECASE)

GOVERNANCE_CAPABILITIES = [
    "Review flagged events and content",
    "Analyze moderation queue and priorities",
    "Assess platform health metrics",
    "Provide risk assessments",
    "Generate governance insights",
    "Track safety and quality trends",
]

GOVERNANCE_COMMANDS = [
    '"Show flagged events" - content needing review',
    '"Platform health" - overall system health metrics',
    '"Moderation queue" - pending events, prioritized',
    '"Risk assessment for event <id>" - analyze one event',
]


def request_type(message: str) -> str:
    lowered = (message or "").lower()
    if "flag" in lowered:
        return "flagged_events"
    if "risk" in lowered or "assess" in lowered:
        return "risk_assessment"
    if "queue" in lowered or "pending" in lowered:
        return "moderation_queue"
    if "health" in lowered or "platform" in lowered:
        return "platform_health"
    if "report" in lowered or "complaint" in lowered:
        return "user_reports"
    if "trend" in lowered or "pattern" in lowered:
        return "trends"
    return "general"


def risk_band(score: float) -> str:
    if score > 0.8:
        return "high"
    if score > 0.6:
        return "medium"
    return "low"


class GovernanceReporter(BaseAgent):
    def __init__(
        self,
        event_store: Any,
        user_store: Any = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__("AdminGovernanceAgent")
        self.event_store = event_store
        self.user_store = user_store
        self.clock = clock

    # ===================== routing =====================

    def analyze_request(self, message: str) -> AgentReply:
        kind = request_type(message)
        handlers: Dict[str, Callable[[], AgentReply]] = {
            "flagged_events": self.flagged_digest,
            "risk_assessment": lambda: self.risk_assessment(message),
            "moderation_queue": self.moderation_queue,
            "platform_health": self.platform_health,
            "user_reports": self.user_reports,
            "trends": self.trends,
        }
        handler = handlers.get(kind, self.general_help)
        try:
            reply = handler()
        except Exception as e:
            self.log.warning("governance %s failed: %s", kind, e)
            return self.error_reply(f"Unable to complete the {kind.replace('_', ' ')} request")
        reply.data.setdefault("request_type", kind)
        return reply

    def generate_insights(self, message: str) -> AgentReply:
        try:
            health = self.health_metrics()
            flagged = self._flagged_events()
        except Exception as e:
            self.log.warning("governance insights failed: %s", e)
            return self.error_reply("Unable to generate platform insights")
        return AgentReply(
            response=f"Platform health is {health['status']} ({health['score']}/100) "
            f"with {len(flagged)} events needing attention.",
            data={"health": health, "patterns": self.analyze_patterns(flagged)},
            reasoning=["Combined platform health with flagged-content patterns"],
            confidence=0.85,
        )

    @staticmethod
    def error_reply(message: str) -> AgentReply:
        return AgentReply(
            response=f"{message}. Please try again or contact system administrator.",
            reasoning=["System error occurred"],
            confidence=0.1,
        )

    # ===================== flagged digest =====================

    def _flagged_events(self, limit: int = 20) -> List[EventCandidate]:
        medium = rules.RISK_THRESHOLDS["medium"]
        query = EventQuery(
            statuses=None,
            predicate=lambda e: e.risk_score > medium or e.status == "pending" or bool(e.warnings),
            sort=(("risk_score", -1),),
            limit=limit,
        )
        return self.event_store.find(query)

    def flagged_digest(self) -> AgentReply:
        events = self._flagged_events()
        return AgentReply(
            response=f"Found {len(events)} events requiring attention. Here's the breakdown:",
            data={
                "flagged_events": [
                    {
                        "id": e.id,
                        "title": e.title,
                        "organizer": e.organizer_name or "Unknown",
                        "risk_score": e.risk_score,
                        "warnings": list(e.warnings),
                        "status": e.status,
                        "flagged_date": e.created_at,
                    }
                    for e in events
                ],
                "summary": self.analyze_patterns(events),
                "action_required": sum(1 for e in events if e.risk_score > rules.RISK_THRESHOLDS["high"]),
                "total_flagged": len(events),
            },
            reasoning=[
                "Analyzed events with risk scores above threshold",
                "Ordered by stored risk score",
                "Identified common patterns in flagged content",
            ],
            confidence=0.9,
        )

    @staticmethod
    def analyze_patterns(events: Sequence[EventCandidate]) -> Dict[str, Any]:
        distribution = Counter({"high": 0, "medium": 0, "low": 0})
        warnings: Counter = Counter()
        categories: Counter = Counter()
        organizers: Counter = Counter()
        for e in events:
            distribution[risk_band(e.risk_score)] += 1
            warnings.update(e.warnings)
            categories[e.category or "uncategorized"] += 1
            if e.organizer:
                organizers[e.organizer] += 1
        return {
            "risk_distribution": dict(distribution),
            "common_warnings": dict(warnings.most_common()),
            "category_breakdown": dict(categories),
            "organizer_patterns": dict(organizers),
        }

    # ===================== moderation queue =====================

    def _hours_waiting(self, e: EventCandidate) -> float:
        created = e.created_at or self.clock()
        return max((self.clock() - created).total_seconds() / 3600, 0.0)

    def priority(self, e: EventCandidate) -> str:
        hours = self._hours_waiting(e)
        if e.risk_score > 0.8 or hours > 48:
            return "high"
        if e.risk_score > 0.6 or hours > 24:
            return "medium"
        return "low"

    def waiting_time(self, e: EventCandidate) -> str:
        hours = int(self._hours_waiting(e))
        if hours < 1:
            return "Less than 1 hour"
        if hours < 24:
            return f"{hours} hours"
        days = hours // 24
        return f"{days} day{'s' if days > 1 else ''}"

    @staticmethod
    def recommended_action(e: EventCandidate) -> str:
        if e.risk_score > 0.9:
            return "Reject - High risk"
        if e.risk_score > 0.7:
            return "Manual review required"
        if e.risk_score > 0.5:
            return "Approve with monitoring"
        if e.warnings:
            return "Review warnings"
        return "Approve"

    def moderation_queue(self) -> AgentReply:
        pending = self.event_store.find(
            EventQuery(statuses=("pending",), sort=(("risk_score", -1), ("created_at", 1)))
        )
        queue = [
            {
                "id": e.id,
                "title": e.title,
                "organizer": e.organizer_name or "Unknown",
                "risk_score": e.risk_score,
                "priority": self.priority(e),
                "waiting_time": self.waiting_time(e),
                "warnings": list(e.warnings),
                "recommended_action": self.recommended_action(e),
            }
            for e in pending
        ]
        counts = Counter(item["priority"] for item in queue)
        avg = round(sum(self._hours_waiting(e) for e in pending) / len(pending)) if pending else 0
        return AgentReply(
            response=f"Moderation queue contains {len(queue)} events. Here's your prioritized list:",
            data={
                "queue": queue,
                "high_priority": counts["high"],
                "medium_priority": counts["medium"],
                "low_priority": counts["low"],
                "average_wait_time": f"{avg} hours",
            },
            reasoning=[
                "Prioritized by risk score and waiting time",
                "Provided recommended actions for each event",
            ],
            confidence=0.95,
        )

    # ===================== platform health =====================

    def health_metrics(self) -> Dict[str, Any]:
        now = self.clock()
        total = self.event_store.count(EventQuery(statuses=None))
        recent = self.event_store.count(EventQuery(statuses=None, created_from=now - timedelta(days=7)))
        flagged = self.event_store.count(EventQuery(statuses=None, min_risk_score=rules.RISK_THRESHOLDS["medium"]))
        active = 0
        if self.user_store is not None:
            active = self.user_store.count_active_since(now - timedelta(days=30))
        return self.health_score(total, recent, flagged, active)

    @staticmethod
    def health_score(total: int, recent: int, flagged: int, active_users: int) -> Dict[str, Any]:
        score = 100
        alerts: List[str] = []
        recommendations: List[str] = []

        rate = flagged / total if total else 0.0
        if rate > 0.15:
            score -= 20
            alerts.append("High flagged content rate")
            recommendations.append("Review moderation policies")
        elif rate > 0.10:
            score -= 10
            recommendations.append("Monitor content quality trends")
        if recent < 5:
            score -= 15
            alerts.append("Low event creation activity")
            recommendations.append("Consider user engagement initiatives")
        if active_users < 10:
            score -= 10
            recommendations.append("Focus on user acquisition")

        status = rules.HEALTH_TOP_BAND
        for ceiling, band in rules.HEALTH_BANDS:
            if score < ceiling:
                status = band
                break
        return {
            "score": score,
            "status": status,
            "metrics": {
                "total_events": total,
                "recent_events": recent,
                "flagged_events": flagged,
                "active_users": active_users,
                "flagged_rate": f"{rate * 100:.2f}%",
            },
            "alerts": alerts,
            "recommendations": recommendations,
        }

    def platform_health(self) -> AgentReply:
        health = self.health_metrics()
        return AgentReply(
            response=f"Platform health score: {health['score']}/100 ({health['status']})",
            data=health,
            reasoning=["Calculated from content quality and user activity", "Identified areas needing attention"],
            confidence=0.85,
        )

    # ===================== risk assessment =====================

    def risk_assessment(self, message: str) -> AgentReply:
        m = _EVENT_TARGET.search(message or "")
        if m:
            data = self._event_risk(m.group(1))
        else:
            u = _USER_TARGET.search(message or "")
            data = self._organizer_risk(u.group(1)) if u else self._general_risk()
        return AgentReply(
            response=f"Risk assessment complete. Overall risk level: {data['risk_level']}",
            data=data,
            reasoning=data.pop("reasoning"),
            confidence=0.8,
        )

    def _event_risk(self, event_id: str) -> Dict[str, Any]:
        e = self.event_store.get(event_id)
        if e is None:
            raise LookupError(f"event {event_id} not found")
        factors = []
        if e.risk_score > 0.8:
            factors.append("High AI-detected risk score")
        if e.warnings:
            factors.append(f"{len(e.warnings)} moderation warnings")
        return {
            "event_id": e.id,
            "title": e.title,
            "risk_level": risk_band(e.risk_score).capitalize(),
            "risk_score": e.risk_score,
            "risk_factors": factors,
            "organizer": e.organizer_name or "Unknown",
            "status": e.status,
            "reasoning": ["Analyzed stored moderation flags and warnings"],
        }

    def _organizer_risk(self, organizer_id: str) -> Dict[str, Any]:
        events = self.event_store.find(EventQuery(statuses=None, organizer=organizer_id, sort=()))
        avg = sum(e.risk_score for e in events) / len(events) if events else 0.0
        return {
            "organizer": organizer_id,
            "risk_level": risk_band(avg).capitalize(),
            "average_risk_score": round(avg, 3),
            "event_count": len(events),
            "flagged_count": sum(1 for e in events if e.risk_score > rules.RISK_THRESHOLDS["medium"]),
            "reasoning": ["Averaged stored risk scores across the organizer's events"],
        }

    def _general_risk(self) -> Dict[str, Any]:
        health = self.health_metrics()
        flagged = self._flagged_events()
        avg = sum(e.risk_score for e in flagged) / len(flagged) if flagged else 0.0
        return {
            "risk_level": risk_band(avg).capitalize(),
            "flagged_rate": health["metrics"]["flagged_rate"],
            "patterns": self.analyze_patterns(flagged),
            "reasoning": ["Based on the flagged-content rate", "Analyzed content moderation patterns"],
        }

    # ===================== misc =====================

    def trends(self) -> AgentReply:
        patterns = self.analyze_patterns(self._flagged_events(limit=100))
        top = next(iter(patterns["common_warnings"]), None)
        text = f'The most common moderation warning is "{top}".' if top else "No recurring moderation warnings."
        return AgentReply(
            response=text,
            data={"patterns": patterns},
            reasoning=["Aggregated warnings and categories across flagged events"],
            confidence=0.75,
        )

    def user_reports(self) -> AgentReply:
        return AgentReply(
            response="User reports are not collected yet; here is the flagged-content digest instead.",
            data=self.flagged_digest().data,
            reasoning=["No user report source is configured"],
            confidence=0.5,
        )

    @staticmethod
    def general_help() -> AgentReply:
        return AgentReply(
            response="I can help you with platform governance and moderation. Here's what I can do:",
            data={"capabilities": GOVERNANCE_CAPABILITIES, "common_commands": GOVERNANCE_COMMANDS},
            reasoning=["Comprehensive admin assistance available"],
            confidence=0.9,
        )
