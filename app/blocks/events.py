"""Utilities to build Slack Block Kit structures for assistant replies."""

from __future__ import annotations

from typing import Dict, List

SAFETY_EMOJI = {
    "safe": ":white_check_mark:",
    "flagged_content_detected": ":warning:",
    "flagged": ":warning:",
    "requires_review": ":mag:",
    "rejected": ":no_entry:",
    "admin_action": ":shield:",
    "error": ":x:",
}


def event_to_blocks(event: Dict) -> List[Dict]:
    """Convert one event dict (as from ``ScoredEvent.to_dict``) to blocks."""

    title = event.get("title", "")
    date = (event.get("date") or "TBD")[:10]
    where = event.get("location") or "TBD"
    lines = [f"*{title}*", f"{date} | {where}"]
    reason = event.get("ai_explanation") or "; ".join((event.get("explanation") or {}).get("reasons") or ())
    if reason:
        lines.append(f"_{reason}_")

    blocks: List[Dict] = [{"type": "section", "text": {"type": "mrkdwn", "text": "\n".join(lines)}}]
    score = (event.get("explanation") or {}).get("score")
    if score is not None:
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"{event.get('category') or '-'} · match {score}%"}],
            }
        )
    return blocks


def response_blocks(response: Dict) -> List[Dict]:
    """Build blocks for a full ``AssistantResponse.to_dict()`` payload."""

    data = response.get("data") or {}
    explanation = response.get("explanation") or {}
    blocks: List[Dict] = [
        {"type": "section", "text": {"type": "mrkdwn", "text": response.get("message", "")}},
    ]

    events = data.get("events") or data.get("recommendations") or []
    if events:
        blocks.append({"type": "divider"})
        for ev in events:
            blocks += event_to_blocks(ev)

    if data.get("login_prompt") and isinstance(data["login_prompt"], str):
        blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": data["login_prompt"]}]})

    status = explanation.get("safety_status", "safe")
    agents = ", ".join(explanation.get("agents_used") or ())
    blocks.append(
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"{SAFETY_EMOJI.get(status, '')} {status} | {agents}".strip(),
                }
            ],
        }
    )
    return blocks
