# app/flows/assistant_flow.py
from __future__ import annotations

from typing import Optional

from slack_bolt import App

from app.blocks.events import response_blocks
from app.flows.orchestrator import AssistantRequest, Orchestrator

HELP_TEXT = (
    "*Event assistant*\n"
    "1) Mention me with a question, e.g. `find tech events this weekend near me`.\n"
    "2) Ask for `recommendations` to get suggestions based on your history.\n"
    "3) Organizers can ask me to `write a description for \"My Event\"` or `show my analytics`.\n"
    "4) Admins can ask for `flagged events`, `moderation queue` or `platform health`.\n"
    "5) Add `in <city>` or `within 10 km` to change the search area.\n"
)


def strip_mention(text: str) -> str:
    if not text:
        return ""
    if text.startswith("<@"):
        after = text.split(">", 1)
        return after[1].strip() if len(after) == 2 else text
    return text


def role_help(orchestrator: Orchestrator, user: Optional[str]) -> str:
    """Greeting plus the help lines for the caller's role."""

    role = orchestrator.roles.resolve(user)
    lines = "\n".join(f"• {h}" for h in role.contextual_help)
    return f"{role.greeting}\n{lines}\n\n{HELP_TEXT}"


def answer(orchestrator: Orchestrator, text: str, user: Optional[str]) -> dict:
    """Run one message through the pipeline; Slack-ready payload."""

    resp = orchestrator.process_request(AssistantRequest(message=text, user_id=user)).to_dict()
    return {"text": resp["message"], "blocks": response_blocks(resp)}


# ===== registration =====

def register_assistant_flow(app: App, orchestrator: Orchestrator, bot_user_id: Optional[str] = None) -> None:
    @app.command("/event-help")
    def cmd_help(ack, body, say):
        ack()
        say(text=role_help(orchestrator, body.get("user_id")))

    @app.command("/event-ask")
    def cmd_ask(ack, body, respond, logger):
        ack()
        text = (body.get("text") or "").strip()
        if not text:
            respond(text="Usage: `/event-ask find music events this weekend`")
            return
        try:
            respond(**answer(orchestrator, text, body.get("user_id")))
        except Exception as e:
            logger.exception(e)
            respond(text="Something went wrong. Please try again.")

    @app.event("app_mention")
    def on_mention(event, say, logger):
        user = event.get("user")
        if bot_user_id and user == bot_user_id:
            return
        text = strip_mention(event.get("text", ""))
        if not text:
            say(text=HELP_TEXT, thread_ts=event.get("ts"))
            return
        payload = answer(orchestrator, text, user)
        say(text=f"<@{user}> {payload['text']}", blocks=payload["blocks"], thread_ts=event.get("thread_ts") or event.get("ts"))
