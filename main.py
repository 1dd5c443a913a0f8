"""Slack entry point: socket mode app wired to the event assistant pipeline."""

import logging
import os
import sys

from dotenv import load_dotenv
from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from app.config import load_settings
from app.flows.assistant_flow import register_assistant_flow
from app.flows.orchestrator import build_orchestrator

load_dotenv()

REQUIRED_ENV = [
    "SLACK_BOT_TOKEN",
    "SLACK_APP_TOKEN",
]
missing = [k for k in REQUIRED_ENV if not os.environ.get(k)]
if missing:
    sys.stderr.write(f"[ERROR] Missing environment variables: {', '.join(missing)}\n")
    sys.exit(1)

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = App(token=os.environ["SLACK_BOT_TOKEN"])
BOT_USER_ID = None  # resolved via auth.test at startup


if __name__ == "__main__":
    try:
        auth = app.client.auth_test()
        BOT_USER_ID = auth["user_id"]
    except Exception as e:
        sys.stderr.write(f"[WARN] auth_test failed: {e}\n")

    settings = load_settings()
    db_dir = os.path.dirname(settings.events_db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    orchestrator = build_orchestrator(settings)
    register_assistant_flow(app, orchestrator, BOT_USER_ID)

    handler = SocketModeHandler(app, os.environ["SLACK_APP_TOKEN"])
    handler.start()
