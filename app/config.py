"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    llm_timeout: float = 10.0
    llm_max_tokens: int = 300
    events_db_path: str = "data/events.db"
    session_ttl: int = 2 * 60 * 60
    session_maxsize: int = 1024
    geocoder_url: Optional[str] = None
    geocoder_user_agent: str = "event-map-assistant"
    semantic_search: bool = False
    embed_model: str = "models/text-embedding-004"


def load_settings() -> Settings:
    """Read ``.env`` (if any) and the process environment."""

    load_dotenv()
    return Settings(
        gemini_api_key=os.environ.get("GEMINI_API_KEY") or None,
        gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.5-flash"),
        llm_timeout=_env_float("LLM_TIMEOUT", 10.0),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", 300),
        events_db_path=os.environ.get("EVENTS_DB_PATH", "data/events.db"),
        session_ttl=_env_int("SESSION_TTL", 2 * 60 * 60),
        session_maxsize=_env_int("SESSION_MAXSIZE", 1024),
        geocoder_url=os.environ.get("GEOCODER_URL") or None,
        geocoder_user_agent=os.environ.get("GEOCODER_USER_AGENT", "event-map-assistant"),
        semantic_search=os.environ.get("SEMANTIC_SEARCH") == "1",
        embed_model=os.environ.get("EMBED_MODEL", "models/text-embedding-004"),
    )
