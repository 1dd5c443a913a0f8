"""Gemini-backed prose generation.

The assistant never depends on the model for correctness: every call returns
an :class:`~app.agent.base_agent.Outcome`, and a degraded outcome carries a
usable local value. Without an API key the agent stays permanently degraded.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, Optional

from langchain_core.prompts import ChatPromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI

from app import rules
from app.agent.base_agent import BaseAgent, Outcome
from app.services.fallback import classify_intent_fallback, static_fallback

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMAgent(BaseAgent):
    """Prose-generation collaborator for the assistant pipeline."""

    def __init__(
        self,
        name: str = "LLMAgent",
        system_prompt: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 10.0,
        max_tokens: int = 300,
        chat_model: Any = None,
    ) -> None:
        super().__init__(name)
        self.system_prompt = system_prompt or (
            "You are an AI assistant for an event discovery platform. "
            "Answer briefly, in a friendly tone, and never invent events."
        )
        self.max_tokens = max_tokens

        if chat_model is not None:
            self.llm = chat_model
        else:
            key = api_key or os.environ.get("GEMINI_API_KEY")
            if key:
                self.llm = ChatGoogleGenerativeAI(
                    model=model or os.environ.get("GEMINI_MODEL", "gemini-2.5-flash"),
                    google_api_key=key,
                    timeout=timeout,
                    max_retries=1,
                    max_output_tokens=max_tokens,
                )
            else:
                self.log.warning("GEMINI_API_KEY not set; prose generation runs on local fallbacks")
                self.llm = None

        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", self.system_prompt),
                ("human", "{input}"),
            ]
        )

    @property
    def available(self) -> bool:
        return self.llm is not None

    def _model_for(self, max_tokens: int) -> Any:
        if max_tokens == self.max_tokens or not hasattr(self.llm, "model_copy"):
            return self.llm
        return self.llm.model_copy(update={"max_output_tokens": max_tokens})

    def _invoke(self, text: str, max_tokens: int) -> str:
        if self.llm is None:
            raise RuntimeError("prose generation is not configured")
        messages = self.prompt.format_messages(input=text)
        resp = self._model_for(max_tokens).invoke(messages)
        content = getattr(resp, "content", resp)
        # Gemini may answer with a list of content parts
        if isinstance(content, list):
            content = "".join(
                p.get("text", "") if isinstance(p, dict) else str(p) for p in content
            )
        content = str(content or "").strip()
        if not content:
            raise ValueError("empty completion")
        return content

    def complete(self, prompt: str, max_tokens: Optional[int] = None) -> Outcome[str]:
        """Free-text completion; degraded value is the static fallback reply."""

        try:
            return Outcome.ok(self._invoke(prompt, max_tokens or self.max_tokens))
        except Exception as e:
            self.log.warning("completion failed: %s", e)
            return Outcome.fallback(static_fallback(prompt), e)

    def complete_json(
        self,
        prompt: str,
        default: Dict[str, Any],
        max_tokens: Optional[int] = None,
    ) -> Outcome[Dict[str, Any]]:
        """Completion expected to be a JSON object; anything else degrades to ``default``."""

        try:
            text = self._invoke(prompt, max_tokens or self.max_tokens)
            data = json.loads(_FENCE.sub("", text.strip()))
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            return Outcome.ok(data)
        except Exception as e:
            self.log.warning("json completion failed: %s", e)
            return Outcome.fallback(dict(default), e)

    def classify_intent(self, text: str) -> Outcome[str]:
        """Ask the model for a single intent label from the fixed enumeration."""

        labels = ", ".join(rules.INTENT_CATEGORIES)
        prompt = (
            f"Classify this event-platform message into exactly one of: {labels}.\n"
            f'Message: "{text}"\n'
            "Answer with the label only."
        )
        try:
            label = self._invoke(prompt, 10).strip().strip(".").lower()
            if label not in rules.INTENT_CATEGORIES:
                raise ValueError(f"unknown intent label {label!r}")
            return Outcome.ok(label)
        except Exception as e:
            self.log.warning("intent classification failed: %s", e)
            return Outcome.fallback(classify_intent_fallback(text), e)
