from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a collaborator call.

    ``degraded`` is True when ``value`` is a local fallback rather than a real
    answer from the collaborator.
    """

    value: T
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, error: Optional[BaseException | str] = None) -> "Outcome[T]":
        if isinstance(error, BaseException):
            error = f"{type(error).__name__}: {error}"
        return cls(value=value, degraded=True, error=error)


class BaseAgent:
    def __init__(self, name: str) -> None:
        self.name = name
        self.log = logging.getLogger(f"{type(self).__module__}.{type(self).__name__}")

    def guard(self, what: str, fn: Callable[[], T], default: T) -> Outcome[T]:
        """Run ``fn``; on any failure log it and return ``default`` as degraded."""

        try:
            return Outcome.ok(fn())
        except Exception as e:
            self.log.warning("%s: %s failed: %s", self.name, what, e)
            return Outcome.fallback(default, e)
