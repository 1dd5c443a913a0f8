"""In-memory session cache with inactivity TTL and LRU eviction."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, Tuple, TypeVar

V = TypeVar("V")


class SessionStore(Generic[V]):
    """Keyed short-term cache.

    An entry expires ``ttl`` seconds after it was last read or written, and
    the least recently used entry is dropped once ``maxsize`` is exceeded.
    Nothing here is durable; callers keep the source of truth elsewhere.
    """

    def __init__(
        self,
        maxsize: int = 1024,
        ttl: int = 2 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._data: "OrderedDict[str, Tuple[V, float]]" = OrderedDict()
        self._guard = threading.Lock()
        self._key_locks: "dict[str, threading.RLock]" = {}

    def _evict_expired(self) -> int:
        now = self._clock()
        expired = [sid for sid, (_, ts) in self._data.items() if now - ts > self.ttl]
        for sid in expired:
            self._data.pop(sid, None)
            self._key_locks.pop(sid, None)
        return len(expired)

    def get(self, session_id: str) -> Optional[V]:
        """Return the entry for ``session_id`` if it exists and is fresh."""

        with self._guard:
            self._evict_expired()
            item = self._data.get(session_id)
            if not item:
                return None
            value, _ = item
            # touch: counts as activity
            self._data.move_to_end(session_id)
            self._data[session_id] = (value, self._clock())
            return value

    def set(self, session_id: str, value: V) -> None:
        with self._guard:
            self._evict_expired()
            if session_id in self._data:
                self._data.move_to_end(session_id)
            self._data[session_id] = (value, self._clock())
            if len(self._data) > self.maxsize:
                old, _ = self._data.popitem(last=False)
                self._key_locks.pop(old, None)

    def evict(self, session_id: str) -> None:
        with self._guard:
            self._data.pop(session_id, None)
            self._key_locks.pop(session_id, None)

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""

        with self._guard:
            return self._evict_expired()

    def lock(self, session_id: str) -> threading.RLock:
        """Per-key lock used to serialize read-modify-write on one session."""

        with self._guard:
            lk = self._key_locks.get(session_id)
            if lk is None:
                lk = self._key_locks[session_id] = threading.RLock()
            return lk

    def __len__(self) -> int:
        with self._guard:
            return len(self._data)

    def __contains__(self, session_id: object) -> bool:
        with self._guard:
            return session_id in self._data
