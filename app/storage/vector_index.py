"""In-process vector index for the optional semantic search step."""

from __future__ import annotations

import math
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0 or nb == 0:
        return 0.0
    return dot / (na * nb)


class VectorIndex:
    """Brute-force cosine index. Fine for a few thousand events."""

    def __init__(self) -> None:
        self._rows: Dict[str, Tuple[List[float], Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def upsert(self, item_id: str, embedding: Sequence[float], metadata: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            self._rows[item_id] = (list(embedding), dict(metadata or {}))

    def delete(self, item_id: str) -> None:
        with self._lock:
            self._rows.pop(item_id, None)

    def query(self, embedding: Sequence[float], k: int = 20) -> List[Tuple[str, float]]:
        """Return up to ``k`` (id, score) pairs, best first."""

        with self._lock:
            rows = list(self._rows.items())
        scored = [(item_id, cosine(embedding, vec)) for item_id, (vec, _) in rows]
        scored.sort(key=lambda p: p[1], reverse=True)
        return scored[:k]

    def metadata(self, item_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows.get(item_id)
        return dict(row[1]) if row else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
