"""OpenStreetMap Nominatim client."""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional, Tuple

import requests

API_URL = os.environ.get("GEOCODER_URL", "https://nominatim.openstreetmap.org/search")
USER_AGENT = os.environ.get("GEOCODER_USER_AGENT", "event-map-assistant")

log = logging.getLogger(__name__)


def _extract(place: Dict) -> Optional[Tuple[float, float]]:
    try:
        return float(place["lon"]), float(place["lat"])
    except (KeyError, TypeError, ValueError):
        return None


def geocode(
    place: str,
    url: Optional[str] = None,
    user_agent: Optional[str] = None,
    timeout: float = 5,
) -> Optional[Tuple[float, float]]:
    """Look up ``place`` and return (lon, lat) of the best match.

    On error, None is returned and the exception is logged.
    """

    if not place or not place.strip():
        return None
    params: Dict[str, object] = {
        "q": place.strip(),
        "format": "json",
        "limit": 1,
    }
    headers = {"User-Agent": user_agent or USER_AGENT}
    try:
        resp = requests.get(url or API_URL, params=params, headers=headers, timeout=timeout)
        resp.raise_for_status()
        results = resp.json() or []
        return _extract(results[0]) if results else None
    except Exception as e:  # pragma: no cover - best effort
        log.warning("Nominatim error for %r: %s", place, e)
        return None


class NominatimGeocoder:
    """Callable wrapper so the resolver can take any ``geocode(place)`` function."""

    def __init__(self, url: Optional[str] = None, user_agent: Optional[str] = None, timeout: float = 5) -> None:
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout

    def __call__(self, place: str) -> Optional[Tuple[float, float]]:
        return geocode(place, url=self.url, user_agent=self.user_agent, timeout=self.timeout)
