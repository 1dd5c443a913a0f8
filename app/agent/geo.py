"""Location context: where the user wants events, and how far out to look."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from app import rules
from app.agent.base_agent import BaseAgent
from app.models.events import Coordinates

LOCATION_ALIASES: Dict[str, str] = {
    "near me": "user_location",
    "nearby": "user_location",
    "around here": "user_location",
    "downtown": "city_center",
    "city center": "city_center",
    "online": "virtual",
    "virtual": "virtual",
    "remote": "virtual",
}

CITY_COORDINATES: Dict[str, Coordinates] = {
    "london": (-0.1278, 51.5074),
    "new york": (-74.0060, 40.7128),
    "san francisco": (-122.4194, 37.7749),
    "los angeles": (-118.2437, 34.0522),
    "chicago": (-87.6298, 41.8781),
    "toronto": (-79.3832, 43.6532),
    "paris": (2.3522, 48.8566),
    "berlin": (13.4050, 52.5200),
    "tokyo": (139.6917, 35.6895),
    "sydney": (151.2093, -33.8688),
}

LOCATION_INDICATORS = ("in ", "at ", "near ", "around ")

RADIUS_PATTERNS = (
    re.compile(r"within (\d+)\s*(km|kilometers|miles|mi)\b", re.IGNORECASE),
    re.compile(r"(\d+)\s*(km|kilometers|miles|mi) radius", re.IGNORECASE),
    re.compile(r"(\d+)\s*(km|kilometers|miles|mi) away", re.IGNORECASE),
)


@dataclass(frozen=True)
class GeoContext:
    has_location: bool = False
    coordinates: Optional[Coordinates] = None
    location_name: Optional[str] = None
    radius_km: float = rules.DEFAULT_RADIUS_KM
    is_virtual: bool = False


class GeoContextResolver(BaseAgent):
    def __init__(
        self,
        geocoder: Optional[Callable[[str], Optional[Coordinates]]] = None,
        default_radius: float = rules.DEFAULT_RADIUS_KM,
        max_radius: float = rules.MAX_RADIUS_KM,
    ) -> None:
        super().__init__("GeoContextAgent")
        self.geocoder = geocoder
        self.default_radius = default_radius
        self.max_radius = max_radius

    def analyze(
        self,
        message: str,
        coordinates: Optional[Coordinates] = None,
        location_text: Optional[str] = None,
    ) -> GeoContext:
        message = message or ""
        radius = self.extract_radius(message)
        try:
            if coordinates is not None:
                lon, lat = coordinates
                return GeoContext(True, (float(lon), float(lat)), f"Location ({lat:.4f}, {lon:.4f})", radius)

            if location_text:
                coords = self.geocode(location_text)
                return GeoContext(coords is not None, coords, location_text, radius)

            place = self.extract_location(message)
            if place == "virtual":
                return GeoContext(location_name="Virtual/Online", radius_km=0, is_virtual=True)
            if place:
                coords = self.geocode(place)
                return GeoContext(coords is not None, coords, place, radius)
        except Exception as e:
            self.log.warning("geo analysis failed: %s", e)
        return GeoContext(radius_km=self.default_radius)

    def extract_location(self, message: str) -> Optional[str]:
        lowered = message.lower()
        for alias, target in LOCATION_ALIASES.items():
            if alias in lowered:
                return target
        for city in CITY_COORDINATES:
            if city in lowered:
                return city
        for indicator in LOCATION_INDICATORS:
            idx = lowered.find(indicator)
            if idx == -1:
                continue
            words = message[idx + len(indicator):].split(" ")[:3]
            candidate = re.sub(r"[^\w\s]", "", " ".join(words)).strip()
            if len(candidate) > 2:
                return candidate
        return None

    def extract_radius(self, message: str) -> float:
        for pattern in RADIUS_PATTERNS:
            m = pattern.search(message)
            if m:
                distance = int(m.group(1))
                if m.group(2).lower().startswith("mi"):
                    distance = round(distance * 1.609)
                return min(distance, self.max_radius)
        lowered = message.lower()
        if "close" in lowered or "nearby" in lowered:
            return 10
        if "far" in lowered or "anywhere" in lowered:
            return 50
        return self.default_radius

    def geocode(self, place: str) -> Optional[Coordinates]:
        """Known city table first, then the optional external geocoder."""

        key = place.lower().strip()
        if key in CITY_COORDINATES:
            return CITY_COORDINATES[key]
        if key in ("user_location", "city_center") or self.geocoder is None:
            return None
        res = self.guard("geocode", lambda: self.geocoder(place), None)
        return res.value
