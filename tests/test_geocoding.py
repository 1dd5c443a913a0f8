import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import requests

from app.services import geocoding
from app.services.geocoding import NominatimGeocoder, geocode


class DummyResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")

    def json(self):
        return self._payload


def test_geocode_returns_lon_lat(monkeypatch):
    seen = {}

    def fake_get(url, params=None, headers=None, timeout=None):
        seen.update(url=url, params=params, headers=headers, timeout=timeout)
        return DummyResponse([{"lat": "51.5", "lon": "-0.12"}])

    monkeypatch.setattr(geocoding.requests, "get", fake_get)
    assert geocode("Shoreditch", url="http://geo.test/search", user_agent="ua") == (-0.12, 51.5)
    assert seen["params"]["q"] == "Shoreditch"
    assert seen["headers"]["User-Agent"] == "ua"
    assert seen["timeout"] == 5


def test_geocode_errors_are_swallowed(monkeypatch):
    monkeypatch.setattr(geocoding.requests, "get", lambda *a, **k: DummyResponse([], status=503))
    assert geocode("Nowhere") is None

    def boom(*a, **k):
        raise requests.Timeout("slow")

    monkeypatch.setattr(geocoding.requests, "get", boom)
    assert NominatimGeocoder(timeout=1)("Nowhere") is None


def test_geocode_blank_place_skips_request(monkeypatch):
    def fail(*a, **k):
        raise AssertionError("should not be called")

    monkeypatch.setattr(geocoding.requests, "get", fail)
    assert geocode("  ") is None
