from __future__ import annotations

import pytest
import requests

from conftest import fixture_json
from net_monitor.config import LocationConfig
from net_monitor.errors import LocationError
from net_monitor.location import IpapiLocationProvider
from net_monitor.models import GeoPoint


class FakeResponse:
    def __init__(self, body, status_code: int = 200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class FakeSession(requests.Session):
    def __init__(self, response: FakeResponse):
        super().__init__()
        self.response = response
        self.urls = []

    def get(self, url, timeout=None, **kwargs):
        self.urls.append(url)
        return self.response


def _provider(response: FakeResponse):
    session = FakeSession(response)
    return IpapiLocationProvider(LocationConfig(), session=session), session


def test_current_location() -> None:
    provider, session = _provider(FakeResponse(fixture_json("ipapi.json")))

    location = provider.current_location()

    assert session.urls == ["https://ipapi.co/json/"]
    assert location.country_name == "Spain"
    assert location.geo_point == GeoPoint(41.3891, 2.1611)
    assert session.headers["User-Agent"].startswith("net-monitor/")


def test_location_for_address() -> None:
    provider, session = _provider(FakeResponse({"ip": "8.8.8.8", "country": "US", "lat": 37.75, "lon": -97.82}))

    location = provider.location_for_address("8.8.8.8")

    assert session.urls == ["https://ipapi.co/8.8.8.8/json/"]
    assert location.geo_point == GeoPoint(37.75, -97.82)


def test_error_payload_raises() -> None:
    provider, _ = _provider(FakeResponse({"error": True, "reason": "RateLimited"}))

    with pytest.raises(LocationError, match="RateLimited"):
        provider.current_location()


def test_http_error_raises() -> None:
    provider, _ = _provider(FakeResponse({}, status_code=429))

    with pytest.raises(LocationError):
        provider.current_location()


def test_invalid_json_raises() -> None:
    provider, _ = _provider(FakeResponse(ValueError("Expecting value")))

    with pytest.raises(LocationError):
        provider.current_location()
