"""Host geolocation through ipapi.co."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from . import __version__
from .config import LocationConfig
from .errors import LocationError
from .interfaces import LocationProvider
from .models import Location

LOGGER = logging.getLogger(__name__)

USER_AGENT = f"net-monitor/{__version__}"


class IpapiLocationProvider(LocationProvider):
    def __init__(self, config: LocationConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT

    def current_location(self) -> Location:
        return self._fetch(self.config.url)

    def location_for_address(self, ip: str) -> Location:
        return self._fetch(self.config.address_url.format(ip=ip))

    def _fetch(self, url: str) -> Location:
        LOGGER.debug("Requesting location from %s", url)
        try:
            response = self.session.get(url, timeout=self.config.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise LocationError(f"location lookup at {url} failed: {exc}") from exc

        if not isinstance(data, dict):
            raise LocationError(f"unexpected location payload from {url}")
        if data.get("error"):
            raise LocationError(str(data.get("reason") or "ipapi.co error"))
        return Location.from_dict(data)
