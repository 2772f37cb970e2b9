"""Measurement orchestration: locate, select, measure, merge and store."""

from __future__ import annotations

import logging
import random
import threading
from typing import Iterable, Optional

from .interfaces import LocationProvider, MeasurementExecutor, ResultStore
from .models import CombinedDocument, Location, merge
from .selection import select_endpoint

LOGGER = logging.getLogger(__name__)


class LocationCell:
    """Holds the last known location, shared by the location and measurement loops.

    Locations are immutable and replaced as a whole, so readers always see
    one complete snapshot.
    """

    def __init__(self, location: Optional[Location] = None):
        self._lock = threading.Lock()
        self._location = location

    def get(self) -> Optional[Location]:
        with self._lock:
            return self._location

    def set(self, location: Location) -> None:
        with self._lock:
            self._location = location


class Monitor:
    def __init__(
        self,
        locator: LocationProvider,
        executor: MeasurementExecutor,
        store: ResultStore,
        preferred: Iterable[str] = (),
        address: Optional[str] = None,
        cell: Optional[LocationCell] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.locator = locator
        self.executor = executor
        self.store = store
        self.preferred = list(preferred)
        self.address = address
        self.cell = cell or LocationCell()
        self.rng = rng or random.Random()

    @property
    def location(self) -> Optional[Location]:
        return self.cell.get()

    def refresh_location(self) -> Optional[Location]:
        """Replace the cached location; keep the previous one if the lookup fails."""
        try:
            if self.address:
                location = self.locator.location_for_address(self.address)
            else:
                location = self.locator.current_location()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Location refresh failed, keeping previous location: %s", exc)
            return self.cell.get()

        self.cell.set(location)
        LOGGER.info(
            "Location updated: %s (%s) at %.4f,%.4f",
            location.country_name or location.country or "unknown",
            location.org or location.asn or "unknown network",
            location.geo_point.lat,
            location.geo_point.lon,
        )
        return location

    def run_measurement_cycle(self) -> Optional[CombinedDocument]:
        """Run one list/select/measure/merge/submit cycle.

        Returns the document handed to the store, or ``None`` when the cycle
        was aborted before one was built. Collaborator failures are logged,
        not raised; a failed submission is not retried.
        """
        LOGGER.info("Starting speedtest cycle")
        try:
            endpoints = self.executor.list_endpoints()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Could not list speedtest servers: %s", exc)
            return None

        try:
            endpoint = select_endpoint(endpoints, self.preferred, self.rng)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("No speedtest server available: %s", exc)
            return None

        LOGGER.info("Running speedtest against %s (%s, id %s)", endpoint.name, endpoint.location, endpoint.id)
        try:
            result = self.executor.measure(endpoint)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Speedtest against server %s failed: %s", endpoint.id, exc)
            return None
        if result is None:
            LOGGER.error("Speedtest against server %s returned no result", endpoint.id)
            return None

        document = merge(result, self.cell.get())
        LOGGER.debug("Speedtest document: %s", document.to_json())

        try:
            self.store.submit(document)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Could not store result %s: %s", document.document_id, exc)
            return document

        LOGGER.info(
            "Stored speedtest %s (down %.2f Mbps / up %.2f Mbps, ping %.1f ms)",
            document.document_id,
            result.download.mbps,
            result.upload.mbps,
            result.ping.latency or 0,
        )
        return document
