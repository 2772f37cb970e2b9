"""Exception hierarchy for the monitor."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for every failure raised by the monitor and its adapters."""


class LocationError(MonitorError):
    """The geolocation lookup failed or returned an error payload."""


class ExecutorError(MonitorError):
    """The speedtest binary could not list servers or run a measurement."""


class NoEndpointAvailable(MonitorError):
    """No measurement server was available to select from."""


class StoreError(MonitorError):
    """The result store rejected or failed to persist a document."""


class StoreProvisioningError(StoreError):
    """The result store could not be initialized at startup."""
