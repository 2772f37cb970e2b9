"""Capabilities the monitor depends on.

Each collaborator is an abstract base class with the narrow set of operations
the orchestration loop calls, so adapters and in-memory fakes are
interchangeable.
"""

from __future__ import annotations

import abc
from typing import List, Optional

from .models import CombinedDocument, Location, MeasurementResult, Server


class LocationProvider(abc.ABC):
    @abc.abstractmethod
    def current_location(self) -> Location:
        """Locate the host from its public address."""

    @abc.abstractmethod
    def location_for_address(self, ip: str) -> Location:
        """Locate an arbitrary IP address."""


class MeasurementExecutor(abc.ABC):
    @abc.abstractmethod
    def list_endpoints(self) -> List[Server]:
        """Return the measurement servers currently available."""

    @abc.abstractmethod
    def measure(self, endpoint: Server) -> Optional[MeasurementResult]:
        """Run a single measurement against ``endpoint``."""


class ResultStore(abc.ABC):
    def provision(self) -> None:
        """Prepare schema or templates before the first submission.

        Raises :class:`~net_monitor.errors.StoreProvisioningError` when the
        store cannot be initialized.
        """

    @abc.abstractmethod
    def submit(self, document: CombinedDocument) -> None:
        """Persist ``document``, overwriting any earlier copy with the same id."""
