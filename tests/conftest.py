from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import pytest

from net_monitor.errors import ExecutorError, LocationError, StoreError
from net_monitor.interfaces import LocationProvider, MeasurementExecutor, ResultStore
from net_monitor.models import CombinedDocument, Location, MeasurementResult, Server, ServerList

FIXTURES = Path(__file__).parent / "fixtures"


def fixture_text(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def fixture_json(name: str) -> dict:
    return json.loads(fixture_text(name))


class FakeLocator(LocationProvider):
    def __init__(self, locations: Optional[List[Location]] = None, fail: bool = False):
        self.locations = list(locations or [])
        self.fail = fail
        self.calls: List[Optional[str]] = []

    def _next(self) -> Location:
        if self.fail or not self.locations:
            raise LocationError("ipapi.co unreachable")
        return self.locations.pop(0)

    def current_location(self) -> Location:
        self.calls.append(None)
        return self._next()

    def location_for_address(self, ip: str) -> Location:
        self.calls.append(ip)
        return self._next()


class FakeExecutor(MeasurementExecutor):
    def __init__(
        self,
        servers: Optional[List[Server]] = None,
        result: Optional[MeasurementResult] = None,
        list_error: Optional[Exception] = None,
        measure_error: Optional[Exception] = None,
    ):
        self.servers = servers if servers is not None else []
        self.result = result
        self.list_error = list_error
        self.measure_error = measure_error
        self.list_calls = 0
        self.measured: List[Server] = []

    def list_endpoints(self) -> List[Server]:
        self.list_calls += 1
        if self.list_error:
            raise self.list_error
        return list(self.servers)

    def measure(self, endpoint: Server) -> Optional[MeasurementResult]:
        self.measured.append(endpoint)
        if self.measure_error:
            raise self.measure_error
        return self.result


class MemoryStore(ResultStore):
    """Keeps documents keyed by result id, like an index with explicit ids."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.provisioned = False
        self.documents: dict = {}
        self.submissions: List[CombinedDocument] = []

    def provision(self) -> None:
        self.provisioned = True

    def submit(self, document: CombinedDocument) -> None:
        self.submissions.append(document)
        if self.fail:
            raise StoreError("cluster unavailable")
        self.documents[document.document_id] = document.to_dict()


@pytest.fixture
def server_list() -> ServerList:
    return ServerList.from_json(fixture_text("server-list.json"))


@pytest.fixture
def servers(server_list: ServerList) -> List[Server]:
    return server_list.servers


@pytest.fixture
def measurement() -> MeasurementResult:
    return MeasurementResult.from_json(fixture_text("result.json"))


@pytest.fixture
def location() -> Location:
    return Location.from_dict(fixture_json("ipapi.json"))


@pytest.fixture
def executor_error() -> ExecutorError:
    return ExecutorError("speedtest exited with status 2")
