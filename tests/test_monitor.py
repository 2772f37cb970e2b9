from __future__ import annotations

import logging
import random
import threading

from conftest import FakeExecutor, FakeLocator, MemoryStore
from net_monitor.errors import ExecutorError
from net_monitor.models import GeoPoint, Location
from net_monitor.monitor import LocationCell, Monitor


def _monitor(locator=None, executor=None, store=None, **kwargs) -> Monitor:
    return Monitor(
        locator=locator or FakeLocator(),
        executor=executor or FakeExecutor(),
        store=store or MemoryStore(),
        rng=random.Random(42),
        **kwargs,
    )


def test_refresh_location_replaces_cached_location(location) -> None:
    monitor = _monitor(locator=FakeLocator([location]))

    assert monitor.location is None
    assert monitor.refresh_location() is location
    assert monitor.location is location


def test_failed_refresh_keeps_previous_location(location, caplog) -> None:
    locator = FakeLocator([location])
    monitor = _monitor(locator=locator)
    monitor.refresh_location()

    locator.fail = True
    with caplog.at_level(logging.WARNING):
        assert monitor.refresh_location() is location

    assert monitor.location is location
    assert "Location refresh failed" in caplog.text


def test_refresh_uses_configured_address(location) -> None:
    locator = FakeLocator([location])
    monitor = _monitor(locator=locator, address="8.8.8.8")

    monitor.refresh_location()

    assert locator.calls == ["8.8.8.8"]


def test_cycle_submits_merged_document(servers, measurement, location) -> None:
    executor = FakeExecutor(servers=servers, result=measurement)
    store = MemoryStore()
    monitor = _monitor(locator=FakeLocator([location]), executor=executor, store=store, preferred=["Iguana"])
    monitor.refresh_location()

    document = monitor.run_measurement_cycle()

    assert [server.id for server in executor.measured] == [19146]
    assert document is not None
    assert document.location is location
    assert store.documents[measurement.result_id]["location"] == location.to_dict()


def test_cycle_without_location_omits_it(servers, measurement) -> None:
    store = MemoryStore()
    monitor = _monitor(executor=FakeExecutor(servers=servers, result=measurement), store=store)

    monitor.run_measurement_cycle()

    assert "location" not in store.documents[measurement.result_id]


def test_cycle_uses_cached_location_without_fetching(servers, measurement, location) -> None:
    locator = FakeLocator([location])
    monitor = _monitor(locator=locator, executor=FakeExecutor(servers=servers, result=measurement))
    monitor.refresh_location()

    monitor.run_measurement_cycle()
    monitor.run_measurement_cycle()

    assert len(locator.calls) == 1


def test_listing_failure_aborts_cycle(caplog) -> None:
    executor = FakeExecutor(list_error=ExecutorError("speedtest exited with status 1"))
    store = MemoryStore()
    monitor = _monitor(executor=executor, store=store)

    with caplog.at_level(logging.ERROR):
        assert monitor.run_measurement_cycle() is None

    assert executor.list_calls == 1
    assert executor.measured == []
    assert store.submissions == []
    assert "Could not list speedtest servers" in caplog.text


def test_empty_server_list_aborts_cycle(caplog) -> None:
    executor = FakeExecutor(servers=[])
    store = MemoryStore()
    monitor = _monitor(executor=executor, store=store, preferred=["Iguana"])

    with caplog.at_level(logging.ERROR):
        assert monitor.run_measurement_cycle() is None

    assert executor.measured == []
    assert store.submissions == []
    assert "No speedtest server available" in caplog.text


def test_measurement_failure_aborts_cycle(servers, executor_error, caplog) -> None:
    store = MemoryStore()
    monitor = _monitor(executor=FakeExecutor(servers=servers, measure_error=executor_error), store=store)

    with caplog.at_level(logging.ERROR):
        assert monitor.run_measurement_cycle() is None

    assert store.submissions == []
    assert "failed" in caplog.text


def test_missing_result_without_error_aborts_cycle(servers, caplog) -> None:
    store = MemoryStore()
    monitor = _monitor(executor=FakeExecutor(servers=servers, result=None), store=store)

    with caplog.at_level(logging.ERROR):
        assert monitor.run_measurement_cycle() is None

    assert store.submissions == []
    assert "returned no result" in caplog.text


def test_store_failure_is_logged_and_cycle_completes(servers, measurement, caplog) -> None:
    store = MemoryStore(fail=True)
    monitor = _monitor(executor=FakeExecutor(servers=servers, result=measurement), store=store)

    with caplog.at_level(logging.ERROR):
        document = monitor.run_measurement_cycle()

    assert document is not None
    assert len(store.submissions) == 1
    assert "Could not store result" in caplog.text


def test_resubmitting_the_same_run_overwrites(servers, measurement) -> None:
    store = MemoryStore()
    monitor = _monitor(executor=FakeExecutor(servers=servers, result=measurement), store=store)

    monitor.run_measurement_cycle()
    monitor.run_measurement_cycle()

    assert len(store.submissions) == 2
    assert list(store.documents) == [measurement.result_id]


def test_location_cell_reads_are_never_torn() -> None:
    first = Location(country="ES", org="Orange", geo_point=GeoPoint(41.38, 2.16))
    second = Location(country="FR", org="Free", geo_point=GeoPoint(48.85, 2.35))
    cell = LocationCell(first)
    stop = threading.Event()
    observed = []

    def writer() -> None:
        while not stop.is_set():
            cell.set(second)
            cell.set(first)

    thread = threading.Thread(target=writer, daemon=True)
    thread.start()
    try:
        for _ in range(20000):
            current = cell.get()
            observed.append((current.country, current.org, current.geo_point))
    finally:
        stop.set()
        thread.join()

    expected = {
        ("ES", "Orange", GeoPoint(41.38, 2.16)),
        ("FR", "Free", GeoPoint(48.85, 2.35)),
    }
    assert set(observed) <= expected


class ConnectionRefusedLocator(FakeLocator):
    def current_location(self) -> Location:
        self.calls.append(None)
        raise ConnectionError("ipapi.co refused the connection")


def test_refresh_survives_unexpected_locator_errors(location, caplog) -> None:
    monitor = _monitor(locator=ConnectionRefusedLocator(), cell=LocationCell(location))

    with caplog.at_level(logging.WARNING):
        assert monitor.refresh_location() is location

    assert monitor.location is location
    assert "ipapi.co refused the connection" in caplog.text


def test_unexpected_executor_error_aborts_cycle(servers, caplog) -> None:
    store = MemoryStore()
    executor = FakeExecutor(servers=servers, measure_error=OSError("speedtest binary vanished"))
    monitor = _monitor(executor=executor, store=store)

    with caplog.at_level(logging.ERROR):
        assert monitor.run_measurement_cycle() is None

    assert len(executor.measured) == 1
    assert store.submissions == []
    assert "speedtest binary vanished" in caplog.text


def test_unexpected_store_error_is_logged(servers, measurement, caplog) -> None:
    class DiskFullStore(MemoryStore):
        def submit(self, document) -> None:
            raise OSError("disk full")

    monitor = _monitor(executor=FakeExecutor(servers=servers, result=measurement), store=DiskFullStore())

    with caplog.at_level(logging.ERROR):
        document = monitor.run_measurement_cycle()

    assert document is not None
    assert "disk full" in caplog.text
