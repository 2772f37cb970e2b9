"""Background scheduler orchestration."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import ScheduleConfig
from .monitor import Monitor

LOGGER = logging.getLogger(__name__)

LOCATION_JOB_ID = "location-refresh"
MEASUREMENT_JOB_ID = "speedtest-cycle"


def _guarded(name: str, func: Callable[[], object]) -> Callable[[], None]:
    def run() -> None:
        try:
            func()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.exception("Scheduled %s failed: %s", name, exc)

    return run


class SchedulerService:
    """Runs the location refresh and the speedtest cycle as two independent jobs.

    Jobs execute on the scheduler's thread pool, so a slow speedtest never
    delays a location refresh. Each job allows a single running instance; a
    tick that fires while the previous run is still busy is skipped.
    """

    def __init__(
        self,
        config: ScheduleConfig,
        monitor: Monitor,
        scheduler: Optional[BaseScheduler] = None,
    ) -> None:
        self.config = config
        self.monitor = monitor
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.started = False
        self._located = False

    def _add_interval_job(
        self,
        job_id: str,
        func: Callable[[], None],
        interval: timedelta,
        **options,
    ) -> None:
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=int(interval.total_seconds())),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **options,
        )

    def start_location_loop(self, interval: timedelta) -> None:
        """Refresh the location on every tick; nothing runs until the first tick."""
        self._add_interval_job(
            LOCATION_JOB_ID,
            _guarded("location refresh", self.monitor.refresh_location),
            interval,
        )
        LOGGER.info("Location refresh scheduled every %s", interval)

    def start_measurement_loop(self, interval: timedelta) -> None:
        """Locate and measure right away, then measure on every tick.

        The immediate run and the periodic ticks share one job, so
        ``max_instances=1`` keeps two speedtests from ever running at once.
        """
        self._add_interval_job(
            MEASUREMENT_JOB_ID,
            _guarded("speedtest", self._measurement_tick),
            interval,
            next_run_time=datetime.now(timezone.utc),
            misfire_grace_time=None,
        )
        LOGGER.info("Speedtest scheduled every %s", interval)

    def _measurement_tick(self) -> None:
        if not self._located:
            self._located = True
            LOGGER.info("Getting initial location")
            try:
                self.monitor.refresh_location()
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.warning("Initial location lookup failed, measuring without it: %s", exc)
        self.monitor.run_measurement_cycle()

    def start(self) -> None:
        """Register both loops and start the scheduler.

        Blocks for the lifetime of the process when the scheduler is a
        ``BlockingScheduler``.
        """
        if self.started:
            LOGGER.warning("Scheduler already started, ignoring duplicate start request")
            return

        self.start_location_loop(timedelta(seconds=self.config.location_interval_seconds))
        self.start_measurement_loop(timedelta(seconds=self.config.measurement_interval_seconds))
        self.started = True
        LOGGER.info("Scheduler starting")
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
