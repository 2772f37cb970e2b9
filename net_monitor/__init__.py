"""Application bootstrap helpers."""

from __future__ import annotations

__version__ = "0.1.0"

from pathlib import Path
from typing import Optional

from apscheduler.schedulers.base import BaseScheduler

from .config import AppConfig, load_config
from .interfaces import ResultStore
from .location import IpapiLocationProvider
from .logging_setup import configure_logging
from .measurements.speedtest_runner import SpeedtestExecutor
from .monitor import Monitor
from .scheduler import SchedulerService
from .storage import create_store


class ApplicationContext:
    """Holds the shared collaborators for the service.

    Building the context provisions the result store; a
    :class:`~net_monitor.errors.StoreProvisioningError` propagates so the
    caller never starts the loops against an unusable store.
    """

    def __init__(
        self,
        config: AppConfig,
        store: Optional[ResultStore] = None,
        scheduler: Optional[BaseScheduler] = None,
        log_level: Optional[str] = None,
    ):
        self.config = config
        configure_logging(config, log_level)
        self.store = store or create_store(config)
        self.store.provision()
        self.locator = IpapiLocationProvider(config.location)
        self.executor = SpeedtestExecutor(config)
        self.monitor = Monitor(
            locator=self.locator,
            executor=self.executor,
            store=self.store,
            preferred=config.speedtest.preferred_servers,
            address=config.location.address,
        )
        self.scheduler = SchedulerService(config.schedule, self.monitor, scheduler)

    def start(self) -> None:
        self.scheduler.start()

    def run_once(self) -> None:
        self.monitor.refresh_location()
        self.monitor.run_measurement_cycle()


def bootstrap(
    config_path: Optional[str] = None,
    scheduler: Optional[BaseScheduler] = None,
    log_level: Optional[str] = None,
) -> ApplicationContext:
    """Load configuration and wire dependencies."""

    config_file = Path(config_path).resolve() if config_path else None
    config = load_config(str(config_file)) if config_file else load_config()
    return ApplicationContext(config, scheduler=scheduler, log_level=log_level)
