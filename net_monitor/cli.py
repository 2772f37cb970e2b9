"""Command line entry point for the network monitor."""

from __future__ import annotations

import argparse
import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from . import bootstrap
from .errors import StoreProvisioningError

LOGGER = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Periodic speedtest with geolocation")
    parser.add_argument("--config", help="Path to config.yaml", default=None)
    parser.add_argument("--once", action="store_true", help="Run a single speedtest cycle and exit")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        context = bootstrap(
            args.config,
            scheduler=BlockingScheduler(timezone="UTC"),
            log_level=args.log_level,
        )
    except StoreProvisioningError as exc:
        LOGGER.critical("Result store could not be provisioned: %s", exc)
        return 1

    if args.once:
        context.run_once()
        return 0

    try:
        context.start()
    except (KeyboardInterrupt, SystemExit):
        LOGGER.info("Shutting down")
        context.scheduler.shutdown()
    return 0
