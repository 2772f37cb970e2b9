"""Configuration loading helpers for the network monitor."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

_OOKLA_RELEASE = "https://install.speedtest.net/app/cli/ookla-speedtest-1.2.0"

DEFAULT_OOKLA_URLS = {
    "linux_x86_64": f"{_OOKLA_RELEASE}-linux-x86_64.tgz",
    "linux_aarch64": f"{_OOKLA_RELEASE}-linux-aarch64.tgz",
    "darwin_x86_64": f"{_OOKLA_RELEASE}-macosx-universal.tgz",
    "darwin_aarch64": f"{_OOKLA_RELEASE}-macosx-universal.tgz",
    "windows_x86_64": f"{_OOKLA_RELEASE}-win64.zip",
}


@dataclass
class PathsConfig:
    data_dir: Path
    logs_dir: Path
    bin_dir: Path


@dataclass
class OoklaConfig:
    auto_download: bool = True
    binary_name: str = "speedtest"
    urls: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_OOKLA_URLS))


@dataclass
class SpeedtestConfig:
    preferred_servers: List[str] = field(default_factory=list)
    timeout_seconds: int = 300
    extra_args: List[str] = field(default_factory=list)


@dataclass
class LocationConfig:
    url: str = "https://ipapi.co/json/"
    address_url: str = "https://ipapi.co/{ip}/json/"
    address: Optional[str] = None
    timeout_seconds: float = 10.0


@dataclass
class StoreConfig:
    backend: str = "elasticsearch"
    sqlite_file: str = "results.db"


@dataclass
class ElasticConfig:
    host: str = "http://localhost:9200"
    user: str = ""
    password: str = ""
    index_prefix: str = "speed-test"
    verify_certs: bool = True
    timeout_seconds: float = 30.0


@dataclass
class ScheduleConfig:
    location_interval_seconds: int = 24 * 60 * 60
    measurement_interval_seconds: int = 60 * 60


@dataclass
class LoggingConfig:
    level: str = "INFO"
    # File name under paths.logs_dir; empty logs to the console only.
    file: str = "net-monitor.log"
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    ookla: OoklaConfig
    speedtest: SpeedtestConfig
    location: LocationConfig
    store: StoreConfig
    elastic: ElasticConfig
    schedule: ScheduleConfig
    logging: LoggingConfig

    @property
    def ookla_platform_key(self) -> str:
        system = platform.system().lower()
        machine = platform.machine().lower()
        if machine in ("amd64", "x86_64"):
            machine = "x86_64"
        elif machine in ("arm64", "aarch64"):
            machine = "aarch64"
        return f"{system}_{machine}"


def _as_path(base: Path, maybe_path: Optional[str]) -> Path:
    if not maybe_path:
        raise ValueError("Path configuration entries cannot be empty")
    path = (base / maybe_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def _apply_env_overrides(config: AppConfig) -> None:
    """Environment variables win over the YAML file."""

    elastic = config.elastic
    elastic.host = _env("ELASTIC_HOST") or elastic.host
    elastic.user = _env("ELASTIC_USER") or elastic.user
    elastic.password = _env("ELASTIC_PASSWORD") or elastic.password
    elastic.index_prefix = _env("ELASTIC_INDEX_PREFIX") or elastic.index_prefix

    config.store.backend = _env("NET_MONITOR_STORE") or config.store.backend
    config.location.address = _env("NET_MONITOR_LOCATION_ADDRESS") or config.location.address
    config.logging.level = _env("NET_MONITOR_LOG_LEVEL") or config.logging.level

    preferred = _env("NET_MONITOR_PREFERRED_SERVERS")
    if preferred:
        config.speedtest.preferred_servers = [name.strip() for name in preferred.split(",") if name.strip()]

    location_interval = _env("NET_MONITOR_LOCATION_INTERVAL")
    if location_interval:
        config.schedule.location_interval_seconds = int(location_interval)
    measurement_interval = _env("NET_MONITOR_MEASUREMENT_INTERVAL")
    if measurement_interval:
        config.schedule.measurement_interval_seconds = int(measurement_interval)


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from an optional YAML file and the environment.

    An explicit ``path`` must exist. Without one, ``config.yaml`` in the
    working directory is read when present and defaults are used otherwise.
    """

    root_dir = Path(path).resolve().parent if path else Path.cwd()
    source_path = Path(path) if path else root_dir / "config.yaml"
    if path and not source_path.exists():
        raise FileNotFoundError(f"Missing configuration file at {source_path}")

    data: Dict = {}
    if source_path.exists():
        with source_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}

    paths_data = data.get("paths", {})
    paths = PathsConfig(
        data_dir=_as_path(root_dir, paths_data.get("data_dir", "data")),
        logs_dir=_as_path(root_dir, paths_data.get("logs_dir", "logs")),
        bin_dir=_as_path(root_dir, paths_data.get("bin_dir", "bin")),
    )

    ookla_data = dict(data.get("ookla") or {})
    # Configured urls extend the built-in table rather than replace it.
    ookla_data["urls"] = {**DEFAULT_OOKLA_URLS, **(ookla_data.get("urls") or {})}

    config = AppConfig(
        root_dir=root_dir,
        paths=paths,
        ookla=OoklaConfig(**ookla_data),
        speedtest=SpeedtestConfig(**data.get("speedtest", {})),
        location=LocationConfig(**data.get("location", {})),
        store=StoreConfig(**data.get("store", {})),
        elastic=ElasticConfig(**data.get("elastic", {})),
        schedule=ScheduleConfig(**data.get("schedule", {})),
        logging=LoggingConfig(**data.get("logging", {})),
    )
    _apply_env_overrides(config)

    if config.schedule.location_interval_seconds <= 0 or config.schedule.measurement_interval_seconds <= 0:
        raise ValueError("Schedule intervals must be positive")

    return config
