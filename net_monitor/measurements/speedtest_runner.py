"""Ookla speedtest CLI adapter."""

from __future__ import annotations

import io
import logging
import platform
import shutil
import subprocess
import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import List, Optional

import requests

from ..config import AppConfig
from ..errors import ExecutorError
from ..interfaces import MeasurementExecutor
from ..models import MeasurementResult, Server, ServerList

LOGGER = logging.getLogger(__name__)

LICENSE_FLAGS = ("--accept-license", "--accept-gdpr")


def _platform_binary_name(config: AppConfig) -> Path:
    suffix = ".exe" if platform.system().lower().startswith("win") else ""
    binary_name = config.ookla.binary_name
    if suffix and not binary_name.endswith(suffix):
        binary_name = f"{binary_name}{suffix}"
    return config.paths.bin_dir / binary_name


def ensure_ookla_binary(config: AppConfig) -> Path:
    """Return a runnable speedtest binary, downloading it when allowed."""
    binary_path = _platform_binary_name(config)
    if binary_path.exists():
        return binary_path

    on_path = shutil.which(config.ookla.binary_name)
    if on_path:
        return Path(on_path)

    if not config.ookla.auto_download:
        raise FileNotFoundError(
            f"Missing Ookla CLI binary at {binary_path}. Enable auto_download or install manually."
        )

    platform_key = config.ookla_platform_key
    url = config.ookla.urls.get(platform_key)
    if not url:
        raise ValueError(
            f"No Ookla download URL configured for platform {platform_key}. "
            f"Supported platforms: {list(config.ookla.urls.keys())}"
        )

    payload = _download_ookla_artifact(url)
    binary_path.parent.mkdir(parents=True, exist_ok=True)
    binary_path.write_bytes(_extract_binary(payload, url))
    binary_path.chmod(0o755)
    LOGGER.info("Installed speedtest CLI at %s", binary_path)
    return binary_path


def _download_ookla_artifact(url: str) -> bytes:
    LOGGER.info("Downloading Ookla CLI from %s", url)
    response = requests.get(url, timeout=120)
    response.raise_for_status()
    return response.content


def _extract_binary(payload: bytes, url: str) -> bytes:
    """Return the executable stored in a release archive, matched by file name."""
    if url.endswith(".zip"):
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            for name in archive.namelist():
                if PurePosixPath(name).name == "speedtest.exe":
                    return archive.read(name)
        raise RuntimeError("zip archive did not contain speedtest.exe binary")

    if url.endswith(".tgz"):
        with tarfile.open(fileobj=io.BytesIO(payload), mode="r:gz") as archive:
            for member in archive.getmembers():
                if member.isfile() and PurePosixPath(member.name).name == "speedtest":
                    handle = archive.extractfile(member)
                    if handle is not None:
                        return handle.read()
        raise RuntimeError("tarball did not contain speedtest binary")

    raise RuntimeError(f"Unknown Ookla download artifact: {url}")


class SpeedtestExecutor(MeasurementExecutor):
    """Lists servers and runs measurements through the speedtest binary."""

    def __init__(self, config: AppConfig):
        self.config = config
        self._binary: Optional[Path] = None

    def _binary_path(self) -> Path:
        if self._binary is None:
            try:
                self._binary = ensure_ookla_binary(self.config)
            except (OSError, ValueError, RuntimeError, requests.RequestException, tarfile.TarError, zipfile.BadZipFile) as exc:
                raise ExecutorError(f"speedtest binary unavailable: {exc}") from exc
        return self._binary

    def _run(self, *args: str) -> str:
        command = [str(self._binary_path()), *args]
        LOGGER.debug("Running speedtest command: %s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.config.speedtest.timeout_seconds,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise ExecutorError(f"speedtest exited with status {exc.returncode}: {stderr}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExecutorError(f"speedtest timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise ExecutorError(f"could not run speedtest: {exc}") from exc

        if not (completed.stdout or "").strip():
            raise ExecutorError("speedtest produced no output")
        return completed.stdout

    def list_endpoints(self) -> List[Server]:
        output = self._run("--servers", "--format=json", *LICENSE_FLAGS)
        try:
            servers = ServerList.from_json(output).servers
        except (ValueError, TypeError, AttributeError) as exc:
            raise ExecutorError(f"could not decode server list: {exc}") from exc
        LOGGER.debug("speedtest listed %d servers", len(servers))
        return servers

    def measure(self, endpoint: Server) -> MeasurementResult:
        args = ["--format=json", "--progress=no", *LICENSE_FLAGS, f"--server-id={endpoint.id}"]
        args += list(self.config.speedtest.extra_args)
        output = self._run(*args)
        try:
            result = MeasurementResult.from_json(output)
        except (ValueError, TypeError, AttributeError) as exc:
            raise ExecutorError(f"could not decode speedtest result: {exc}") from exc
        if not result.result_id:
            raise ExecutorError("speedtest result carries no result id")
        return result

