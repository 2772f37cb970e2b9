"""Measurement executor adapters."""

from .speedtest_runner import SpeedtestExecutor, ensure_ookla_binary

__all__ = ["SpeedtestExecutor", "ensure_ookla_binary"]
