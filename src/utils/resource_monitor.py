"""
Host load checks between per-file steps.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

import psutil

from config import AppConfig


@dataclass
class ResourceMonitor:
    """Pause between files while CPU or RAM usage exceeds configured limits.

    A limit of 0 disables that check; with both at 0 ``throttle`` is a no-op.
    """

    max_cpu_percent: float = 0.0
    max_ram_percent: float = 0.0
    sleep_seconds: float = 0.5
    max_throttle_seconds: float = 15.0
    min_check_interval_seconds: float = 0.5
    logger: Optional[logging.Logger] = None
    total_paused_seconds: float = field(default=0.0, init=False)
    _last_check: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = logging.getLogger("ingest.performance")
        if self.enabled:
            # Prime psutil so the first interval-less sample is meaningful.
            psutil.cpu_percent(interval=None)

    @classmethod
    def from_config(cls, config: AppConfig, logger: Optional[logging.Logger] = None) -> "ResourceMonitor":
        return cls(
            max_cpu_percent=config.get_float("resource_limits", "max_cpu_percent", default=0),
            max_ram_percent=config.get_float("resource_limits", "max_ram_percent", default=0),
            sleep_seconds=config.get_float("resource_limits", "sleep_seconds", default=0.5),
            max_throttle_seconds=config.get_float("resource_limits", "max_throttle_seconds", default=15),
            min_check_interval_seconds=config.get_float("resource_limits", "min_check_interval_seconds", default=0.5),
            logger=logger,
        )

    @property
    def enabled(self) -> bool:
        return self.max_cpu_percent > 0 or self.max_ram_percent > 0

    def over_limit(self, cpu: float, ram: float) -> bool:
        cpu_over = self.max_cpu_percent > 0 and cpu > self.max_cpu_percent
        ram_over = self.max_ram_percent > 0 and ram > self.max_ram_percent
        return cpu_over or ram_over

    def sample(self) -> Tuple[float, float]:
        return psutil.cpu_percent(interval=0.1), psutil.virtual_memory().percent

    def throttle(self) -> float:
        """Block until load drops or ``max_throttle_seconds`` passes; return seconds paused."""
        if not self.enabled:
            return 0.0
        now = time.monotonic()
        if (now - self._last_check) < self.min_check_interval_seconds:
            return 0.0
        self._last_check = now
        start_time = time.monotonic()
        cpu, ram = self.sample()
        if not self.over_limit(cpu, ram):
            return 0.0
        self.logger.info("Throttling: cpu=%.1f%% ram=%.1f%%", cpu, ram)
        while self.over_limit(cpu, ram) and (time.monotonic() - start_time) < self.max_throttle_seconds:
            time.sleep(self.sleep_seconds)
            cpu, ram = self.sample()
        paused = time.monotonic() - start_time
        self.total_paused_seconds += paused
        self.logger.info("Throttle released after %.1fs (cpu=%.1f%% ram=%.1f%%)", paused, cpu, ram)
        return paused
