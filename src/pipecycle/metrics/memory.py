# pyright: strict
"""Periodic system and CMA memory sampling from ``/proc/meminfo``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from pipecycle.lifecycle.scheduler import PeriodicTask

if TYPE_CHECKING:
    from pipecycle.lifecycle.scheduler import Scheduler
    from pipecycle.lifecycle.stats import LifecycleStatsCollector

MEMINFO_PATH = Path("/proc/meminfo")
_FIELDS = {
    "MemTotal": "mem_total",
    "MemFree": "mem_free",
    "CmaTotal": "cma_total",
    "CmaFree": "cma_free",
}


@dataclass(frozen=True)
class MemorySample:
    """Memory figures in kiB. CMA figures are None on kernels without CMA."""

    mem_total: int
    mem_free: int
    cma_total: int | None = None
    cma_free: int | None = None

    @property
    def mem_used(self) -> int:
        """System memory in use."""
        return self.mem_total - self.mem_free

    @property
    def cma_used(self) -> int | None:
        """CMA memory in use, None without CMA."""
        if self.cma_total is None or self.cma_free is None:
            return None
        return self.cma_total - self.cma_free

    def gauges(self) -> dict[str, int]:
        """Every known figure keyed by its gauge label."""
        values = {
            "mem_total": self.mem_total,
            "mem_free": self.mem_free,
            "mem_used": self.mem_used,
            "cma_total": self.cma_total,
            "cma_free": self.cma_free,
            "cma_used": self.cma_used,
        }
        return {name: value for name, value in values.items() if value is not None}


def parse_meminfo(text: str) -> MemorySample:
    """Parse ``/proc/meminfo`` content.

    Raises:
        ValueError: If MemTotal or MemFree is missing.

    """
    found: dict[str, int] = {}
    for line in text.splitlines():
        name, _, rest = line.partition(":")
        field_name = _FIELDS.get(name.strip())
        if field_name is None:
            continue
        amount = rest.split()
        if amount:
            found[field_name] = int(amount[0])
    if "mem_total" not in found or "mem_free" not in found:
        raise ValueError("MemTotal and MemFree are required in meminfo")
    return MemorySample(**found)


class MemoryWatcher:
    """Logs memory figures on a fixed period and exports them as gauges."""

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        path: Path = MEMINFO_PATH,
        stats: LifecycleStatsCollector | None = None,
    ) -> None:
        """Initialize a stopped watcher."""
        self.path = path
        self._stats = stats
        self.last_sample: MemorySample | None = None
        self._task = PeriodicTask(scheduler, interval, self.sample, "memory_watcher")

    @property
    def running(self) -> bool:
        """Whether samples are scheduled."""
        return self._task.running

    def start(self) -> None:
        """Take a first sample now and keep sampling every interval."""
        self.sample()
        self._task.start()

    def stop(self) -> None:
        """Stop sampling."""
        self._task.stop()

    def sample(self) -> MemorySample | None:
        """Read, log and export one sample; None if the file is unreadable."""
        try:
            sample = parse_meminfo(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("Memory sample failed", path=str(self.path), error=str(e))
            return None

        self.last_sample = sample
        logger.info("Memory sample", **sample.gauges())
        if self._stats is not None:
            self._stats.update_memory(sample.gauges())
        return sample
