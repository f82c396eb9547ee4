# pyright: strict
"""Periodic throughput report for the frame counter."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from pipecycle.lifecycle.scheduler import PeriodicTask

if TYPE_CHECKING:
    from pipecycle.lifecycle.phases import Phase
    from pipecycle.lifecycle.scheduler import Scheduler
    from pipecycle.lifecycle.stats import LifecycleStatsCollector

    from .counter import EventCounter


class MetricsReporter:
    """Logs the frame rate of the last window together with the current phase.

    Runs on its own period, independent of the phase timer, so a window can
    straddle a transition. The phase reported is the one current when the
    line is logged.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        counter: EventCounter,
        phase_source: Callable[[], Phase],
        interval: float = 5.0,
        stats: LifecycleStatsCollector | None = None,
    ) -> None:
        """Initialize a stopped reporter.

        Args:
            scheduler: Timer capability of the controller loop
            counter: Counter fed by the engine's streaming thread
            phase_source: Returns the controller's current phase
            interval: Report period and rate window in seconds
            stats: Optional collector that receives the rate gauge

        """
        self._counter = counter
        self._phase_source = phase_source
        self._stats = stats
        self.interval = interval
        self.last_rate = 0.0
        self._task = PeriodicTask(scheduler, interval, self.report, "metrics_reporter")

    @property
    def running(self) -> bool:
        """Whether reports are scheduled."""
        return self._task.running

    def start(self) -> None:
        """Begin reporting; the first line comes one interval from now."""
        self._task.start()

    def stop(self) -> None:
        """Stop reporting."""
        self._task.stop()

    def report(self) -> float:
        """Close the current window, log and return its rate."""
        rate = self._counter.sample_and_reset(self.interval)
        phase = self._phase_source()
        self.last_rate = rate
        logger.info(f"stage={phase.value} rate={rate:.2f}", total=self._counter.last_sample)
        if self._stats is not None:
            self._stats.update_rate(phase, rate)
        return rate
