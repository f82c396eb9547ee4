# pyright: strict
"""Timer capability used by the controller, the reporter and the watchers.

Everything time-driven in the controller process goes through ``Scheduler``
so that it all runs on the one event loop thread, and so tests can drive it
with a virtual clock instead of real sleeps.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

from loguru import logger


class TimerHandle(Protocol):
    """Cancellation handle returned by ``Scheduler.call_later``."""

    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet."""
        ...


class Scheduler(Protocol):
    """Delayed callbacks plus a monotonic clock."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once, ``delay`` seconds from now."""
        ...

    def now(self) -> float:
        """Monotonic time in seconds."""
        ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Bind to ``loop`` or to the loop running in the calling thread."""
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule through ``loop.call_later``."""
        return self._loop.call_later(delay, callback)

    def now(self) -> float:
        """Event loop clock."""
        return self._loop.time()


class RearmableTimer:
    """One-shot timer with at most one pending expiry.

    Arming replaces any pending expiry. The callback runs on the scheduler's
    thread and is free to re-arm the timer.
    """

    def __init__(self, scheduler: Scheduler, callback: Callable[[], None], name: str) -> None:
        """Initialize an unarmed timer.

        Args:
            scheduler: Where expiries are scheduled
            callback: Invoked on every expiry
            name: Used in log records

        """
        self._scheduler = scheduler
        self._callback = callback
        self.name = name
        self._handle: TimerHandle | None = None
        self._deadline: float | None = None

    @property
    def armed(self) -> bool:
        """Whether an expiry is pending."""
        return self._handle is not None

    @property
    def deadline(self) -> float | None:
        """Scheduler time of the pending expiry."""
        return self._deadline

    def arm(self, delay: float) -> None:
        """Fire once after ``delay`` seconds, replacing any pending expiry."""
        self.cancel()
        self._deadline = self._scheduler.now() + delay
        self._handle = self._scheduler.call_later(delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending expiry, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self._deadline = None

    def _fire(self) -> None:
        self._handle = None
        self._deadline = None
        self._callback()


class PeriodicTask:
    """Callback repeated at a fixed interval until stopped.

    A failing callback is logged and does not stop the task.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        callback: Callable[[], None],
        name: str,
    ) -> None:
        """Initialize a stopped task."""
        if interval <= 0:
            interval_error = f"Interval for {name} must be positive, got {interval}"
            raise ValueError(interval_error)
        self.interval = interval
        self.name = name
        self._callback = callback
        self._timer = RearmableTimer(scheduler, self._run, name)
        self._running = False
        self.runs = 0

    @property
    def running(self) -> bool:
        """Whether the task is scheduled to run again."""
        return self._running

    def start(self) -> None:
        """First run happens one interval from now."""
        if self._running:
            return
        self._running = True
        self._timer.arm(self.interval)
        logger.debug("Periodic task started", task=self.name, interval=self.interval)

    def stop(self) -> None:
        """Stop the task. Safe to call from inside the callback."""
        if not self._running:
            return
        self._running = False
        self._timer.cancel()
        logger.debug("Periodic task stopped", task=self.name, runs=self.runs)

    def _run(self) -> None:
        self.runs += 1
        try:
            self._callback()
        except Exception as e:  # noqa: BLE001
            logger.error(
                "Periodic task failed",
                task=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
        if self._running:
            self._timer.arm(self.interval)
