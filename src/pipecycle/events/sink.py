# pyright: strict
"""Drains engine notifications on the loop thread and reacts to them."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from pipecycle.engine.types import ErrorNotice, StateChangedNotice, WarningNotice
from pipecycle.lifecycle.scheduler import PeriodicTask

if TYPE_CHECKING:
    from pipecycle.engine.types import Notification, PipelineEngine, PipelineInstance
    from pipecycle.lifecycle.scheduler import Scheduler
    from pipecycle.lifecycle.stats import LifecycleStatsCollector

type ErrorCallback = Callable[[ErrorNotice], None]


class PipelineEventSink:
    """Polls the live instance for notifications on a short period.

    Errors are logged with their debug text and passed to ``on_error`` when
    one is set. Warnings are logged. State changes are logged only when the
    pipeline itself reports them; element-level changes are dropped.
    """

    def __init__(
        self,
        engine: PipelineEngine,
        scheduler: Scheduler,
        instance_source: Callable[[], PipelineInstance | None],
        interval: float = 0.1,
        on_error: ErrorCallback | None = None,
        stats: LifecycleStatsCollector | None = None,
    ) -> None:
        """Initialize a stopped sink.

        Args:
            engine: Engine that queues the notifications
            scheduler: Timer capability of the controller loop
            instance_source: Returns the live instance, None between instances
            interval: Drain period in seconds
            on_error: Escalation hook for error notices
            stats: Optional collector counting notices

        """
        self._engine = engine
        self._instance_source = instance_source
        self._on_error = on_error
        self._stats = stats
        self.errors = 0
        self.warnings = 0
        self.state_changes = 0
        self._task = PeriodicTask(scheduler, interval, self.drain, "event_sink")

    @property
    def running(self) -> bool:
        """Whether drains are scheduled."""
        return self._task.running

    def start(self) -> None:
        """Begin draining."""
        self._task.start()

    def stop(self) -> None:
        """Stop draining."""
        self._task.stop()

    def drain(self) -> int:
        """Handle everything queued on the live instance, returning the count."""
        instance = self._instance_source()
        if instance is None:
            return 0
        notices = self._engine.drain_notifications(instance)
        for notice in notices:
            self.handle(notice)
        return len(notices)

    def handle(self, notice: Notification) -> None:
        """React to one notification."""
        if isinstance(notice, ErrorNotice):
            self.errors += 1
            self._count("error")
            logger.error(
                "Pipeline error",
                source=notice.source,
                error=notice.message,
                debug=notice.debug or "none",
            )
            if self._on_error is not None:
                self._on_error(notice)
        elif isinstance(notice, WarningNotice):
            self.warnings += 1
            self._count("warning")
            logger.warning(
                "Pipeline warning",
                source=notice.source,
                warning=notice.message,
                debug=notice.debug or "none",
            )
        elif notice.top_level:
            self.state_changes += 1
            self._count("state")
            self._log_state_change(notice)

    def _log_state_change(self, notice: StateChangedNotice) -> None:
        logger.info(
            f"Pipeline state {notice.old.name} -> {notice.new.name} "
            f"(pending {notice.pending.name})"
        )

    def _count(self, kind: str) -> None:
        if self._stats is not None:
            self._stats.record_notice(kind)
