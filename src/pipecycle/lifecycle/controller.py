# pyright: strict
"""Timer-driven lifecycle controller for one pipeline instance."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from pipecycle.engine.description import build_blueprint
from pipecycle.errors import ConstructionError
from pipecycle.events.sink import PipelineEventSink
from pipecycle.metrics.counter import EventCounter
from pipecycle.metrics.memory import MEMINFO_PATH, MemoryWatcher
from pipecycle.metrics.reporter import MetricsReporter

from .phases import Phase, PhasePlan
from .scheduler import RearmableTimer
from .tracker import BranchPadTracker

if TYPE_CHECKING:
    from pipecycle.engine.types import (
        PipelineBlueprint,
        PipelineEngine,
        PipelineInstance,
        StateAck,
    )
    from pipecycle.events.sink import ErrorCallback
    from pipecycle.models import CycleConfig

    from .scheduler import Scheduler
    from .stats import LifecycleStatsCollector


class PipelineLifecycleController:
    """Drives a pipeline through NULL -> PLAYING -> PAUSED [-> READY] -> NULL forever.

    Every return to NULL tears the instance down and builds a new one: branch
    pads are handed back first, then the instance is destroyed, then a fresh
    one is built and its branches attached. State requests are best effort.
    A request that fails or does not settle within ``ack_timeout`` is logged
    and the cycle moves on regardless, so the phase order never changes.
    """

    def __init__(
        self,
        engine: PipelineEngine,
        scheduler: Scheduler,
        blueprint: PipelineBlueprint,
        plan: PhasePlan,
        *,
        ack_timeout: float = 3.0,
        counter: EventCounter | None = None,
        stats: LifecycleStatsCollector | None = None,
        report_interval: float = 5.0,
        notification_interval: float = 0.1,
        mem_watch_interval: float = 0.0,
        meminfo_path: Path = MEMINFO_PATH,
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Initialize a controller that has not built anything yet.

        Args:
            engine: Engine that builds and drives pipeline instances
            scheduler: Timer capability of the loop thread
            blueprint: What every instance is built from
            plan: Cycle order and dwell times
            ack_timeout: Longest a state request may block a tick
            counter: Frame counter, created when not given
            stats: Optional lifecycle statistics collector
            report_interval: Frame rate report period
            notification_interval: Engine notification drain period
            mem_watch_interval: Memory sample period, 0 disables it
            meminfo_path: Where memory figures are read from
            on_error: Called for every engine error notice

        """
        self._engine = engine
        self._scheduler = scheduler
        self.blueprint = blueprint
        self.plan = plan
        self.ack_timeout = ack_timeout
        self.counter = counter or EventCounter()
        self._stats = stats

        self.tracker = BranchPadTracker(engine, blueprint.slots, stats)
        self.reporter = MetricsReporter(
            scheduler, self.counter, lambda: self.phase, report_interval, stats
        )
        self.sink = PipelineEventSink(
            engine,
            scheduler,
            lambda: self.instance,
            notification_interval,
            on_error,
            stats,
        )
        self.memory_watcher: MemoryWatcher | None = None
        if mem_watch_interval > 0:
            self.memory_watcher = MemoryWatcher(
                scheduler, mem_watch_interval, meminfo_path, stats
            )
        self._timer = RearmableTimer(scheduler, self._on_tick, "phase_timer")

        self.phase = Phase.NULL
        self.instance: PipelineInstance | None = None
        self.last_ack: StateAck | None = None
        self.tick = 0
        self.cycle = 0
        self.builds = 0
        self._started = False
        self._stopped = False

    @classmethod
    def from_config(
        cls,
        config: CycleConfig,
        engine: PipelineEngine,
        scheduler: Scheduler,
        stats: LifecycleStatsCollector | None = None,
        on_error: ErrorCallback | None = None,
    ) -> PipelineLifecycleController:
        """Create a controller for the configured pipeline variant."""
        return cls(
            engine,
            scheduler,
            build_blueprint(config),
            PhasePlan.from_config(config),
            ack_timeout=config.ack_timeout,
            stats=stats,
            report_interval=config.report_interval,
            notification_interval=config.notification_interval,
            mem_watch_interval=config.mem_watch_interval,
            on_error=on_error,
        )

    @property
    def running(self) -> bool:
        """Whether the controller was started and not shut down."""
        return self._started and not self._stopped

    def start(self) -> None:
        """Build the first instance and arm the first transition immediately.

        Raises:
            ConstructionError: If the first instance cannot be built.
            RuntimeError: If the controller was already started.

        """
        if self._started:
            raise RuntimeError("Controller already started")
        self._build()
        self._started = True

        self.reporter.start()
        self.sink.start()
        if self.memory_watcher is not None:
            self.memory_watcher.start()

        # The NULL dwell does not apply to the very first entry
        self._timer.arm(0)
        logger.info(
            "Lifecycle controller started",
            phases=" -> ".join(phase.value for phase in self.plan.order),
            playing_seconds=self.plan.playing_seconds,
            cycle_seconds=self.plan.cycle_seconds,
            branches=len(self.blueprint.branches),
        )

    def shutdown(self) -> None:
        """Stop every timer, bring the pipeline to NULL and free it. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        self._timer.cancel()
        self.reporter.stop()
        self.sink.stop()
        if self.memory_watcher is not None:
            self.memory_watcher.stop()

        if self.instance is not None:
            try:
                self.sink.drain()
                self.last_ack = self._engine.set_state(
                    self.instance, Phase.NULL.engine_state, self.ack_timeout
                )
            except Exception as e:  # noqa: BLE001
                self._record_fault(e, "shutdown")
            try:
                self._teardown()
            except Exception as e:  # noqa: BLE001
                self._record_fault(e, "teardown")

        logger.info(
            "Lifecycle controller stopped",
            ticks=self.tick,
            cycles=self.cycle,
            builds=self.builds,
            pads_acquired=self.tracker.acquired,
            pads_released=self.tracker.released,
            frames=self.counter.read_total(),
        )
        if self._stats is not None:
            logger.info("Lifecycle statistics", **self._stats.summary())
            logger.debug("Final metric values", metrics=self._stats.registry.snapshot())

    def _on_tick(self) -> None:
        self.tick += 1
        logger.info("State tick", tick=self.tick, phase=self.phase.value, cycle=self.cycle)
        if self._stats is not None:
            self._stats.record_tick(self.phase)

        try:
            self._advance()
        except Exception as e:  # noqa: BLE001
            self._record_fault(e, "tick")
        if not self._stopped:
            # A failed step is retried after the dwell of the phase it left from
            self._timer.arm(self.plan.dwell(self.phase))

    def _advance(self) -> None:
        if self.phase == Phase.NULL and self.instance is None and not self._rebuild():
            return
        target = self.plan.next_phase(self.phase)
        self._transition(target)
        if target == Phase.NULL:
            self._recreate()

    def _record_fault(self, error: Exception, operation: str) -> None:
        if self._stats is not None:
            self._stats.record_error(error, operation)
        logger.error(
            "Engine fault",
            operation=operation,
            phase=self.phase.value,
            cycle=self.cycle,
            error=str(error),
            error_type=type(error).__name__,
        )

    def _transition(self, phase: Phase) -> None:
        if self.instance is None:
            raise RuntimeError(f"No pipeline instance for {phase.value}")
        ack = self._engine.set_state(self.instance, phase.engine_state, self.ack_timeout)
        previous = self.phase
        self.phase = phase
        self.last_ack = ack
        if self._stats is not None:
            self._stats.record_transition(phase, ack)

        if ack.achieved and ack.settled:
            logger.info(
                f"Transition {previous.value} -> {phase.value}",
                result=ack.result.name,
                current=ack.current.name,
                pending=ack.pending.name,
                waited=round(ack.waited_seconds, 3),
            )
        else:
            logger.warning(
                f"Transition {previous.value} -> {phase.value} not confirmed",
                result=ack.result.name,
                current=ack.current.name,
                pending=ack.pending.name,
                timeout=self.ack_timeout,
            )

    def _recreate(self) -> None:
        """Replace the instance after it reached NULL."""
        self.sink.drain()
        self._teardown()
        self.cycle += 1
        if self._stats is not None:
            self._stats.record_cycle(self.cycle)
        logger.info("Recreating pipeline", cycle=self.cycle)
        self._rebuild()

    def _rebuild(self) -> bool:
        try:
            self._build()
        except ConstructionError as e:
            if self._stats is not None:
                self._stats.record_error(e, "rebuild")
            logger.error(
                "Pipeline rebuild failed, retrying on next NULL tick",
                cycle=self.cycle,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    def _build(self) -> None:
        try:
            instance = self._engine.build_instance(self.blueprint)
        except ConstructionError:
            if self._stats is not None:
                self._stats.record_build(success=False)
            raise
        self.instance = instance
        self.builds += 1
        if self._stats is not None:
            self._stats.record_build(success=True)

        element = self.blueprint.counter_element
        if element is not None and not self._engine.connect_counter(
            instance, element, self.counter.increment
        ):
            logger.warning("Frame counter element not found", element=element)

        attached = 0
        for branch in self.blueprint.branches:
            outcome = self.tracker.request(instance, branch.slot, branch.fanout, branch.target)
            if outcome.attached:
                attached += 1
            else:
                logger.warning(
                    "Branch unavailable, continuing degraded",
                    slot=branch.slot,
                    reason=outcome.reason,
                )
        logger.debug(
            "Pipeline instance ready",
            build=self.builds,
            attached=attached,
            branches=len(self.blueprint.branches),
        )

    def _teardown(self) -> None:
        """Hand back every pad, then destroy the instance."""
        if self.instance is None:
            return
        instance, self.instance = self.instance, None
        try:
            self.tracker.release_all(instance)
        finally:
            self._engine.destroy_instance(instance)
