# pyright: strict
"""Lifecycle statistics recorded into the metric registry."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from loguru import logger

from pipecycle.metrics import MetricsCollector

if TYPE_CHECKING:
    from pipecycle.engine.types import AttachStatus, StateAck
    from pipecycle.metrics import MetricRegistry

    from .phases import Phase


class LifecycleStatsCollector:
    """Records cycles, transitions, branch pads, rebuilds, notices and memory.

    A failure to record a metric is logged and never reaches the controller.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        controller_id: str = "pipecycle",
        metric_prefix: str = "pipecycle",
    ) -> None:
        """Initialize with a registry instance and controller identifier.

        Args:
            registry: MetricRegistry instance for recording metrics
            controller_id: Identifier added as the ``controller`` label
            metric_prefix: Prefix for all metric names (default: "pipecycle")

        """
        self.controller_id = controller_id
        self.registry = registry
        self.collector = MetricsCollector(registry, metric_prefix)

    def _make_labels(self, additional_labels: dict[str, str] | None = None) -> dict[str, str]:
        """Labels with the controller id and any additional labels."""
        return {"controller": self.controller_id, **(additional_labels or {})}

    def _safe_metric_operation(
        self,
        operation_name: str,
        operation_func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> bool:
        """Run a metric operation, logging instead of raising on failure."""
        try:
            operation_func(*args, **kwargs)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Failed to {operation_name}: {e}")
            return False
        return True

    def record_tick(self, phase: Phase) -> None:
        """Count a phase timer expiry."""
        self._safe_metric_operation(
            "record tick",
            self.collector.increment_counter,
            "ticks_total",
            labels=self._make_labels({"phase": phase.value}),
            help_text="Phase timer expiries by phase left",
        )

    def record_transition(self, phase: Phase, ack: StateAck) -> None:
        """Count a state request by outcome and record how long it blocked."""
        outcome = "achieved" if ack.achieved else "unsettled" if ack.settled else ack.result.name.lower()
        self._safe_metric_operation(
            "record transition",
            self.collector.increment_counter,
            "transitions_total",
            labels=self._make_labels({"phase": phase.value, "result": outcome}),
            help_text="State change requests by phase entered and outcome",
        )
        self._safe_metric_operation(
            "record transition wait",
            self.collector.observe_histogram,
            "transition_wait_seconds",
            ack.waited_seconds,
            labels=self._make_labels({"phase": phase.value}),
            help_text="Seconds a state change request blocked the tick",
        )

    def record_cycle(self, cycle: int) -> None:
        """Count a completed cycle and expose the cycle number."""
        self._safe_metric_operation(
            "record cycle",
            self.collector.increment_counter,
            "cycles_total",
            labels=self._make_labels(),
            help_text="Completed NULL to NULL cycles",
        )
        self._safe_metric_operation(
            "set cycle gauge",
            self.collector.set_gauge,
            "cycle",
            cycle,
            labels=self._make_labels(),
            help_text="Current cycle number",
        )

    def record_build(self, *, success: bool) -> None:
        """Count a pipeline instance build attempt."""
        self._safe_metric_operation(
            "record build",
            self.collector.increment_counter,
            "instance_builds_total",
            labels=self._make_labels({"result": "success" if success else "failure"}),
            help_text="Pipeline instance builds by result",
        )

    def record_branch_request(self, slot: str, status: AttachStatus) -> None:
        """Count a branch pad request by slot and outcome."""
        self._safe_metric_operation(
            "record branch request",
            self.collector.increment_counter,
            "branch_requests_total",
            labels=self._make_labels({"slot": slot, "status": status.value}),
            help_text="Branch request pad attempts by slot and outcome",
        )

    def record_branch_release(self, slot: str, *, success: bool) -> None:
        """Count a branch pad release by slot and whether the engine accepted it."""
        self._safe_metric_operation(
            "record branch release",
            self.collector.increment_counter,
            "branch_releases_total",
            labels=self._make_labels({"slot": slot, "result": "success" if success else "fault"}),
            help_text="Branch request pads handed back by slot",
        )

    def record_error(self, error: Exception, operation: str) -> None:
        """Count an error the controller recovered from."""
        self._safe_metric_operation(
            "record error",
            self.collector.record_error,
            type(error).__name__,
            operation,
            labels=self._make_labels(),
        )

    def update_rate(self, phase: Phase, rate: float) -> None:
        """Expose the last reported frame rate labelled with its phase."""
        self._safe_metric_operation(
            "update frame rate",
            self.collector.set_gauge,
            "frame_rate",
            rate,
            labels=self._make_labels({"stage": phase.value}),
            help_text="Frames per second over the last report window",
        )

    def record_notice(self, kind: str) -> None:
        """Count an engine notification by kind (error, warning, state)."""
        self._safe_metric_operation(
            "record notice",
            self.collector.increment_counter,
            "notices_total",
            labels=self._make_labels({"kind": kind}),
            help_text="Engine notifications by kind",
        )

    def update_memory(self, figures: dict[str, int]) -> None:
        """Expose memory figures in kiB, one gauge series per figure."""
        for name, value in figures.items():
            self._safe_metric_operation(
                "update memory",
                self.collector.set_gauge,
                "memory_kib",
                value,
                labels=self._make_labels({"field": name}),
                help_text="Memory figures from /proc/meminfo in kiB",
            )

    def summary(self) -> dict[str, float]:
        """Headline totals for the shutdown log line."""
        name = self.collector.metric_name
        return {
            "cycles": self.registry.total(name("cycles_total")),
            "ticks": self.registry.total(name("ticks_total")),
            "transitions": self.registry.total(name("transitions_total")),
            "builds": self.registry.total(name("instance_builds_total")),
            "branch_requests": self.registry.total(name("branch_requests_total")),
            "branch_releases": self.registry.total(name("branch_releases_total")),
            "errors": self.registry.total(name("errors_total")),
            "notices": self.registry.total(name("notices_total")),
        }
