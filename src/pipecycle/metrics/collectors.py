# pyright: strict
"""Base collector with the metric recording patterns shared by components."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .registry import MetricRegistry


class MetricsCollector:
    """Thin recording layer that prefixes names and carries help text."""

    def __init__(self, registry: MetricRegistry, prefix: str = "") -> None:
        """Initialize the collector.

        Args:
            registry: The metric registry to store metrics in
            prefix: Optional prefix joined to every metric name with ``_``

        """
        self.registry = registry
        self.prefix = prefix

    def metric_name(self, name: str) -> str:
        """Full metric name with the prefix applied."""
        return f"{self.prefix}_{name}" if self.prefix else name

    def increment_counter(
        self,
        name: str,
        amount: float = 1,
        labels: dict[str, str] | None = None,
        help_text: str = "",
    ) -> None:
        """Increment a counter."""
        self.registry.counter(self.metric_name(name), help_text, labels).increment(amount)

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
        help_text: str = "",
    ) -> None:
        """Set a gauge."""
        self.registry.gauge(self.metric_name(name), help_text, labels).set_value(value)

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        """Record a histogram observation."""
        self.registry.histogram(self.metric_name(name), help_text, labels, buckets).observe(
            value
        )

    def record_error(
        self,
        error_type: str,
        operation: str = "",
        labels: dict[str, str] | None = None,
    ) -> None:
        """Count an error by type and, optionally, the operation that hit it."""
        error_labels = {**(labels or {}), "error_type": error_type}
        if operation:
            error_labels["operation"] = operation
        self.increment_counter(
            "errors_total", labels=error_labels, help_text="Errors by type and operation"
        )
