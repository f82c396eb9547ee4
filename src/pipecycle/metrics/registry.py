# pyright: strict
"""Registry holding every metric series of the process."""

from __future__ import annotations

import threading
from typing import Any

from .types import Histogram, Metric, MetricKey, MetricType


class MetricRegistry:
    """Thread-safe store of metric series keyed by name and labels."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._metrics: dict[MetricKey, Metric] = {}
        self._lock = threading.RLock()

    def _get_or_create(
        self,
        metric_type: MetricType,
        name: str,
        help_text: str,
        labels: dict[str, str] | None,
        buckets: tuple[float, ...] | None = None,
    ) -> Metric:
        key = MetricKey.of(name, labels)
        with self._lock:
            metric = self._metrics.get(key)
            if metric is None:
                histogram = None
                if metric_type == MetricType.HISTOGRAM:
                    histogram = Histogram(buckets) if buckets else Histogram()
                metric = Metric(
                    key=key,
                    metric_type=metric_type,
                    help_text=help_text,
                    histogram=histogram,
                )
                self._metrics[key] = metric
            elif metric.metric_type != metric_type:
                type_error = (
                    f"Metric {name} already registered as {metric.metric_type.value}"
                )
                raise ValueError(type_error)
            return metric

    def counter(
        self, name: str, help_text: str = "", labels: dict[str, str] | None = None
    ) -> Metric:
        """Get or create a counter series."""
        return self._get_or_create(MetricType.COUNTER, name, help_text, labels)

    def gauge(
        self, name: str, help_text: str = "", labels: dict[str, str] | None = None
    ) -> Metric:
        """Get or create a gauge series."""
        return self._get_or_create(MetricType.GAUGE, name, help_text, labels)

    def histogram(
        self,
        name: str,
        help_text: str = "",
        labels: dict[str, str] | None = None,
        buckets: tuple[float, ...] | None = None,
    ) -> Metric:
        """Get or create a histogram series; ``buckets`` only apply on creation."""
        return self._get_or_create(MetricType.HISTOGRAM, name, help_text, labels, buckets)

    def get(self, name: str, labels: dict[str, str] | None = None) -> Metric | None:
        """Look up one series without creating it."""
        with self._lock:
            return self._metrics.get(MetricKey.of(name, labels))

    def value(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        """Numeric value of one series, None if it does not exist."""
        metric = self.get(name, labels)
        return metric.numeric() if metric is not None else None

    def total(self, name: str) -> float:
        """Sum of a metric over every label combination."""
        return sum(metric.numeric() for metric in self.series(name))

    def series(self, name: str) -> list[Metric]:
        """Every label combination recorded under ``name``."""
        with self._lock:
            return [metric for metric in self._metrics.values() if metric.key.name == name]

    def snapshot(self) -> dict[str, Any]:
        """Rendered key to value (or histogram summary) for logging."""
        with self._lock:
            snapshot: dict[str, Any] = {}
            for key, metric in self._metrics.items():
                if metric.histogram is not None:
                    snapshot[key.render()] = {
                        "count": metric.histogram.count,
                        "mean": round(metric.histogram.mean, 6),
                    }
                else:
                    snapshot[key.render()] = metric.value
            return snapshot
