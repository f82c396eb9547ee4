# pyright: strict
"""Metric value types kept by the in-process registry."""

from __future__ import annotations

import time
from bisect import bisect_left
from dataclasses import dataclass, field
from enum import Enum


class MetricType(Enum):
    """Kinds of metric the registry stores."""

    COUNTER = "counter"
    """Only ever goes up."""

    GAUGE = "gauge"
    """Last value set wins."""

    HISTOGRAM = "histogram"
    """Observations bucketed by upper bound."""


# Transition waits are bounded by the acknowledgment timeout (3 s by default).
DEFAULT_WAIT_BUCKETS: tuple[float, ...] = (0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 3.0, 5.0)


@dataclass(frozen=True)
class MetricKey:
    """Metric name plus a sorted, hashable label set."""

    name: str
    labels: tuple[tuple[str, str], ...] = ()

    @classmethod
    def of(cls, name: str, labels: dict[str, str] | None = None) -> MetricKey:
        """Build a key; label order does not matter."""
        return cls(name=name, labels=tuple(sorted((labels or {}).items())))

    def render(self) -> str:
        """Prometheus-style text form, e.g. ``name{phase="PLAYING"}``."""
        if not self.labels:
            return self.name
        pairs = ",".join(f'{key}="{value}"' for key, value in self.labels)
        return f"{self.name}{{{pairs}}}"


@dataclass
class Histogram:
    """Bucketed distribution with an overflow bucket past the last bound."""

    buckets: tuple[float, ...] = DEFAULT_WAIT_BUCKETS
    counts: list[int] = field(init=False)
    total: float = field(default=0.0, init=False)
    count: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        """Size the counts to the buckets plus overflow."""
        self.buckets = tuple(sorted(self.buckets))
        self.counts = [0] * (len(self.buckets) + 1)

    def observe(self, value: float) -> None:
        """Add one observation."""
        self.total += value
        self.count += 1
        self.counts[bisect_left(self.buckets, value)] += 1

    @property
    def mean(self) -> float:
        """Average observation, 0 when empty."""
        return self.total / self.count if self.count else 0.0


@dataclass
class Metric:
    """One labelled series in the registry."""

    key: MetricKey
    metric_type: MetricType
    help_text: str = ""
    value: float = 0.0
    histogram: Histogram | None = None
    updated_at: float = field(default_factory=time.time)

    def increment(self, amount: float = 1) -> None:
        """Add to a counter.

        Raises:
            ValueError: If this is not a counter or ``amount`` is negative.

        """
        if self.metric_type != MetricType.COUNTER:
            kind_error = f"{self.key.name} is a {self.metric_type.value}, not a counter"
            raise ValueError(kind_error)
        if amount < 0:
            amount_error = f"Counter {self.key.name} cannot decrease"
            raise ValueError(amount_error)
        self.value += amount
        self.updated_at = time.time()

    def set_value(self, value: float) -> None:
        """Overwrite a gauge."""
        if self.metric_type != MetricType.GAUGE:
            kind_error = f"{self.key.name} is a {self.metric_type.value}, not a gauge"
            raise ValueError(kind_error)
        self.value = float(value)
        self.updated_at = time.time()

    def observe(self, value: float) -> None:
        """Record into a histogram."""
        if self.metric_type != MetricType.HISTOGRAM or self.histogram is None:
            kind_error = f"{self.key.name} is a {self.metric_type.value}, not a histogram"
            raise ValueError(kind_error)
        self.histogram.observe(value)
        self.updated_at = time.time()

    def numeric(self) -> float:
        """Counter or gauge value, observation count for histograms."""
        if self.histogram is not None:
            return float(self.histogram.count)
        return self.value
