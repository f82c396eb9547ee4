# pyright: strict
"""Frame counting, rate reporting and the in-process metric registry."""

from __future__ import annotations

from .collectors import MetricsCollector
from .counter import EventCounter
from .registry import MetricRegistry
from .types import Histogram, Metric, MetricKey, MetricType

__all__ = [
    "EventCounter",
    "Histogram",
    "Metric",
    "MetricKey",
    "MetricRegistry",
    "MetricType",
    "MetricsCollector",
]
