# pyright: strict
"""Engine notification handling."""

from __future__ import annotations

from .sink import ErrorCallback, PipelineEventSink

__all__ = [
    "ErrorCallback",
    "PipelineEventSink",
]
