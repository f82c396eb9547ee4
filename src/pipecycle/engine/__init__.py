# pyright: strict
"""Engine interface, value types and pipeline blueprints.

The GStreamer adapter lives in ``pipecycle.engine.gstreamer`` and is not
imported here so that importing the package does not require PyGObject.
"""

from __future__ import annotations

from .description import build_blueprint, multi_stream_blueprint, simple_blueprint
from .types import (
    AttachOutcome,
    AttachStatus,
    BranchSpec,
    ErrorNotice,
    Notification,
    PadHandle,
    PipelineBlueprint,
    PipelineEngine,
    PipelineInstance,
    PipelineState,
    StateAck,
    StateChangedNotice,
    StateChangeReturn,
    WarningNotice,
)

__all__ = [
    "AttachOutcome",
    "AttachStatus",
    "BranchSpec",
    "ErrorNotice",
    "Notification",
    "PadHandle",
    "PipelineBlueprint",
    "PipelineEngine",
    "PipelineInstance",
    "PipelineState",
    "StateAck",
    "StateChangeReturn",
    "StateChangedNotice",
    "WarningNotice",
    "build_blueprint",
    "multi_stream_blueprint",
    "simple_blueprint",
]
