# pyright: strict
"""Phase state machine, timers and branch pad ownership.

The controller itself is imported from ``pipecycle.lifecycle.controller``;
it depends on the reporter and the event sink, which depend on the scheduler
exported here.
"""

from __future__ import annotations

from .phases import Phase, PhasePlan
from .scheduler import AsyncioScheduler, PeriodicTask, RearmableTimer, Scheduler, TimerHandle
from .stats import LifecycleStatsCollector
from .tracker import BranchPadTracker, HeldPad

__all__ = [
    "AsyncioScheduler",
    "BranchPadTracker",
    "HeldPad",
    "LifecycleStatsCollector",
    "PeriodicTask",
    "Phase",
    "PhasePlan",
    "RearmableTimer",
    "Scheduler",
    "TimerHandle",
]
