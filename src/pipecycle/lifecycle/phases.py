# pyright: strict
"""Lifecycle phases and the dwell plan that orders them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from pipecycle.engine.types import PipelineState

if TYPE_CHECKING:
    from pipecycle.models import CycleConfig


class Phase(Enum):
    """Controller-side phase. Each maps to one requested engine state."""

    NULL = "NULL"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    READY = "READY"

    @property
    def engine_state(self) -> PipelineState:
        """Engine state requested when this phase is entered."""
        return PipelineState[self.value]


@dataclass(frozen=True)
class PhasePlan:
    """Cycle order and how long the controller stays in each phase.

    The basic cycle is NULL -> PLAYING -> PAUSED -> NULL. The extended cycle
    inserts READY between PAUSED and NULL. Entering NULL always means the
    pipeline instance is torn down and rebuilt.
    """

    extended: bool = False
    playing_seconds: float = 10.0
    paused_seconds: float = 1.0
    ready_seconds: float = 1.0
    null_seconds: float = 1.0

    @classmethod
    def from_config(cls, config: CycleConfig) -> PhasePlan:
        """Build the plan from the controller configuration."""
        return cls(
            extended=config.extended,
            playing_seconds=config.playing_seconds,
            paused_seconds=config.paused_seconds,
            ready_seconds=config.ready_seconds,
            null_seconds=config.null_seconds,
        )

    @property
    def order(self) -> tuple[Phase, ...]:
        """One full cycle starting at NULL."""
        if self.extended:
            return (Phase.NULL, Phase.PLAYING, Phase.PAUSED, Phase.READY)
        return (Phase.NULL, Phase.PLAYING, Phase.PAUSED)

    @property
    def cycle_seconds(self) -> float:
        """Wall time of one full cycle."""
        return sum(self.dwell(phase) for phase in self.order)

    def next_phase(self, phase: Phase) -> Phase:
        """Phase that follows ``phase`` in the cycle."""
        if phase == Phase.READY and not self.extended:
            ready_error = "READY is not part of the basic cycle"
            raise ValueError(ready_error)
        order = self.order
        return order[(order.index(phase) + 1) % len(order)]

    def dwell(self, phase: Phase) -> float:
        """Seconds to stay in ``phase`` before the next transition."""
        return {
            Phase.NULL: self.null_seconds,
            Phase.PLAYING: self.playing_seconds,
            Phase.PAUSED: self.paused_seconds,
            Phase.READY: self.ready_seconds,
        }[phase]
