"""Tests for the phase plan."""

from __future__ import annotations

import pytest

from pipecycle.engine.types import PipelineState
from pipecycle.lifecycle.phases import Phase, PhasePlan
from pipecycle.models import PHASE_MODE_EXTENDED, CycleConfig


class TestPhasePlan:
    """Test cases for PhasePlan."""

    def test_basic_sequence(self) -> None:
        """The basic cycle never visits READY."""
        plan = PhasePlan()
        assert plan.order == (Phase.NULL, Phase.PLAYING, Phase.PAUSED)
        assert plan.next_phase(Phase.NULL) == Phase.PLAYING
        assert plan.next_phase(Phase.PLAYING) == Phase.PAUSED
        assert plan.next_phase(Phase.PAUSED) == Phase.NULL

    def test_extended_sequence(self) -> None:
        """The extended cycle passes through READY before NULL."""
        plan = PhasePlan(extended=True)
        assert plan.next_phase(Phase.PAUSED) == Phase.READY
        assert plan.next_phase(Phase.READY) == Phase.NULL

    def test_ready_outside_extended_mode(self) -> None:
        """READY has no successor in the basic cycle."""
        with pytest.raises(ValueError, match="READY"):
            PhasePlan().next_phase(Phase.READY)

    def test_dwell_times(self) -> None:
        """Each phase uses its own dwell."""
        plan = PhasePlan(playing_seconds=10, paused_seconds=1, ready_seconds=2, null_seconds=3)
        assert plan.dwell(Phase.PLAYING) == 10
        assert plan.dwell(Phase.PAUSED) == 1
        assert plan.dwell(Phase.READY) == 2
        assert plan.dwell(Phase.NULL) == 3
        assert plan.cycle_seconds == 14

    def test_from_config(self) -> None:
        """The plan follows the configured phase mode and dwells."""
        plan = PhasePlan.from_config(
            CycleConfig(phase_mode=PHASE_MODE_EXTENDED, playing_seconds=30.0)
        )
        assert plan.extended
        assert plan.order[-1] == Phase.READY
        assert plan.dwell(Phase.PLAYING) == 30.0

    @pytest.mark.parametrize("phase", list(Phase))
    def test_engine_state(self, phase: Phase) -> None:
        """Each phase requests the engine state of the same name."""
        assert phase.engine_state == PipelineState[phase.value]
