"""Tests for engine-facing value types."""

from __future__ import annotations

from pipecycle.engine.types import (
    AttachOutcome,
    AttachStatus,
    BranchSpec,
    PipelineBlueprint,
    PipelineState,
    StateAck,
    StateChangeReturn,
)


class TestStateAck:
    """Test cases for StateAck."""

    def test_success_is_settled_and_achieved(self) -> None:
        """A synchronous success reached its target."""
        ack = StateAck(
            target=PipelineState.PAUSED,
            result=StateChangeReturn.SUCCESS,
            current=PipelineState.PAUSED,
        )
        assert ack.settled
        assert ack.achieved

    def test_async_with_pending_state(self) -> None:
        """A transition still in flight is neither settled nor achieved."""
        ack = StateAck(
            target=PipelineState.PLAYING,
            result=StateChangeReturn.ASYNC,
            current=PipelineState.PAUSED,
            pending=PipelineState.PLAYING,
        )
        assert not ack.settled
        assert not ack.achieved

    def test_failure_is_never_settled(self) -> None:
        """A failed request does not count as settled even with nothing pending."""
        ack = StateAck(
            target=PipelineState.NULL,
            result=StateChangeReturn.FAILURE,
            current=PipelineState.NULL,
        )
        assert not ack.settled
        assert not ack.achieved

    def test_no_preroll_counts_as_achieved(self) -> None:
        """Live sources report NO_PREROLL when pausing."""
        ack = StateAck(
            target=PipelineState.PAUSED,
            result=StateChangeReturn.NO_PREROLL,
            current=PipelineState.PAUSED,
        )
        assert ack.achieved


class TestPipelineBlueprint:
    """Test cases for PipelineBlueprint."""

    def test_fanouts_are_distinct_in_first_use_order(self) -> None:
        """Several branches on one tee name it once."""
        blueprint = PipelineBlueprint(
            description="videotestsrc ! tee name=b ! fakesink",
            branches=(
                BranchSpec("x", "b", "x_branch", "queue ! fakesink"),
                BranchSpec("y", "a", "y_branch", "queue ! fakesink"),
                BranchSpec("z", "b", "z_branch", "queue ! fakesink"),
            ),
        )
        assert blueprint.fanouts == ("b", "a")
        assert blueprint.slots == ("x", "y", "z")

    def test_empty(self) -> None:
        """A blueprint without branches has no slots or fan-outs."""
        blueprint = PipelineBlueprint(description="videotestsrc ! fakesink")
        assert blueprint.slots == ()
        assert blueprint.fanouts == ()
        assert blueprint.counter_element is None


class TestAttachOutcome:
    """Test cases for AttachOutcome."""

    def test_reason_prefers_detail(self) -> None:
        """Detail text wins over the status name."""
        outcome = AttachOutcome("udp", AttachStatus.NO_PAD, detail="no pad on t0")
        assert not outcome.attached
        assert outcome.reason == "no pad on t0"

    def test_reason_falls_back_to_status(self) -> None:
        """Without detail the status value is the reason."""
        assert AttachOutcome("udp", AttachStatus.UNKNOWN_SLOT).reason == "unknown_slot"

    def test_attached_needs_a_handle(self) -> None:
        """An ATTACHED status without a pad is not attached."""
        assert not AttachOutcome("udp", AttachStatus.ATTACHED).attached
        assert AttachOutcome("udp", AttachStatus.ATTACHED, handle=object()).attached
