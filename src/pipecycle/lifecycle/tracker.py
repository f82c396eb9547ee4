# pyright: strict
"""Ownership of the fan-out request pads hung on a pipeline instance."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from pipecycle.engine.types import AttachOutcome, AttachStatus

if TYPE_CHECKING:
    from pipecycle.engine.types import PadHandle, PipelineEngine, PipelineInstance

    from .stats import LifecycleStatsCollector


@dataclass(frozen=True)
class HeldPad:
    """A linked request pad and where it came from."""

    fanout: str
    target: str
    pad: PadHandle


class BranchPadTracker:
    """Fixed set of named slots, each holding at most one linked request pad.

    Every pad handed out by a fan-out element must go back to it before the
    instance is destroyed, otherwise the element keeps it alive and long runs
    leak. ``acquired`` and ``released`` count linked pads taken and returned so
    callers can check the two stay equal across cycles.
    """

    def __init__(
        self,
        engine: PipelineEngine,
        slots: Iterable[str],
        stats: LifecycleStatsCollector | None = None,
    ) -> None:
        """Initialize with every slot empty."""
        self._engine = engine
        self._stats = stats
        self._slots: dict[str, HeldPad | None] = dict.fromkeys(slots)
        self.acquired = 0
        self.released = 0
        self.rolled_back = 0

    @property
    def slots(self) -> tuple[str, ...]:
        """Slot names in declaration order."""
        return tuple(self._slots)

    @property
    def held(self) -> dict[str, HeldPad]:
        """Slots currently holding a pad."""
        return {slot: held for slot, held in self._slots.items() if held is not None}

    @property
    def outstanding(self) -> int:
        """Pads acquired and not yet released."""
        return self.acquired - self.released

    def handle(self, slot: str) -> PadHandle | None:
        """Pad held in ``slot``, None when empty."""
        held = self._slots.get(slot)
        return held.pad if held is not None else None

    def request(
        self, instance: PipelineInstance, slot: str, fanout: str, target: str
    ) -> AttachOutcome:
        """Request a pad from ``fanout`` and link it to ``target``.

        On any failure the slot stays empty and a pad that was obtained but
        could not be linked is given back immediately.
        """
        if slot not in self._slots:
            logger.warning("Unknown branch slot", slot=slot)
            return self._outcome(AttachOutcome(slot, AttachStatus.UNKNOWN_SLOT))
        if self._slots[slot] is not None:
            logger.warning("Branch slot already held, releasing first", slot=slot)
            self._release_slot(instance, slot)

        pad = self._engine.request_pad(instance, fanout)
        if pad is None:
            logger.warning("No request pad available", slot=slot, fanout=fanout)
            return self._outcome(
                AttachOutcome(slot, AttachStatus.NO_PAD, detail=f"no pad on {fanout}")
            )

        if not self._engine.link_pad(instance, pad, target):
            logger.warning("Failed to link branch", slot=slot, fanout=fanout, target=target)
            self._give_back(instance, slot, pad)
            self.rolled_back += 1
            return self._outcome(
                AttachOutcome(slot, AttachStatus.LINK_FAILED, detail=f"cannot link {target}")
            )

        self._slots[slot] = HeldPad(fanout=fanout, target=target, pad=pad)
        self.acquired += 1
        logger.debug("Branch attached", slot=slot, fanout=fanout, target=target)
        return self._outcome(AttachOutcome(slot, AttachStatus.ATTACHED, handle=pad))

    def release_all(self, instance: PipelineInstance) -> int:
        """Give every held pad back and clear all slots. Idempotent.

        Returns:
            How many pads were handed back.

        """
        count = 0
        for slot in self._slots:
            if self._slots[slot] is not None:
                self._release_slot(instance, slot)
                count += 1
        if count:
            logger.debug("Branch pads released", count=count, outstanding=self.outstanding)
        return count

    def _release_slot(self, instance: PipelineInstance, slot: str) -> None:
        held = self._slots[slot]
        if held is None:
            return
        self._slots[slot] = None
        self.released += 1
        success = self._give_back(instance, slot, held.pad)
        if self._stats is not None:
            self._stats.record_branch_release(slot, success=success)

    def _give_back(self, instance: PipelineInstance, slot: str, pad: PadHandle) -> bool:
        try:
            self._engine.release_pad(instance, pad)
        except Exception as e:  # noqa: BLE001
            if self._stats is not None:
                self._stats.record_error(e, "release_pad")
            logger.debug("Ignoring pad release fault", slot=slot, error=str(e))
            return False
        return True

    def _outcome(self, outcome: AttachOutcome) -> AttachOutcome:
        if self._stats is not None:
            self._stats.record_branch_request(outcome.slot, outcome.status)
        return outcome
