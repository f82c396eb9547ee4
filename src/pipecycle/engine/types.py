# pyright: strict
"""Engine-facing types: states, acknowledgments, notifications and the engine protocol.

The stream-processing engine is an opaque collaborator. The controller only
sees it through ``PipelineEngine``, so tests can substitute a double and the
GStreamer adapter stays the single place that imports ``gi``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

# Opaque engine objects. The controller never looks inside them.
type PipelineInstance = object
type PadHandle = object


class PipelineState(Enum):
    """Engine element states, numbered as GStreamer numbers them."""

    VOID_PENDING = 0
    NULL = 1
    READY = 2
    PAUSED = 3
    PLAYING = 4


class StateChangeReturn(Enum):
    """Immediate result of a state change request."""

    FAILURE = 0
    SUCCESS = 1
    ASYNC = 2
    NO_PREROLL = 3


@dataclass(frozen=True)
class StateAck:
    """What the engine reported after a state change request and a bounded wait."""

    target: PipelineState
    """State that was requested."""

    result: StateChangeReturn
    """Return value of the request itself."""

    current: PipelineState
    """State the pipeline reported when the wait ended."""

    pending: PipelineState = PipelineState.VOID_PENDING
    """State the pipeline is still moving to, VOID_PENDING when settled."""

    waited_seconds: float = 0.0
    """How long the caller blocked for this acknowledgment."""

    @property
    def settled(self) -> bool:
        """Whether the engine has no transition in flight."""
        return self.result != StateChangeReturn.FAILURE and self.pending == PipelineState.VOID_PENDING

    @property
    def achieved(self) -> bool:
        """Whether the requested state was observed."""
        return self.result != StateChangeReturn.FAILURE and self.current == self.target


@dataclass(frozen=True)
class ErrorNotice:
    """Error-class message posted by the engine."""

    message: str
    debug: str | None = None
    source: str = "unknown"
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class WarningNotice:
    """Warning-class message posted by the engine."""

    message: str
    debug: str | None = None
    source: str = "unknown"
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class StateChangedNotice:
    """State change reported by an element of the pipeline."""

    old: PipelineState
    new: PipelineState
    pending: PipelineState
    source: str = "unknown"
    top_level: bool = False
    """True when the reporting element is the pipeline itself."""

    timestamp: float = field(default_factory=time.time)


type Notification = ErrorNotice | WarningNotice | StateChangedNotice


@dataclass(frozen=True)
class BranchSpec:
    """A branch hung off a fan-out element through a request pad."""

    slot: str
    """Stable tracker slot name (e.g. ``udp``, ``fps``, ``udp_sink0``)."""

    fanout: str
    """Name of the fan-out element the pad is requested from."""

    target: str
    """Name of the first downstream element; its ``sink`` pad is linked."""

    description: str
    """Branch elements in pipeline description syntax, first element named ``target``."""


@dataclass(frozen=True)
class PipelineBlueprint:
    """Everything the engine needs to build one pipeline instance."""

    description: str
    """Main chain up to and including the named fan-out elements."""

    branches: tuple[BranchSpec, ...] = ()
    counter_element: str | None = None
    """Element whose per-buffer callback feeds the event counter."""

    @property
    def slots(self) -> tuple[str, ...]:
        """Tracker slot names in branch order."""
        return tuple(branch.slot for branch in self.branches)

    @property
    def fanouts(self) -> tuple[str, ...]:
        """Distinct fan-out element names the branches hang off, in first-use order."""
        return tuple(dict.fromkeys(branch.fanout for branch in self.branches))


class AttachStatus(Enum):
    """Why a branch request ended the way it did."""

    ATTACHED = "attached"
    NO_PAD = "no_pad"
    """The fan-out element is missing or refused a request pad."""

    LINK_FAILED = "link_failed"
    """The target is missing or the link was refused."""

    UNKNOWN_SLOT = "unknown_slot"


@dataclass(frozen=True)
class AttachOutcome:
    """Result of requesting one branch pad."""

    slot: str
    status: AttachStatus
    handle: PadHandle | None = None
    detail: str = ""

    @property
    def attached(self) -> bool:
        """Whether the slot now holds a linked pad."""
        return self.status == AttachStatus.ATTACHED and self.handle is not None

    @property
    def reason(self) -> str:
        """Short human-readable reason for logs."""
        return self.detail or self.status.value


class PipelineEngine(Protocol):
    """Narrow interface the lifecycle controller consumes from the engine."""

    def build_instance(self, blueprint: PipelineBlueprint) -> PipelineInstance:
        """Build a pipeline instance with its branch elements added but not linked.

        :raises ConstructionError: If the main chain or a branch cannot be built.
        """
        ...

    def set_state(
        self, instance: PipelineInstance, target: PipelineState, timeout: float
    ) -> StateAck:
        """Request a state and wait at most ``timeout`` seconds for it to settle."""
        ...

    def request_pad(self, instance: PipelineInstance, fanout: str) -> PadHandle | None:
        """Request a new source pad from a fan-out element, None when unavailable."""
        ...

    def link_pad(self, instance: PipelineInstance, pad: PadHandle, target: str) -> bool:
        """Link a requested pad to the sink pad of ``target``."""
        ...

    def release_pad(self, instance: PipelineInstance, pad: PadHandle) -> None:
        """Unlink and give a requested pad back to the fan-out element that owns it.

        :raises EngineError: If the engine rejects the release.
        """
        ...

    def destroy_instance(self, instance: PipelineInstance) -> None:
        """Drop the engine's last reference to the instance."""
        ...

    def connect_counter(
        self, instance: PipelineInstance, element: str, callback: Callable[[], None]
    ) -> bool:
        """Invoke ``callback`` for every buffer passing ``element``."""
        ...

    def drain_notifications(self, instance: PipelineInstance) -> list[Notification]:
        """Return and consume the notifications queued since the last call."""
        ...
