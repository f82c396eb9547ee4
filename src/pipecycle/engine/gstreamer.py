"""GStreamer implementation of the engine interface, built on PyGObject.

This is the only module that imports ``gi``. It is loaded lazily by the
controller entry point so the rest of the package installs and tests without
the GStreamer runtime.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import gi

gi.require_version("Gst", "1.0")
from gi.repository import GLib, Gst  # type: ignore[import-untyped]  # noqa: E402

from loguru import logger  # noqa: E402

from pipecycle.errors import ConstructionError, EngineError  # noqa: E402

from .types import (  # noqa: E402
    ErrorNotice,
    Notification,
    PipelineBlueprint,
    PipelineState,
    StateAck,
    StateChangedNotice,
    StateChangeReturn,
    WarningNotice,
)

_STATES: dict[Any, PipelineState] = {}
_RETURNS: dict[Any, StateChangeReturn] = {}


def _init_tables() -> None:
    if _STATES:
        return
    _STATES.update(
        {
            Gst.State.VOID_PENDING: PipelineState.VOID_PENDING,
            Gst.State.NULL: PipelineState.NULL,
            Gst.State.READY: PipelineState.READY,
            Gst.State.PAUSED: PipelineState.PAUSED,
            Gst.State.PLAYING: PipelineState.PLAYING,
        }
    )
    _RETURNS.update(
        {
            Gst.StateChangeReturn.FAILURE: StateChangeReturn.FAILURE,
            Gst.StateChangeReturn.SUCCESS: StateChangeReturn.SUCCESS,
            Gst.StateChangeReturn.ASYNC: StateChangeReturn.ASYNC,
            Gst.StateChangeReturn.NO_PREROLL: StateChangeReturn.NO_PREROLL,
        }
    )


def _to_gst_state(state: PipelineState) -> Any:
    for gst_state, ours in _STATES.items():
        if ours == state:
            return gst_state
    state_error = f"No GStreamer state for {state.name}"
    raise ValueError(state_error)


def _source_name(message: Any) -> str:
    src = message.src
    return src.get_name() if src is not None else "unknown"


@dataclass
class GstInstance:
    """A built pipeline plus the signal connections made on it."""

    pipeline: Any
    blueprint: PipelineBlueprint
    bus: Any
    handlers: list[tuple[Any, int]] = field(default_factory=list)


class GstEngine:
    """Engine adapter over ``Gst.parse_launch`` and request-pad fan-outs."""

    def __init__(self) -> None:
        """Initialize GStreamer once for the process."""
        if not Gst.is_initialized():
            Gst.init(None)
        _init_tables()
        logger.debug("GStreamer initialized", version=Gst.version_string())

    def build_instance(self, blueprint: PipelineBlueprint) -> GstInstance:
        """Parse the main chain and add every branch bin to it unlinked.

        Args:
            blueprint: Main chain description and branch descriptions.

        Raises:
            ConstructionError: If parsing fails, a fan-out is missing, or a
                branch bin cannot be created.

        """
        try:
            pipeline = Gst.parse_launch(blueprint.description)
        except GLib.Error as e:
            raise ConstructionError(e.message, description=blueprint.description) from e
        if pipeline is None:
            raise ConstructionError("parse_launch returned no pipeline", blueprint.description)

        for fanout in blueprint.fanouts:
            if pipeline.get_by_name(fanout) is None:
                pipeline.set_state(Gst.State.NULL)
                fanout_error = f"Fan-out element {fanout!r} not found"
                raise ConstructionError(fanout_error, description=blueprint.description)

        for branch in blueprint.branches:
            try:
                # Ghost the unlinked sink pad so the bin links like a single element
                branch_bin = Gst.parse_bin_from_description(branch.description, True)
            except GLib.Error as e:
                pipeline.set_state(Gst.State.NULL)
                raise ConstructionError(e.message, description=branch.description) from e
            branch_bin.set_name(branch.target)
            pipeline.add(branch_bin)

        instance = GstInstance(pipeline=pipeline, blueprint=blueprint, bus=pipeline.get_bus())
        logger.debug(
            "Pipeline instance built",
            name=pipeline.get_name(),
            branches=len(blueprint.branches),
        )
        return instance

    def set_state(
        self, instance: GstInstance, target: PipelineState, timeout: float
    ) -> StateAck:
        """Request ``target`` and block up to ``timeout`` seconds for it to settle."""
        started = time.monotonic()
        ret = instance.pipeline.set_state(_to_gst_state(target))
        result = _RETURNS.get(ret, StateChangeReturn.FAILURE)
        if result == StateChangeReturn.ASYNC:
            ret, current, pending = instance.pipeline.get_state(int(timeout * Gst.SECOND))
            # get_state reports ASYNC again when the wait timed out
            result = _RETURNS.get(ret, StateChangeReturn.FAILURE)
        else:
            _, current, pending = instance.pipeline.get_state(0)
        return StateAck(
            target=target,
            result=result,
            current=_STATES.get(current, PipelineState.VOID_PENDING),
            pending=_STATES.get(pending, PipelineState.VOID_PENDING),
            waited_seconds=time.monotonic() - started,
        )

    def request_pad(self, instance: GstInstance, fanout: str) -> Any | None:
        """Request a ``src_%u`` pad from a tee."""
        tee = instance.pipeline.get_by_name(fanout)
        if tee is None:
            return None
        return tee.request_pad_simple("src_%u")

    def link_pad(self, instance: GstInstance, pad: Any, target: str) -> bool:
        """Link ``pad`` to the ghost sink pad of the branch bin named ``target``."""
        branch_bin = instance.pipeline.get_by_name(target)
        if branch_bin is None:
            return False
        sink = branch_bin.get_static_pad("sink")
        if sink is None:
            return False
        return pad.link(sink) == Gst.PadLinkReturn.OK

    def release_pad(self, instance: GstInstance, pad: Any) -> None:
        """Unlink ``pad`` from its peer and hand it back to the owning tee.

        Raises:
            EngineError: If the pad no longer has a parent element.

        """
        tee = pad.get_parent_element()
        if tee is None:
            raise EngineError("Pad has no parent element", operation="release_pad")
        peer = pad.get_peer()
        if peer is not None:
            pad.unlink(peer)
        tee.release_request_pad(pad)

    def destroy_instance(self, instance: GstInstance) -> None:
        """Disconnect counters and drop the pipeline reference."""
        for element, handler_id in instance.handlers:
            element.disconnect(handler_id)
        instance.handlers.clear()
        instance.bus = None
        instance.pipeline = None

    def connect_counter(
        self, instance: GstInstance, element: str, callback: Callable[[], None]
    ) -> bool:
        """Call ``callback`` from the streaming thread on every identity handoff."""
        probe = instance.pipeline.get_by_name(element)
        if probe is None:
            return False

        def _on_handoff(_element: Any, _buffer: Any) -> None:
            callback()

        handler_id = probe.connect("handoff", _on_handoff)
        instance.handlers.append((probe, handler_id))
        return True

    def drain_notifications(self, instance: GstInstance) -> list[Notification]:
        """Pop every queued error, warning and state-changed message off the bus."""
        notices: list[Notification] = []
        if instance.bus is None:
            return notices
        wanted = Gst.MessageType.ERROR | Gst.MessageType.WARNING | Gst.MessageType.STATE_CHANGED
        while True:
            message = instance.bus.pop_filtered(wanted)
            if message is None:
                return notices
            notices.append(self._convert(instance, message))

    def _convert(self, instance: GstInstance, message: Any) -> Notification:
        source = _source_name(message)
        if message.type == Gst.MessageType.ERROR:
            err, debug = message.parse_error()
            return ErrorNotice(message=err.message, debug=debug, source=source)
        if message.type == Gst.MessageType.WARNING:
            warn, debug = message.parse_warning()
            return WarningNotice(message=warn.message, debug=debug, source=source)
        old, new, pending = message.parse_state_changed()
        return StateChangedNotice(
            old=_STATES.get(old, PipelineState.VOID_PENDING),
            new=_STATES.get(new, PipelineState.VOID_PENDING),
            pending=_STATES.get(pending, PipelineState.VOID_PENDING),
            source=source,
            top_level=message.src == instance.pipeline,
        )
