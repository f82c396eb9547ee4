# pyright: strict
"""Pipeline blueprints for the aging test variants.

Only the main chain goes through the description parser. Each branch is
described separately so the engine can add it to the pipeline unlinked and
the controller can attach it through a fan-out request pad it owns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .types import BranchSpec, PipelineBlueprint

if TYPE_CHECKING:
    from pipecycle.models import CycleConfig, StreamBranch

ENCODED_FANOUT = "fourk_enc_tee"
COUNTER_ELEMENT = "fps_probe"

UDP_SLOT = "udp"
FPS_SLOT = "fps"

_H264_CAPS = "video/x-h264,stream-format=(string)byte-stream,alignment=(string)au"
_PREVIEW_QUEUE = "queue leaky=no max-size-buffers=1"


def _quote(value: str) -> str:
    """Quote a property value that may contain spaces."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def udp_branch(slot: str, fanout: str, host: str, port: int) -> BranchSpec:
    """RTP payloader feeding a UDP sink."""
    return BranchSpec(
        slot=slot,
        fanout=fanout,
        target=f"{slot}_branch",
        description=(
            "queue ! rtph264pay pt=96 ! "
            f"udpsink host={host} port={port} sync=false async=false"
        ),
    )


def fps_branch(fanout: str, slot: str = FPS_SLOT) -> BranchSpec:
    """Identity probe whose handoff signal feeds the event counter."""
    return BranchSpec(
        slot=slot,
        fanout=fanout,
        target=f"{slot}_branch",
        description=(
            f"queue ! identity name={COUNTER_ELEMENT} signal-handoffs=true ! "
            "fakesink sync=false"
        ),
    )


def simple_blueprint(config: CycleConfig) -> PipelineBlueprint:
    """Single 4K encoder with three preview outputs discarded.

    The encoded stream ends in ``fourk_enc_tee`` which carries two branches,
    one to UDP and one to the frame counter.
    """
    frontend = _quote(config.frontend_config)
    encoder = _quote(config.encoder_config)
    previews = " ".join(
        f"preproc.src_{index} ! {_PREVIEW_QUEUE} ! fakesink sync=false"
        for index in range(3)
    )
    description = (
        f"hailofrontendbinsrc config-file-path={frontend} name=preproc "
        f"{previews} "
        f"preproc.src_3 ! {_PREVIEW_QUEUE} ! "
        f"hailoencodebin config-file-path={encoder} ! "
        f"h264parse config-interval=-1 ! {_H264_CAPS} ! "
        f"tee name={ENCODED_FANOUT}"
    )
    return PipelineBlueprint(
        description=description,
        branches=(
            udp_branch(UDP_SLOT, ENCODED_FANOUT, config.udp_host, config.udp_port),
            fps_branch(ENCODED_FANOUT),
        ),
        counter_element=COUNTER_ELEMENT,
    )


def _stream_fanout(index: int) -> str:
    return f"t{index}"


def multi_stream_blueprint(config: CycleConfig) -> PipelineBlueprint:
    """One encoder and fan-out per configured stream.

    Every encoded stream gets a UDP branch on its port from
    ``CycleConfig.stream_ports``. The first stream also carries the frame
    counter. Raw frontend outputs end in named fakesinks.
    """
    frontend = _quote(config.frontend_config)
    parts = [f"hailofrontendbinsrc config-file-path={frontend} name=frontend"]
    branches: list[BranchSpec] = []

    streams: list[StreamBranch] = config.encoder_streams
    ports = config.stream_ports()
    for index, stream in enumerate(streams):
        fanout = _stream_fanout(index)
        parts.append(
            f"frontend. ! queue ! hailoencodebin config-file-path={_quote(stream.config_path)} ! "
            f"h264parse config-interval=-1 ! {_H264_CAPS} ! tee name={fanout}"
        )
        branches.append(
            udp_branch(f"udp_{stream.stream_id}", fanout, config.udp_host, ports[index])
        )

    if streams:
        branches.append(fps_branch(_stream_fanout(0)))

    parts.extend(
        f"frontend. ! queue ! fakesink sync=false async=false name=hailo_display_{stream_id}"
        for stream_id in config.raw_stream_ids
    )

    return PipelineBlueprint(
        description=" ".join(parts),
        branches=tuple(branches),
        counter_element=COUNTER_ELEMENT if streams else None,
    )


def build_blueprint(config: CycleConfig) -> PipelineBlueprint:
    """Pick the blueprint for the configured variant."""
    if config.multi_stream:
        return multi_stream_blueprint(config)
    return simple_blueprint(config)
