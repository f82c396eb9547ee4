"""Per-stream encoder branch records for the multi-stream pipeline variant."""

from pydantic import BaseModel, ConfigDict, Field

from pipecycle.errors import ConfigurationError


class StreamBranch(BaseModel):
    """One encoded frontend output and where its RTP stream is sent."""

    stream_id: str = Field(description="Frontend output stream identifier (e.g. sink0).", min_length=1)
    config_path: str = Field(description="Resolved encoder configuration file for this stream.")
    udp_port: int | None = Field(
        default=None,
        description="Destination UDP port; assigned from the base port when omitted.",
        ge=1,
        le=65535,
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, value: str) -> "StreamBranch":
        """Parse a ``STREAM_ID=PATH[:PORT]`` command-line value.

        :raises ConfigurationError: If the value has no ``=`` separator, an
            empty side or a port outside 1-65535.
        """
        stream_id, sep, rest = value.partition("=")
        config_path, port_sep, port = rest.rpartition(":")
        if not port_sep or not port.strip().isdigit():
            config_path, port = rest, ""
        if not sep or not stream_id.strip() or not config_path.strip():
            branch_error = f"Expected STREAM_ID=PATH[:PORT], got {value!r}"
            raise ConfigurationError(branch_error, field="encoder_streams")
        udp_port = int(port) if port else None
        if udp_port is not None and not 1 <= udp_port <= 65535:
            port_error = f"Stream port must be 1-65535, got {udp_port}"
            raise ConfigurationError(port_error, field="encoder_streams")
        return cls(stream_id=stream_id.strip(), config_path=config_path.strip(), udp_port=udp_port)
