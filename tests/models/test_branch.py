"""Tests for stream branch and launch records."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pipecycle.errors import ConfigurationError
from pipecycle.models import LaunchSpec, StreamBranch


class TestStreamBranch:
    """Test cases for StreamBranch."""

    def test_parse(self) -> None:
        """ID=PATH splits on the first equals sign."""
        branch = StreamBranch.parse("sink0=/etc/enc=a.json")
        assert branch.stream_id == "sink0"
        assert branch.config_path == "/etc/enc=a.json"
        assert branch.udp_port is None

    def test_parse_strips_whitespace(self) -> None:
        """Whitespace around either side is ignored."""
        branch = StreamBranch.parse(" sink1 = /etc/enc1.json ")
        assert branch.stream_id == "sink1"
        assert branch.config_path == "/etc/enc1.json"

    @pytest.mark.parametrize(
        "value", ["/etc/enc.json", "=/etc/enc.json", "sink0=", "sink0=  ", "sink0=:5010"]
    )
    def test_parse_rejects_malformed(self, value: str) -> None:
        """Values without both sides are configuration errors."""
        with pytest.raises(ConfigurationError) as exc_info:
            StreamBranch.parse(value)
        assert exc_info.value.field == "encoder_streams"

    def test_parse_port(self) -> None:
        """A numeric suffix after the last colon is the destination port."""
        branch = StreamBranch.parse("sink0=/etc/enc0.json:5010")
        assert branch.config_path == "/etc/enc0.json"
        assert branch.udp_port == 5010

    def test_parse_non_numeric_suffix_stays_in_path(self) -> None:
        """A colon not followed by digits is part of the path."""
        branch = StreamBranch.parse("sink0=/mnt/c:/enc.json")
        assert branch.config_path == "/mnt/c:/enc.json"
        assert branch.udp_port is None

    @pytest.mark.parametrize("value", ["sink0=/etc/enc.json:0", "sink0=/etc/enc.json:70000"])
    def test_parse_rejects_bad_port(self, value: str) -> None:
        """Ports outside 1-65535 are configuration errors."""
        with pytest.raises(ConfigurationError, match="1-65535") as exc_info:
            StreamBranch.parse(value)
        assert exc_info.value.field == "encoder_streams"

    def test_port_range(self) -> None:
        """Ports outside 1-65535 are rejected."""
        with pytest.raises(ValidationError):
            StreamBranch(stream_id="sink0", config_path="/etc/enc.json", udp_port=70000)

    def test_frozen(self) -> None:
        """Branches are immutable."""
        branch = StreamBranch.parse("sink0=/etc/enc.json")
        with pytest.raises(ValidationError):
            branch.stream_id = "sink9"  # type: ignore[misc]


class TestLaunchSpec:
    """Test cases for LaunchSpec."""

    def test_program(self) -> None:
        """The program is the first argument."""
        spec = LaunchSpec(argv=["pipecycle", "--phase", "4"], source="command_line")
        assert spec.program == "pipecycle"
        assert spec.args_file is None

    def test_empty_argv_rejected(self) -> None:
        """A launch needs at least a program."""
        with pytest.raises(ValidationError):
            LaunchSpec(argv=[], source="command_line")

    def test_unknown_source_rejected(self) -> None:
        """Only the two known sources are accepted."""
        with pytest.raises(ValidationError):
            LaunchSpec(argv=["pipecycle"], source="environment")  # type: ignore[arg-type]
