"""Application configuration for the aging controller and the supervisor."""

import os
from dataclasses import dataclass, field

from pipecycle.errors import ConfigurationError

from .branch import StreamBranch

PHASE_MODE_BASIC = 3  # NULL -> PLAYING -> PAUSED -> NULL
PHASE_MODE_EXTENDED = 4  # NULL -> PLAYING -> PAUSED -> READY -> NULL


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _check_port(port: int, name: str) -> None:
    if port <= 0 or port > 65535:
        port_error = f"Invalid port number: {port}. Must be between 1 and 65535"
        raise ConfigurationError(port_error, field=name)


@dataclass
class CycleConfig:
    """Configuration for one aging controller process."""

    udp_host: str = "10.0.0.2"
    udp_port: int = 5000
    phase_mode: int = PHASE_MODE_BASIC
    playing_seconds: float = 10.0
    paused_seconds: float = 1.0
    ready_seconds: float = 1.0
    null_seconds: float = 1.0
    ack_timeout: float = 3.0
    report_interval: float = 5.0
    notification_interval: float = 0.1
    mem_watch_interval: float = 0.0  # 0 disables the /proc/meminfo sampler
    exit_on_error: bool = False
    frontend_config: str = "/usr/bin/frontend_config_example.json"
    encoder_config: str = "/usr/bin/encoder_config_example.json"
    encoder_streams: list[StreamBranch] = field(default_factory=list)
    raw_stream_ids: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    log_file: str | None = None

    @property
    def extended(self) -> bool:
        """Whether the READY phase is part of the cycle."""
        return self.phase_mode == PHASE_MODE_EXTENDED

    @property
    def multi_stream(self) -> bool:
        """Whether the per-stream encoder variant is selected."""
        return bool(self.encoder_streams)

    def stream_ports(self) -> list[int]:
        """Destination port of each encoder stream, in stream order.

        A stream without its own port uses ``udp_port`` plus its index.
        """
        return [
            stream.udp_port or self.udp_port + index
            for index, stream in enumerate(self.encoder_streams)
        ]

    @classmethod
    def from_env(cls) -> "CycleConfig":
        """Create config from environment variables."""
        return cls(
            udp_host=os.getenv("PIPECYCLE_UDP_HOST", "10.0.0.2"),
            udp_port=int(os.getenv("PIPECYCLE_UDP_PORT", "5000")),
            phase_mode=int(os.getenv("PIPECYCLE_PHASE", str(PHASE_MODE_BASIC))),
            playing_seconds=float(os.getenv("PIPECYCLE_PLAYING_SECONDS", "10")),
            paused_seconds=float(os.getenv("PIPECYCLE_PAUSED_SECONDS", "1")),
            ready_seconds=float(os.getenv("PIPECYCLE_READY_SECONDS", "1")),
            null_seconds=float(os.getenv("PIPECYCLE_NULL_SECONDS", "1")),
            ack_timeout=float(os.getenv("PIPECYCLE_ACK_TIMEOUT", "3")),
            report_interval=float(os.getenv("PIPECYCLE_REPORT_INTERVAL", "5")),
            notification_interval=float(os.getenv("PIPECYCLE_NOTIFICATION_INTERVAL", "0.1")),
            mem_watch_interval=float(os.getenv("PIPECYCLE_MEM_WATCH", "0")),
            exit_on_error=_env_bool("PIPECYCLE_EXIT_ON_ERROR", "false"),
            frontend_config=os.getenv(
                "PIPECYCLE_FRONTEND_CONFIG", "/usr/bin/frontend_config_example.json"
            ),
            encoder_config=os.getenv(
                "PIPECYCLE_ENCODER_CONFIG", "/usr/bin/encoder_config_example.json"
            ),
            raw_stream_ids=_env_list("PIPECYCLE_RAW_STREAMS"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE"),
        )

    def validate(self) -> None:
        """Validate the configuration.

        :raises ConfigurationError: If any field holds an unusable value.
        """
        if self.phase_mode not in (PHASE_MODE_BASIC, PHASE_MODE_EXTENDED):
            phase_error = f"--phase must be {PHASE_MODE_BASIC} or {PHASE_MODE_EXTENDED}"
            raise ConfigurationError(phase_error, field="phase_mode")
        if not self.udp_host:
            raise ConfigurationError("UDP host is required", field="udp_host")
        _check_port(self.udp_port, "udp_port")
        ports = self.stream_ports()
        for port in ports:
            _check_port(port, "encoder_streams")
        if len(set(ports)) != len(ports):
            raise ConfigurationError("Encoder streams share a UDP port", field="encoder_streams")

        dwells = {
            "playing_seconds": self.playing_seconds,
            "paused_seconds": self.paused_seconds,
            "ready_seconds": self.ready_seconds,
            "null_seconds": self.null_seconds,
            "report_interval": self.report_interval,
            "notification_interval": self.notification_interval,
        }
        for name, value in dwells.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}", field=name)
        if self.ack_timeout < 0:
            raise ConfigurationError("ack_timeout must not be negative", field="ack_timeout")
        if self.mem_watch_interval < 0:
            raise ConfigurationError(
                "mem_watch_interval must not be negative", field="mem_watch_interval"
            )

        stream_ids = [stream.stream_id for stream in self.encoder_streams]
        if len(set(stream_ids)) != len(stream_ids):
            raise ConfigurationError("Duplicate encoder stream id", field="encoder_streams")


@dataclass
class SupervisorConfig:
    """Configuration for the supervising process."""

    argv: list[str] = field(default_factory=list)
    args_file: str | None = None
    poll_interval: float = 1.0
    grace_seconds: float = 5.0
    reconfigure_hook: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> "SupervisorConfig":
        """Create config from environment variables."""
        return cls(
            args_file=os.getenv("PIPECYCLE_ARGS_FILE") or None,
            poll_interval=float(os.getenv("PIPECYCLE_POLL_INTERVAL", "1")),
            grace_seconds=float(os.getenv("PIPECYCLE_GRACE_SECONDS", "5")),
            reconfigure_hook=os.getenv("PIPECYCLE_RECONFIGURE_HOOK") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE"),
        )

    def validate(self) -> None:
        """Validate the configuration.

        :raises ConfigurationError: If neither a command nor an args file is
            given, or the timing values are unusable.
        """
        if not self.argv and not self.args_file:
            raise ConfigurationError(
                "A child command or an args file is required", field="argv"
            )
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive", field="poll_interval")
        if self.grace_seconds < 0:
            raise ConfigurationError(
                "grace_seconds must not be negative", field="grace_seconds"
            )
