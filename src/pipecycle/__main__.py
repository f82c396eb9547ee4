"""pipecycle - GStreamer pipeline lifecycle aging controller."""

import argparse
import asyncio
import signal
import sys
from collections.abc import Callable
from types import TracebackType
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from loguru import logger

from pipecycle import __version__
from pipecycle.errors import ConstructionError
from pipecycle.lifecycle import AsyncioScheduler, LifecycleStatsCollector
from pipecycle.lifecycle.controller import PipelineLifecycleController
from pipecycle.metrics import MetricRegistry
from pipecycle.models import PHASE_MODE_BASIC, PHASE_MODE_EXTENDED, CycleConfig, StreamBranch
from pipecycle.utils import LoggingConfig

if TYPE_CHECKING:
    from pipecycle.engine.types import ErrorNotice, PipelineEngine

type EngineFactory = Callable[[], "PipelineEngine"]

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def gstreamer_engine() -> "PipelineEngine":
    """Create the GStreamer engine; PyGObject is only imported here."""
    from pipecycle.engine.gstreamer import GstEngine  # noqa: PLC0415

    return GstEngine()


def build_parser() -> argparse.ArgumentParser:
    """Command-line flags; every flag overrides its PIPECYCLE_* variable."""
    parser = argparse.ArgumentParser(
        prog="pipecycle",
        description="Cycle a GStreamer pipeline through its states to age-test it.",
        epilog=(
            "Signals: SIGINT and SIGTERM stop the cycle, release every branch pad "
            "and destroy the pipeline before exiting."
        ),
    )
    parser.add_argument(
        "--phase",
        type=int,
        choices=(PHASE_MODE_BASIC, PHASE_MODE_EXTENDED),
        help="3: NULL -> PLAYING -> PAUSED -> NULL, 4: adds READY before NULL",
    )
    parser.add_argument("--host", dest="udp_host", help="RTP destination host")
    parser.add_argument("--port", dest="udp_port", type=int, help="RTP destination base port")
    parser.add_argument("--playing-seconds", type=float, help="Dwell in PLAYING")
    parser.add_argument("--ack-timeout", type=float, help="Longest wait for a state change")
    parser.add_argument("--report-interval", type=float, help="Frame rate report period")
    parser.add_argument(
        "--mem-watch",
        dest="mem_watch_interval",
        type=float,
        metavar="SECONDS",
        help="Log /proc/meminfo every SECONDS (0 disables)",
    )
    parser.add_argument(
        "--exit-on-error",
        action="store_true",
        default=None,
        help="Stop on the first engine error instead of aging on",
    )
    parser.add_argument("--frontend-config", help="Frontend configuration file")
    parser.add_argument(
        "--encoder-config",
        action="append",
        default=[],
        metavar="[STREAM_ID=]PATH[:PORT]",
        help=(
            "Encoder configuration. A bare PATH configures the single 4K encoder; "
            "repeat STREAM_ID=PATH[:PORT] to build one encoder per stream"
        ),
    )
    parser.add_argument(
        "--stream-id",
        action="append",
        default=[],
        help="Unencoded frontend output to terminate in a fakesink (repeatable)",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace, config: CycleConfig) -> CycleConfig:
    """Apply command-line overrides to ``config`` and validate it.

    :raises ConfigurationError: If the result is not usable.
    """
    for name in (
        "udp_host",
        "udp_port",
        "playing_seconds",
        "ack_timeout",
        "report_interval",
        "mem_watch_interval",
        "exit_on_error",
        "frontend_config",
        "log_level",
        "log_file",
    ):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    if args.phase is not None:
        config.phase_mode = args.phase

    for value in args.encoder_config:
        if "=" in value:
            config.encoder_streams.append(StreamBranch.parse(value))
        else:
            config.encoder_config = value
    config.raw_stream_ids.extend(args.stream_id)

    config.validate()
    return config


class CycleApp:
    """Runs one controller on the asyncio loop until a stop is requested."""

    def __init__(self, config: CycleConfig, engine_factory: EngineFactory = gstreamer_engine) -> None:
        """Initialize the application; nothing is built until the context is entered."""
        self.config = config
        self._engine_factory = engine_factory
        self.registry = MetricRegistry()
        self.stats = LifecycleStatsCollector(self.registry)
        self.controller: PipelineLifecycleController | None = None
        self.exit_code = EXIT_OK
        self._shutdown_event = asyncio.Event()
        self._signals: list[signal.Signals] = []

    async def __aenter__(self) -> "CycleApp":
        """Build the first pipeline instance and start cycling.

        :raises ConstructionError: If the first instance cannot be built.
        """
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self.shutdown, signum.name)
            self._signals.append(signum)

        on_error = self._escalate if self.config.exit_on_error else None
        try:
            self.controller = PipelineLifecycleController.from_config(
                self.config,
                self._engine_factory(),
                AsyncioScheduler(loop),
                stats=self.stats,
                on_error=on_error,
            )
            self.controller.start()
        except BaseException:
            self._remove_signal_handlers(loop)
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Stop the controller and remove the signal handlers."""
        if self.controller is not None:
            try:
                self.controller.shutdown()
            except Exception as cleanup_error:  # noqa: BLE001
                logger.error(
                    "Error during controller shutdown",
                    error=str(cleanup_error),
                    error_type=type(cleanup_error).__name__,
                )
        self._remove_signal_handlers(asyncio.get_running_loop())

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for signum in self._signals:
            loop.remove_signal_handler(signum)
        self._signals.clear()

    async def run(self) -> None:
        """Wait until a signal or an escalated engine error asks to stop."""
        await self._shutdown_event.wait()

    def shutdown(self, reason: str = "request") -> None:
        """Ask the run loop to stop. Safe to call repeatedly."""
        if self._shutdown_event.is_set():
            return
        logger.info("Shutdown requested", reason=reason)
        self._shutdown_event.set()

    def _escalate(self, notice: "ErrorNotice") -> None:
        self.exit_code = EXIT_FAILURE
        self.shutdown(f"engine error from {notice.source}")


async def run_app(config: CycleConfig, engine_factory: EngineFactory = gstreamer_engine) -> int:
    """Run the controller until stopped and return the process exit status."""
    try:
        async with CycleApp(config, engine_factory) as app:
            await app.run()
    except ConstructionError as e:
        logger.error(
            "Initial pipeline construction failed",
            error=str(e),
            error_type=type(e).__name__,
            stage="startup",
        )
        return EXIT_FAILURE
    return app.exit_code


def main(argv: list[str] | None = None) -> int:
    """Parse configuration, run the controller and return the exit status."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        config = config_from_args(args, CycleConfig.from_env())
    except ValueError as e:
        LoggingConfig.ensure_configured()
        logger.error(
            "Configuration error",
            error=str(e),
            error_type=type(e).__name__,
            field=getattr(e, "field", None) or "unknown",
        )
        return EXIT_USAGE

    LoggingConfig.configure(config.log_level, config.log_file)
    logger.info(
        "Starting pipecycle",
        version=__version__,
        phase_mode=config.phase_mode,
        udp_host=config.udp_host,
        udp_port=config.udp_port,
        streams=len(config.encoder_streams) or 1,
    )
    try:
        return asyncio.run(run_app(config))
    except ImportError as e:
        logger.error(
            "GStreamer bindings are not available; install pipecycle[gstreamer]",
            error=str(e),
            error_type=type(e).__name__,
        )
        return EXIT_FAILURE


def cli() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
