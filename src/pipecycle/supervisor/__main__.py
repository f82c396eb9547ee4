"""pipecycle-supervisor - keeps the aging controller running across reconfigurations."""

import argparse
import sys

from dotenv import load_dotenv
from loguru import logger

from pipecycle import __version__
from pipecycle.models import SupervisorConfig
from pipecycle.utils import LoggingConfig

from .process import ProcessSupervisor
from .signals import SignalCell

EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Command-line flags; the child command follows ``--``."""
    parser = argparse.ArgumentParser(
        prog="pipecycle-supervisor",
        description="Run a child process and restart it on SIGUSR1.",
        epilog=(
            "Signals: SIGUSR1 interrupts the child, runs the reconfigure hook, "
            "re-reads the args file and respawns. SIGINT interrupts the child and "
            "exits. SIGTERM interrupts the child, kills it after the grace period "
            "and exits for good."
        ),
    )
    parser.add_argument("--args-file", help="File holding the child command line")
    parser.add_argument("--poll-interval", type=float, help="Seconds between child polls")
    parser.add_argument("--grace-seconds", type=float, help="Wait before SIGKILL on SIGTERM")
    parser.add_argument("--reconfigure-hook", help="Command run between exit and respawn")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="-- CHILD [ARGS...]")
    return parser


def config_from_args(args: argparse.Namespace, config: SupervisorConfig) -> SupervisorConfig:
    """Apply command-line overrides to ``config`` and validate it.

    :raises ConfigurationError: If the result is not usable.
    """
    command: list[str] = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if command:
        config.argv = command
    for name in ("args_file", "poll_interval", "grace_seconds", "reconfigure_hook", "log_level", "log_file"):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    config.validate()
    return config


def main(argv: list[str] | None = None) -> int:
    """Supervise the child until stopped and return the exit status."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    cell = SignalCell()
    try:
        config = config_from_args(args, SupervisorConfig.from_env())
        LoggingConfig.configure(config.log_level, config.log_file, component="supervisor")
        supervisor = ProcessSupervisor.from_config(config, cell)
    except ValueError as e:
        LoggingConfig.configure("INFO", component="supervisor")
        logger.error(
            "Configuration error",
            error=str(e),
            error_type=type(e).__name__,
            field=getattr(e, "field", None) or "unknown",
        )
        return EXIT_USAGE

    cell.install()
    try:
        return supervisor.run()
    finally:
        cell.restore()


def cli() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
