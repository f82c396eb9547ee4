# pyright: strict
"""Child process supervision driven by relayed signals."""

from __future__ import annotations

import shlex
import signal
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from pipecycle.errors import ConfigurationError, SpawnError

from .args_file import load_launch_spec
from .signals import SupervisorSignal

if TYPE_CHECKING:
    from pipecycle.models import LaunchSpec, SupervisorConfig

    from .signals import SignalCell


class ChildProcess(Protocol):
    """The part of ``subprocess.Popen`` the supervisor uses."""

    @property
    def pid(self) -> int:
        """Process id."""
        ...

    def poll(self) -> int | None:
        """Exit status if the child has exited, without blocking."""
        ...

    def send_signal(self, sig: int) -> None:
        """Deliver ``sig`` to the child."""
        ...

    def wait(self, timeout: float | None = None) -> int:
        """Block until exit, raising ``subprocess.TimeoutExpired`` on timeout."""
        ...

    def kill(self) -> None:
        """SIGKILL the child."""
        ...


type ProcessFactory = Callable[[list[str]], ChildProcess]
type HookRunner = Callable[[str], int]


def popen_child(argv: list[str]) -> ChildProcess:
    """Start the child with inherited stdio.

    Raises:
        SpawnError: If the executable cannot be started.

    """
    try:
        return subprocess.Popen(argv)
    except OSError as e:
        raise SpawnError(f"Cannot start {argv[0]}: {e.strerror or e}", argv) from e


def run_hook(command: str) -> int:
    """Run the reconfigure hook to completion and return its exit status."""
    return subprocess.run(shlex.split(command), check=False).returncode


class SupervisorState(Enum):
    """Where the supervisor is in the child's life."""

    IDLE = "idle"
    """No child; waiting for a reconfigure request."""

    RUNNING = "running"
    AWAITING_EXIT = "awaiting_exit"
    """The child was interrupted and has not exited yet."""

    STOPPED = "stopped"


@dataclass
class ChildRecord:
    """One spawned child."""

    pid: int
    argv: list[str]
    started_at: float = field(default_factory=time.monotonic)
    interrupted: bool = False
    returncode: int | None = None


class ProcessSupervisor:
    """Spawns the controller, polls it and turns signal requests into actions.

    Nothing here runs inside a signal handler. Each poll takes at most one
    request from the ``SignalCell`` and acts on it:

    * reconfigure while running: interrupt the child once, wait for it, run
      the reconfigure hook, re-read the args file and spawn exactly once
    * interrupt: interrupt the child, wait for it and stop with status 0
    * terminate: interrupt the child, give it ``grace_seconds``, kill it if it
      is still alive, and stop for good

    A child that exits on its own leaves the supervisor idle when an args
    file is in use (the next reconfigure spawns again) and stops it with the
    child's status otherwise.
    """

    def __init__(
        self,
        launch: LaunchSpec,
        cell: SignalCell,
        *,
        poll_interval: float = 1.0,
        grace_seconds: float = 5.0,
        reconfigure_hook: str | None = None,
        process_factory: ProcessFactory = popen_child,
        hook_runner: HookRunner = run_hook,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize an idle supervisor.

        Args:
            launch: How to start the child
            cell: Where signal requests are picked up
            poll_interval: Seconds between polls
            grace_seconds: How long a terminated child may take to exit
            reconfigure_hook: Command run between child exit and respawn
            process_factory: Starts a child from an argument vector
            hook_runner: Runs the reconfigure hook
            sleep: Blocks between polls

        """
        self.launch = launch
        self._cell = cell
        self.poll_interval = poll_interval
        self.grace_seconds = grace_seconds
        self.reconfigure_hook = reconfigure_hook
        self._process_factory = process_factory
        self._hook_runner = hook_runner
        self._sleep = sleep

        self.state = SupervisorState.IDLE
        self.exit_code: int | None = None
        self.child: ChildRecord | None = None
        self.history: list[ChildRecord] = []
        self.spawns = 0
        self.interrupts_sent = 0
        self._process: ChildProcess | None = None
        self._respawn_after_exit = False

    @classmethod
    def from_config(
        cls,
        config: SupervisorConfig,
        cell: SignalCell,
        *,
        process_factory: ProcessFactory = popen_child,
        hook_runner: HookRunner = run_hook,
        sleep: Callable[[float], None] = time.sleep,
    ) -> ProcessSupervisor:
        """Create a supervisor from validated configuration.

        Raises:
            ConfigurationError: If no launch argument vector can be resolved.

        """
        launch = load_launch_spec(config.argv, config.args_file)
        return cls(
            launch,
            cell,
            poll_interval=config.poll_interval,
            grace_seconds=config.grace_seconds,
            reconfigure_hook=config.reconfigure_hook,
            process_factory=process_factory,
            hook_runner=hook_runner,
            sleep=sleep,
        )

    @property
    def uses_args_file(self) -> bool:
        """Whether the launch arguments are re-read before each respawn."""
        return self.launch.args_file is not None

    def start(self) -> None:
        """Spawn the first child."""
        logger.info(
            "Supervisor started",
            program=self.launch.program,
            source=self.launch.source,
            poll_interval=self.poll_interval,
        )
        self._spawn()

    def run(self) -> int:
        """Spawn the child and poll until stopped. Returns the exit status."""
        self.start()
        while self.state != SupervisorState.STOPPED:
            self.step()
            if self.state != SupervisorState.STOPPED:
                self._sleep(self.poll_interval)
        return self.exit_code if self.exit_code is not None else 0

    def step(self) -> None:
        """One poll: pick up a request, check the child, act."""
        request = self._cell.take()
        if self.state == SupervisorState.STOPPED:
            return
        if request == SupervisorSignal.TERMINATE:
            self._terminate()
            return

        if self.state == SupervisorState.IDLE:
            if request == SupervisorSignal.INTERRUPT:
                self._stop(0, "interrupt while idle")
            elif request == SupervisorSignal.RECONFIGURE:
                self._reconfigure_and_respawn()
            return

        if self._process is None:
            raise RuntimeError(f"No child process in state {self.state.value}")
        returncode = self._process.poll()
        if returncode is not None:
            self._on_exit(returncode, request)
            return

        if request is None:
            return
        if self.state == SupervisorState.RUNNING:
            self._interrupt(respawn=request == SupervisorSignal.RECONFIGURE)
        elif request == SupervisorSignal.INTERRUPT:
            # Already interrupted for a restart; just skip the respawn
            self._respawn_after_exit = False
            logger.info("Interrupt while child is exiting, will not respawn")
        else:
            logger.debug("Reconfigure already in progress", pid=self._process.pid)

    def _spawn(self) -> None:
        argv = list(self.launch.argv)
        try:
            process = self._process_factory(argv)
        except SpawnError as e:
            logger.error(
                "Failed to spawn child",
                program=argv[0],
                error=str(e),
                error_type=type(e).__name__,
            )
            self._process = None
            self.child = None
            if self.uses_args_file:
                self.state = SupervisorState.IDLE
                logger.info("Waiting for reconfigure signal")
            else:
                self._stop(1, "spawn failure")
            return

        self._process = process
        self.child = ChildRecord(pid=process.pid, argv=argv)
        self.history.append(self.child)
        self.spawns += 1
        self._respawn_after_exit = False
        self.state = SupervisorState.RUNNING
        logger.info("Child started", pid=process.pid, spawn=self.spawns, argv=shlex.join(argv))

    def _interrupt(self, *, respawn: bool) -> None:
        if self._process is None or self.child is None:
            return
        logger.info(
            "Interrupting child",
            pid=self.child.pid,
            reason="reconfigure" if respawn else "interrupt",
        )
        self._send_interrupt()
        self._respawn_after_exit = respawn
        self.state = SupervisorState.AWAITING_EXIT

    def _send_interrupt(self) -> None:
        if self._process is None or self.child is None:
            return
        try:
            self._process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            logger.debug("Child already gone", pid=self.child.pid)
        self.child.interrupted = True
        self.interrupts_sent += 1

    def _on_exit(self, returncode: int, request: SupervisorSignal | None) -> None:
        self._reap(returncode)
        if self.state == SupervisorState.AWAITING_EXIT:
            if self._respawn_after_exit:
                self._reconfigure_and_respawn()
            else:
                self._stop(0, "child interrupted")
            return

        if request == SupervisorSignal.INTERRUPT:
            self._stop(0, "interrupt after child exit")
            return
        if request == SupervisorSignal.RECONFIGURE:
            logger.info("Reconfigure arrived as the child exited on its own, not respawning")
        if self.uses_args_file:
            self.state = SupervisorState.IDLE
            logger.info("Child exited on its own, waiting for reconfigure signal")
        else:
            self._stop(returncode, "child exited")

    def _reap(self, returncode: int) -> None:
        self._process = None
        if self.child is not None:
            self.child.returncode = returncode
            logger.info(
                "Child exited",
                pid=self.child.pid,
                returncode=returncode,
                interrupted=self.child.interrupted,
                runtime=round(time.monotonic() - self.child.started_at, 1),
            )

    def _reconfigure_and_respawn(self) -> None:
        if self.reconfigure_hook:
            try:
                status = self._hook_runner(self.reconfigure_hook)
            except (OSError, ValueError) as e:
                logger.error("Reconfigure hook failed to run", hook=self.reconfigure_hook, error=str(e))
            else:
                log = logger.info if status == 0 else logger.warning
                log("Reconfigure hook finished", hook=self.reconfigure_hook, status=status)

        if self.launch.args_file is not None:
            try:
                self.launch = load_launch_spec([], self.launch.args_file)
            except ConfigurationError as e:
                logger.error("Cannot reload args file", args_file=self.launch.args_file, error=str(e))
                self.state = SupervisorState.IDLE
                return
            logger.info("Args file reloaded", args_file=self.launch.args_file, argc=len(self.launch.argv))
        self._spawn()

    def _terminate(self) -> None:
        if self._process is not None and self._process.poll() is None:
            if self.child is not None and not self.child.interrupted:
                self._send_interrupt()
            try:
                returncode = self._process.wait(timeout=self.grace_seconds)
            except subprocess.TimeoutExpired:
                logger.warning(
                    "Child ignored interrupt, killing",
                    pid=self._process.pid,
                    grace_seconds=self.grace_seconds,
                )
                self._process.kill()
                returncode = self._process.wait()
            self._reap(returncode)
        elif self._process is not None:
            self._reap(self._process.poll() or 0)
        self._stop(0, "terminate")

    def _stop(self, code: int, reason: str) -> None:
        self.state = SupervisorState.STOPPED
        self.exit_code = code
        logger.info("Supervisor stopping", reason=reason, exit_code=code, spawns=self.spawns)
