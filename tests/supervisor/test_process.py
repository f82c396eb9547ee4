"""Tests for the signal-driven process supervisor."""

from __future__ import annotations

import signal
from pathlib import Path

import pytest

from pipecycle.errors import ConfigurationError
from pipecycle.models import LaunchSpec, SupervisorConfig
from pipecycle.supervisor.process import ProcessSupervisor, SupervisorState
from pipecycle.supervisor.signals import SignalCell, SupervisorSignal
from tests.doubles import FakeProcessFactory

CHILD_ARGV = ["pipecycle", "--phase", "3"]


def _supervisor(
    cell: SignalCell,
    factory: FakeProcessFactory,
    *,
    args_file: Path | None = None,
    hook_calls: list[str] | None = None,
    poll_interval: float = 1.0,
    grace_seconds: float = 5.0,
    reconfigure_hook: str | None = None,
) -> ProcessSupervisor:
    if args_file is not None:
        launch = LaunchSpec(
            argv=args_file.read_text().split(), source="args_file", args_file=str(args_file)
        )
    else:
        launch = LaunchSpec(argv=CHILD_ARGV, source="command_line")
    calls = hook_calls if hook_calls is not None else []

    def _hook(command: str) -> int:
        calls.append(command)
        return 0

    return ProcessSupervisor(
        launch,
        cell,
        process_factory=factory,
        hook_runner=_hook,
        sleep=lambda _seconds: None,
        poll_interval=poll_interval,
        grace_seconds=grace_seconds,
        reconfigure_hook=reconfigure_hook,
    )


@pytest.fixture
def args_file(tmp_path: Path) -> Path:
    """Args file holding the child command."""
    path = tmp_path / "child.args"
    path.write_text("pipecycle --phase 3\n")
    return path


class TestSupervisorStart:
    """Test cases for spawning the first child."""

    def test_start_spawns_once(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """The child is started with the launch argv and polled quietly."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor.start()
        supervisor.step()
        supervisor.step()

        assert supervisor.state == SupervisorState.RUNNING
        assert len(process_factory.children) == 1
        assert process_factory.latest.argv == CHILD_ARGV
        assert supervisor.child is not None
        assert supervisor.child.pid == 1000

    def test_spawn_failure_without_args_file(self, signal_cell: SignalCell) -> None:
        """A command-line child that cannot start stops the supervisor with 1."""
        supervisor = _supervisor(signal_cell, FakeProcessFactory(fail=True))
        supervisor.start()
        assert supervisor.state == SupervisorState.STOPPED
        assert supervisor.exit_code == 1

    def test_spawn_failure_with_args_file(self, signal_cell: SignalCell, args_file: Path) -> None:
        """With an args file the supervisor waits for a fixed file and a reconfigure."""
        factory = FakeProcessFactory(fail=True)
        supervisor = _supervisor(signal_cell, factory, args_file=args_file)
        supervisor.start()
        assert supervisor.state == SupervisorState.IDLE

        factory.fail = False
        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        assert supervisor.state == SupervisorState.RUNNING
        assert supervisor.spawns == 1

    def test_from_config(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory, args_file: Path
    ) -> None:
        """Configuration resolves the launch and timing."""
        config = SupervisorConfig(args_file=str(args_file), grace_seconds=1.0)
        supervisor = ProcessSupervisor.from_config(
            config, signal_cell, process_factory=process_factory
        )
        assert supervisor.uses_args_file
        assert supervisor.grace_seconds == 1.0
        assert supervisor.launch.argv == ["pipecycle", "--phase", "3"]

    def test_from_config_injects_collaborators(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory, args_file: Path
    ) -> None:
        """The process factory, hook runner and sleep reach the supervisor."""
        calls: list[str] = []
        sleeps: list[float] = []

        def _hook(command: str) -> int:
            calls.append(command)
            return 0

        def _sleep(seconds: float) -> None:
            sleeps.append(seconds)
            if len(sleeps) == 1:
                signal_cell.post(SupervisorSignal.RECONFIGURE)
            elif len(process_factory.children) == 2 and process_factory.latest.interrupts == 0:
                signal_cell.post(SupervisorSignal.INTERRUPT)

        config = SupervisorConfig(
            args_file=str(args_file), poll_interval=0.5, reconfigure_hook="/usr/bin/apply"
        )
        supervisor = ProcessSupervisor.from_config(
            config,
            signal_cell,
            process_factory=process_factory,
            hook_runner=_hook,
            sleep=_sleep,
        )

        assert supervisor.run() == 0
        assert len(process_factory.children) == 2
        assert calls == ["/usr/bin/apply"]
        assert set(sleeps) == {0.5}

    def test_from_config_without_command(self, signal_cell: SignalCell) -> None:
        """Nothing to launch is a configuration error."""
        with pytest.raises(ConfigurationError):
            ProcessSupervisor.from_config(SupervisorConfig(), signal_cell)


class TestSupervisorReconfigure:
    """Test cases for reconfigure requests."""

    def test_one_interrupt_one_respawn(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """Reconfigure interrupts the child once and spawns exactly one replacement."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor.start()
        first = process_factory.latest

        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        assert supervisor.state == SupervisorState.AWAITING_EXIT
        assert first.signals == [signal.SIGINT]

        supervisor.step()
        assert supervisor.state == SupervisorState.RUNNING
        assert len(process_factory.children) == 2
        assert first.returncode == 0
        assert supervisor.history[0].interrupted

    def test_burst_of_reconfigures(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """A burst between polls is a single restart."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor.start()
        for _ in range(4):
            signal_cell.post(SupervisorSignal.RECONFIGURE)

        for _ in range(5):
            supervisor.step()

        assert supervisor.interrupts_sent == 1
        assert supervisor.spawns == 2

    def test_reconfigure_while_exiting_is_ignored(self, signal_cell: SignalCell) -> None:
        """A second reconfigure during the same restart sends nothing more."""
        factory = FakeProcessFactory(ignore_interrupt=True)
        supervisor = _supervisor(signal_cell, factory)
        supervisor.start()
        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()

        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()

        assert factory.latest.interrupts == 1
        factory.latest.exit(0)
        supervisor.step()
        assert supervisor.spawns == 2

    def test_hook_runs_before_respawn(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """The reconfigure hook runs after the child exits and before the respawn."""
        calls: list[str] = []
        spawned_at_hook: list[int] = []
        supervisor = _supervisor(
            signal_cell, process_factory, reconfigure_hook="/usr/bin/apply-config --bench 2"
        )

        def _hook(command: str) -> int:
            calls.append(command)
            spawned_at_hook.append(len(process_factory.children))
            return 0

        supervisor._hook_runner = _hook  # noqa: SLF001
        supervisor.start()
        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        supervisor.step()

        assert calls == ["/usr/bin/apply-config --bench 2"]
        assert spawned_at_hook == [1]
        assert supervisor.spawns == 2

    def test_args_file_reread_on_respawn(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory, args_file: Path
    ) -> None:
        """The replacement child gets the arguments currently in the file."""
        supervisor = _supervisor(signal_cell, process_factory, args_file=args_file)
        supervisor.start()
        args_file.write_text("pipecycle --phase 4 \\\n  --playing-seconds 20\n")

        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        supervisor.step()

        assert process_factory.latest.argv == ["pipecycle", "--phase", "4", "--playing-seconds", "20"]

    def test_unreadable_args_file_goes_idle(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory, args_file: Path
    ) -> None:
        """A broken args file leaves the supervisor waiting instead of spawning."""
        supervisor = _supervisor(signal_cell, process_factory, args_file=args_file)
        supervisor.start()
        args_file.unlink()

        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        supervisor.step()

        assert supervisor.state == SupervisorState.IDLE
        assert supervisor.spawns == 1


class TestSupervisorInterrupt:
    """Test cases for interrupt requests."""

    def test_interrupt_stops_with_zero(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """The child is interrupted and the supervisor exits 0 without respawning."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor.start()
        signal_cell.post(SupervisorSignal.INTERRUPT)
        supervisor.step()
        supervisor.step()

        assert supervisor.state == SupervisorState.STOPPED
        assert supervisor.exit_code == 0
        assert supervisor.spawns == 1

    def test_interrupt_cancels_pending_respawn(self, signal_cell: SignalCell) -> None:
        """An interrupt during a restart turns it into a stop."""
        factory = FakeProcessFactory(ignore_interrupt=True)
        supervisor = _supervisor(signal_cell, factory)
        supervisor.start()
        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        signal_cell.post(SupervisorSignal.INTERRUPT)
        supervisor.step()

        factory.latest.exit(0)
        supervisor.step()

        assert supervisor.state == SupervisorState.STOPPED
        assert supervisor.spawns == 1

    def test_interrupt_while_idle(self, signal_cell: SignalCell, args_file: Path) -> None:
        """Without a child an interrupt stops immediately."""
        supervisor = _supervisor(signal_cell, FakeProcessFactory(fail=True), args_file=args_file)
        supervisor.start()
        signal_cell.post(SupervisorSignal.INTERRUPT)
        supervisor.step()
        assert supervisor.exit_code == 0


class TestSupervisorTerminate:
    """Test cases for terminate requests."""

    def test_terminate_interrupts_then_stops(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """A cooperative child exits within the grace period."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor.start()
        signal_cell.post(SupervisorSignal.TERMINATE)
        supervisor.step()

        child = process_factory.latest
        assert child.signals == [signal.SIGINT]
        assert not child.killed
        assert supervisor.state == SupervisorState.STOPPED
        assert supervisor.exit_code == 0

    def test_stubborn_child_is_killed(self, signal_cell: SignalCell) -> None:
        """A child ignoring SIGINT is killed after the grace period."""
        factory = FakeProcessFactory(ignore_interrupt=True)
        supervisor = _supervisor(signal_cell, factory, grace_seconds=0.5)
        supervisor.start()
        signal_cell.post(SupervisorSignal.TERMINATE)
        supervisor.step()

        assert factory.latest.killed
        assert supervisor.history[0].returncode == -signal.SIGKILL
        assert supervisor.exit_code == 0

    def test_no_second_interrupt(self, signal_cell: SignalCell) -> None:
        """A child already interrupted for a restart is not interrupted again."""
        factory = FakeProcessFactory(ignore_interrupt=True)
        supervisor = _supervisor(signal_cell, factory)
        supervisor.start()
        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        signal_cell.post(SupervisorSignal.TERMINATE)
        supervisor.step()

        assert factory.latest.interrupts == 1
        assert factory.latest.killed

    def test_terminate_beats_reconfigure(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """Terminate and reconfigure in one poll means no respawn, ever."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor.start()
        signal_cell.post(SupervisorSignal.RECONFIGURE)
        signal_cell.post(SupervisorSignal.TERMINATE)
        supervisor.step()

        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()

        assert supervisor.state == SupervisorState.STOPPED
        assert supervisor.spawns == 1


class TestSupervisorChildExit:
    """Test cases for a child exiting on its own."""

    def test_exit_without_args_file_propagates_status(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """The supervisor stops with the child's exit status."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor.start()
        process_factory.latest.exit(3)
        supervisor.step()
        assert supervisor.state == SupervisorState.STOPPED
        assert supervisor.exit_code == 3

    def test_exit_with_args_file_waits(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory, args_file: Path
    ) -> None:
        """With an args file the supervisor idles until the next reconfigure."""
        supervisor = _supervisor(signal_cell, process_factory, args_file=args_file)
        supervisor.start()
        process_factory.latest.exit(1)
        supervisor.step()
        assert supervisor.state == SupervisorState.IDLE

        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()
        assert supervisor.state == SupervisorState.RUNNING
        assert supervisor.spawns == 2

    def test_racing_reconfigure_does_not_respawn(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory, args_file: Path
    ) -> None:
        """A reconfigure that arrives as the child exits on its own is dropped."""
        supervisor = _supervisor(signal_cell, process_factory, args_file=args_file)
        supervisor.start()
        process_factory.latest.exit(0)
        signal_cell.post(SupervisorSignal.RECONFIGURE)
        supervisor.step()

        assert supervisor.state == SupervisorState.IDLE
        assert supervisor.spawns == 1
        assert supervisor.interrupts_sent == 0


class TestSupervisorRun:
    """Test cases for the blocking poll loop."""

    def test_run_until_interrupt(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """run polls, sleeps and returns the stop status."""
        sleeps: list[float] = []

        def _sleep(seconds: float) -> None:
            sleeps.append(seconds)
            if len(sleeps) == 3:
                signal_cell.post(SupervisorSignal.INTERRUPT)

        supervisor = _supervisor(signal_cell, process_factory, poll_interval=0.25)
        supervisor._sleep = _sleep  # noqa: SLF001

        assert supervisor.run() == 0
        assert sleeps[0] == 0.25
        assert len(sleeps) == 4

    def test_run_returns_child_status(
        self, signal_cell: SignalCell, process_factory: FakeProcessFactory
    ) -> None:
        """Without an args file the child's own exit status is returned."""
        supervisor = _supervisor(signal_cell, process_factory)
        supervisor._sleep = lambda _seconds: process_factory.latest.exit(7)  # noqa: SLF001
        assert supervisor.run() == 7
