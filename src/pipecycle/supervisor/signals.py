# pyright: strict
"""Signal-to-request relay for the supervisor's polling loop."""

from __future__ import annotations

import signal
from collections import deque
from enum import Enum
from types import FrameType
from typing import Any


class SupervisorSignal(Enum):
    """What an operating-system signal asks the supervisor to do."""

    RECONFIGURE = "reconfigure"
    """Restart the child with freshly read arguments (SIGUSR1)."""

    INTERRUPT = "interrupt"
    """Stop the child gracefully and exit (SIGINT)."""

    TERMINATE = "terminate"
    """Stop now, never respawn (SIGTERM)."""


SIGNAL_REQUESTS: dict[int, SupervisorSignal] = {
    signal.SIGUSR1: SupervisorSignal.RECONFIGURE,
    signal.SIGINT: SupervisorSignal.INTERRUPT,
    signal.SIGTERM: SupervisorSignal.TERMINATE,
}

# Highest first
_PRECEDENCE = (
    SupervisorSignal.TERMINATE,
    SupervisorSignal.INTERRUPT,
    SupervisorSignal.RECONFIGURE,
)


class SignalCell:
    """Pending signal requests, filled by handlers and drained by the loop.

    The handler does nothing but append to a deque, which is safe against
    the interrupted loop code without a lock. The loop takes at most one
    request per poll: the most severe of everything that arrived since the
    last poll. Repeated requests of one kind collapse into one. Once a
    terminate request has been taken it stays latched.
    """

    def __init__(self) -> None:
        """Initialize with nothing pending."""
        self._pending: deque[SupervisorSignal] = deque()
        self._terminated = False
        self._previous: dict[int, Any] = {}

    @property
    def terminated(self) -> bool:
        """Whether a terminate request has been taken."""
        return self._terminated

    def post(self, request: SupervisorSignal) -> None:
        """Queue a request. The only thing a signal handler does."""
        self._pending.append(request)

    def handle_signal(self, signum: int, _frame: FrameType | None) -> None:
        """``signal.signal`` handler."""
        request = SIGNAL_REQUESTS.get(signum)
        if request is not None:
            self._pending.append(request)

    def install(self) -> None:
        """Route SIGUSR1, SIGINT and SIGTERM to this cell."""
        for signum in SIGNAL_REQUESTS:
            self._previous[signum] = signal.signal(signum, self.handle_signal)

    def restore(self) -> None:
        """Put back the handlers that were active before ``install``."""
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)
        self._previous.clear()

    def take(self) -> SupervisorSignal | None:
        """The most severe pending request, or None.

        Everything queued is consumed. After a terminate request this keeps
        returning TERMINATE.
        """
        arrived: set[SupervisorSignal] = set()
        while self._pending:
            arrived.add(self._pending.popleft())
        if SupervisorSignal.TERMINATE in arrived:
            self._terminated = True
        if self._terminated:
            return SupervisorSignal.TERMINATE
        for request in _PRECEDENCE:
            if request in arrived:
                return request
        return None
