# pyright: strict
"""Lock-free event counter shared between a streaming thread and the loop thread."""

from __future__ import annotations

import itertools


class EventCounter:
    """Monotonic count of delivered media units.

    ``increment`` is called from engine streaming threads on every buffer and
    takes no lock: advancing an ``itertools.count`` is a single C-level
    operation. Reads happen only on the loop thread. A read also advances the
    underlying count, so the reader keeps track of how many values it consumed
    and subtracts them.
    """

    def __init__(self) -> None:
        """Initialize a counter at zero."""
        self._ticks = itertools.count()
        self._reads = 0
        self._last_sample = 0

    def increment(self) -> None:
        """Count one event. Safe from any thread."""
        next(self._ticks)

    def read_total(self) -> int:
        """Events counted so far. Loop thread only; every read advances the count."""
        value = next(self._ticks) - self._reads
        self._reads += 1
        return value

    @property
    def last_sample(self) -> int:
        """Total seen by the previous ``sample_and_reset``."""
        return self._last_sample

    def sample_and_reset(self, window_seconds: float) -> float:
        """Rate over the last window, and start a new window.

        Args:
            window_seconds: Length of the window being closed.

        Returns:
            Events per second since the previous sample.

        """
        if window_seconds <= 0:
            window_error = f"window_seconds must be positive, got {window_seconds}"
            raise ValueError(window_error)
        current = self.read_total()
        delta = current - self._last_sample
        self._last_sample = current
        return delta / window_seconds
