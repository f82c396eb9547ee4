# pyright: strict
"""Exception hierarchy for the pipeline aging controller and supervisor.

Expected runtime outcomes (transition timeouts, partial branch links) are not
exceptions; they are returned as values such as ``StateAck`` and
``AttachOutcome``. The exceptions below cover the cases where a caller has to
stop what it is doing.
"""

from __future__ import annotations


class PipecycleError(Exception):
    """Base exception for pipecycle errors."""


class ConfigurationError(PipecycleError, ValueError):
    """Invalid configuration or command-line arguments."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize configuration error with the offending field name."""
        super().__init__(message)
        self.field = field


class ConstructionError(PipecycleError):
    """A pipeline instance could not be built."""

    def __init__(self, message: str, description: str | None = None) -> None:
        """Initialize construction error.

        Args:
            message: Human-readable reason reported by the engine.
            description: The pipeline description that failed to build, if any.

        """
        super().__init__(message)
        self.description = description


class EngineError(PipecycleError):
    """An engine call failed in a way the caller did not expect."""

    def __init__(self, message: str, operation: str) -> None:
        """Initialize engine error with the failed operation name."""
        super().__init__(message)
        self.operation = operation


class SpawnError(PipecycleError):
    """The supervised child process could not be started."""

    def __init__(self, message: str, argv: list[str] | None = None) -> None:
        """Initialize spawn error with the argv that was attempted."""
        super().__init__(message)
        self.argv = list(argv or [])
