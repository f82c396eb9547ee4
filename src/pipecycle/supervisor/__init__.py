# pyright: strict
"""Out-of-process supervisor for the aging controller."""

from __future__ import annotations

from .args_file import load_launch_spec, parse_args_text, read_args_file
from .process import ChildProcess, ChildRecord, ProcessSupervisor, SupervisorState
from .signals import SignalCell, SupervisorSignal

__all__ = [
    "ChildProcess",
    "ChildRecord",
    "ProcessSupervisor",
    "SignalCell",
    "SupervisorSignal",
    "SupervisorState",
    "load_launch_spec",
    "parse_args_text",
    "read_args_file",
]
