"""Configuration and data models."""

from .branch import StreamBranch
from .config import PHASE_MODE_BASIC, PHASE_MODE_EXTENDED, CycleConfig, SupervisorConfig
from .launch import LaunchSpec

__all__ = [
    "PHASE_MODE_BASIC",
    "PHASE_MODE_EXTENDED",
    "CycleConfig",
    "LaunchSpec",
    "StreamBranch",
    "SupervisorConfig",
]
