"""Utility helpers shared by the controller and the supervisor."""

from .logging_config import LoggingConfig

__all__ = [
    "LoggingConfig",
]
