"""Centralized loguru configuration for the controller and the supervisor.

The supervisor and its child write to the same terminal, so every line is
tagged with the component name and process id.
"""

import os
import sys
from contextlib import suppress
from typing import Any

from loguru import logger

FILE_ROTATION = "10 MB"
FILE_RETENTION = "7 days"


class LoggingConfig:
    """Process-wide logging setup shared by every pipecycle entry point."""

    _configured = False
    _level = "INFO"
    _file: str | None = None
    _component = "pipecycle"

    @classmethod
    def configure(
        cls, log_level: str, log_file: str | None = None, component: str = "pipecycle"
    ) -> None:
        """Configure logging for the whole process.

        Console output goes to stderr so a supervising process never competes
        with the child for stdout. Calling this more than once is a no-op
        until ``reset()`` is called.

        Args:
            log_level: The logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file path, rotated and pruned by loguru
            component: Tag written on every line (``pipecycle`` or ``supervisor``)

        """
        if cls._configured:
            return

        cls._level = log_level.upper()
        cls._file = log_file
        cls._component = component

        logger.remove()
        logger.add(sys.stderr, level=cls._level, format=cls._console_format)
        if log_file:
            logger.add(
                log_file,
                level=cls._level,
                format=cls._file_format,
                rotation=FILE_ROTATION,
                retention=FILE_RETENTION,
            )

        cls._configured = True
        logger.debug(
            "Logging configured",
            level=cls._level,
            log_file=log_file or "none",
            component=component,
        )

    @staticmethod
    def _escape(value: Any) -> str:
        """Double braces so loguru does not read them as format fields."""
        try:
            text = str(value)
        except Exception:  # noqa: BLE001
            return "<unprintable>"
        return text.replace("{", "{{").replace("}", "}}")

    @classmethod
    def _render(cls, record: Any, *, colored: bool) -> str:
        try:
            stamp = record["time"].strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
            tag = f"{cls._component}[{os.getpid()}]"
            level = f"{record['level'].name: <8}"
            where = f"{record['name']}:{record['function']}:{record['line']}"
            message = cls._escape(record["message"])
            extras = [
                (cls._escape(key), cls._escape(value))
                for key, value in record.get("extra", {}).items()
            ]
        except (TypeError, ValueError, KeyError, AttributeError):
            return "LOG | <formatting_error> | {message}\n"

        if colored:
            parts = [
                f"<green>{stamp}</green>",
                f"<blue>{tag}</blue>",
                f"<level>{level}</level>",
                f"<cyan>{where}</cyan>",
                f"<level>{message}</level>",
            ]
            parts.extend(f"<cyan>{key}</cyan>=<magenta>{value}</magenta>" for key, value in extras)
        else:
            parts = [stamp, tag, level, where, message]
            parts.extend(f"{key}={value}" for key, value in extras)
        return " | ".join(parts) + "\n"

    @classmethod
    def _console_format(cls, record: Any) -> str:
        return cls._render(record, colored=True)

    @classmethod
    def _file_format(cls, record: Any) -> str:
        return cls._render(record, colored=False)

    @classmethod
    def ensure_configured(cls) -> None:
        """Fall back to the defaults if no entry point configured logging yet."""
        if not cls._configured:
            cls.configure(cls._level, cls._file, cls._component)

    @classmethod
    def is_configured(cls) -> bool:
        """Whether ``configure`` has run since the last reset."""
        return cls._configured

    @classmethod
    def reset(cls) -> None:
        """Forget the configuration and remove every sink. Used by tests."""
        cls._configured = False
        cls._level = "INFO"
        cls._file = None
        cls._component = "pipecycle"
        with suppress(ValueError):
            logger.remove()
