# pyright: strict
"""Reads the child's argument vector from a shell-style args file."""

from __future__ import annotations

import re
import shlex
from pathlib import Path

from pipecycle.errors import ConfigurationError
from pipecycle.models import LaunchSpec

_STRAY_BACKSLASH = re.compile(r"(?<!\S)\\(?!\S)")


def parse_args_text(text: str) -> list[str]:
    """Split args file content into an argument vector.

    Shell quoting and ``#`` comments are honoured. Backslash line
    continuations are joined, and stray ``\\`` tokens are dropped.
    """
    joined = text.replace("\\\r\n", " ").replace("\\\n", " ")
    # A backslash standing alone would otherwise escape the following space
    joined = _STRAY_BACKSLASH.sub(" ", joined)
    return shlex.split(joined, comments=True)


def read_args_file(path: str | Path) -> list[str]:
    """Read and split an args file.

    Raises:
        ConfigurationError: If the file cannot be read, is malformed or
            holds no arguments.

    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        read_error = f"Cannot read args file {path}: {e.strerror or e}"
        raise ConfigurationError(read_error, field="args_file") from e
    try:
        argv = parse_args_text(text)
    except ValueError as e:
        parse_error = f"Malformed args file {path}: {e}"
        raise ConfigurationError(parse_error, field="args_file") from e
    if not argv:
        raise ConfigurationError(f"Args file {path} holds no arguments", field="args_file")
    return argv


def load_launch_spec(argv: list[str], args_file: str | None) -> LaunchSpec:
    """Resolve how to launch the child.

    An args file wins over a command line; the command line is the fallback
    when no args file is given.

    Raises:
        ConfigurationError: If neither source yields an argument vector.

    """
    if args_file:
        return LaunchSpec(argv=read_args_file(args_file), source="args_file", args_file=args_file)
    if not argv:
        raise ConfigurationError("No child command given", field="argv")
    return LaunchSpec(argv=list(argv), source="command_line")
