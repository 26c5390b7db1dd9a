"""Enumerations for CLI exit codes."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Well-known exit codes enforced across the CLI."""

    OK = 0
    # 1 stays reserved for unhandled exceptions (Python tracebacks).
    USAGE = 2
    STORE_COMMIT = 3
    CONSOLE = 4
    WEBSERVER = 5
    CONFIG = 6
    RENEWAL = 7
