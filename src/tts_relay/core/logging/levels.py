"""
Numeric log levels and their mapping onto Python logging levels.

    1 = MINIMAL  -> logging.WARNING
    2 = NORMAL   -> logging.INFO
    3 = VERBOSE  -> logging.DEBUG
    4 = DEBUG    -> logging.DEBUG - 5
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Verbosity levels used by the relay's log helpers."""
    MINIMAL = 1  # Startup, shutdown, failures
    NORMAL = 2   # Request lifecycle (default)
    VERBOSE = 3  # Per-window timing
    DEBUG = 4    # Credential state, full text


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

LEVEL_NAMES = {
    1: "MINIMAL",
    2: "NORMAL",
    3: "VERBOSE",
    4: "DEBUG",
}

_NAME_TO_LEVEL = {
    "MINIMAL": LogLevel.MINIMAL,
    "NORMAL": LogLevel.NORMAL,
    "VERBOSE": LogLevel.VERBOSE,
    "DEBUG": LogLevel.DEBUG,
    "TRACE": LogLevel.DEBUG,
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
    "1": LogLevel.MINIMAL,
    "2": LogLevel.NORMAL,
    "3": LogLevel.VERBOSE,
    "4": LogLevel.DEBUG,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Convert an int, name or LogLevel to a LogLevel.

    Integers 1-4 are taken as-is; larger integers are read as Python
    logging levels. Anything unparseable falls back to NORMAL.

    Examples:
        >>> coerce_level("verbose")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG

    if isinstance(value, str):
        return _NAME_TO_LEVEL.get(value.upper().strip(), LogLevel.NORMAL)

    return LogLevel.NORMAL
