"""
ANSI colors for console log output.

Colors are off when stdout is not a TTY, when NO_COLOR is set, or when
TTS_RELAY_NO_COLOR=1.
"""
from __future__ import annotations

import os
import sys


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


def supports_color() -> bool:
    """Whether ANSI codes should be written to stdout."""
    if os.getenv("TTS_RELAY_NO_COLOR", "0") == "1":
        return False
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False
    return True


# Rechecked by configure_logging(); tests may flip it directly.
USE_COLORS = supports_color()


def colorize(text: str, color: str) -> str:
    if not USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "WARNING": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
    "TRACE": Colors.DIM,
}


def get_tag_color(tag: str) -> str:
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)
