"""Terminal color helpers for ``format_compact`` diagnostics.

ANSI codes are emitted only when stdout is a TTY. ``NO_COLOR`` disables
them and ``FORCE_COLOR`` forces them on. Plain ``str(error)`` never
carries color codes.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "cyan": "\033[36m",
    "yellow": "\033[33m",
    "green": "\033[32m",
    "bright_red": "\033[91m",
}

ColorName = Literal["reset", "bold", "dim", "cyan", "yellow", "green", "bright_red"]

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _should_use_colors() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap ``text`` in the given ANSI colors when colors are enabled."""
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS[color] for color in colors)
    return f"{prefix}{text}{_COLORS['reset']}"


def strip_colors(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


def error_code(text: str) -> str:
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def error_line(text: str) -> str:
    return colorize(text, "bright_red")


def hint(text: str) -> str:
    return colorize(text, "green")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    if code:
        return f"{error_code(code)}: {message}"
    return message
