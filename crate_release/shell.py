"""Styled console output in the manner of cargo's status messages."""

from __future__ import annotations

import enum
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, TextIO

_logger = logging.getLogger(__name__)

_RESET = "\x1b[0m"


class Color(enum.Enum):
    """Terminal foreground colours, valued by their ANSI codes."""

    BLACK = 30
    RED = 31
    GREEN = 32
    YELLOW = 33
    BLUE = 34
    MAGENTA = 35
    CYAN = 36
    WHITE = 37


@dataclass(frozen=True)
class ColorSpec:
    """How a fragment of text is styled."""

    fg: Color | None = None
    bold: bool = False


def _sgr(spec: ColorSpec) -> str:
    codes = ["0"]
    if spec.bold:
        codes.append("1")
    if spec.fg is not None:
        codes.append(str(spec.fg.value))
    return f"\x1b[{';'.join(codes)}m"


def _colorize(stream: TextIO) -> bool:
    """Decide whether to emit colour codes on ``stream``."""
    force = os.environ.get("CLICOLOR_FORCE")
    if force and force != "0":
        return True
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CLICOLOR") == "0":
        return False
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        return False


def _styled(text: str, spec: ColorSpec, colorize: bool) -> str:
    if not colorize:
        return text
    return f"{_sgr(spec)}{text}{_RESET}"


def _display(message: Any) -> str:
    """Render a message; exceptions show their chain of causes."""
    if isinstance(message, BaseException):
        parts = []
        current: BaseException | None = message
        while current is not None:
            parts.append(str(current))
            current = current.__cause__
        return ": ".join(parts)
    return str(message)


def _console_println(text: str, color: Color | None, bold: bool) -> None:
    out = sys.stdout
    out.write(_styled(text, ColorSpec(color, bold), _colorize(out)) + "\n")


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on the console; only ``y`` counts as yes."""
    _console_println(f"{prompt} [y/N] ", None, True)
    sys.stdout.flush()
    answer = sys.stdin.readline()
    return answer.strip().lower() == "y"


def print_message(status: str, message: Any, color: Color, justified: bool) -> None:
    """Print a message with a coloured title to stderr."""
    out = sys.stderr
    colorize = _colorize(out)
    title_spec = ColorSpec(color, True)
    if justified:
        title = _styled(f"{status:>12}", title_spec, colorize)
    else:
        title = _styled(status, title_spec, colorize) + _styled(
            ":", ColorSpec(bold=True), colorize
        )
    out.write(f"{title} {_display(message)}\n")
    out.flush()


def status(action: str, message: Any) -> None:
    """Print a styled action message."""
    print_message(action, message, Color.GREEN, True)


def error(message: Any) -> None:
    """Print a styled error message."""
    print_message("error", message, Color.RED, False)


def warn(message: Any) -> None:
    """Print a styled warning message."""
    print_message("warning", message, Color.YELLOW, False)


def note(message: Any) -> None:
    """Print a styled note."""
    print_message("note", message, Color.CYAN, False)


def log(level: int, message: Any) -> None:
    """Report a message at a logging level; debug levels go to the logger."""
    if level >= logging.ERROR:
        error(message)
    elif level >= logging.WARNING:
        warn(message)
    elif level >= logging.INFO:
        note(message)
    else:
        _logger.log(level, "%s", _display(message))


def write_stderr(fragment: Any, spec: ColorSpec) -> None:
    """Write part of a line to stderr with the given style."""
    out = sys.stderr
    out.write(_styled(str(fragment), spec, _colorize(out)))
    out.flush()