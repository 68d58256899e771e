"""Terminal styling for mirror output.

Colour is applied only when the target stream is a TTY, ``NO_COLOR`` is
unset and ``TERM`` is not ``dumb``; redirected output stays plain text.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

RULE_WIDTH = 60


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


STATUS_COLORS = {"OK": Colors.GREEN, "SKIP": Colors.YELLOW, "FAIL": Colors.RED}


def _supports_color(stream: TextIO | None = None) -> bool:
    target = stream or sys.stdout
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(target, "isatty", None)
    return bool(isatty and isatty())


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    if not _supports_color(stream):
        return text
    return f"{Colors.BOLD if bold else ''}{color}{text}{Colors.RESET}"


def status_label(status: str, stream: TextIO | None = None) -> str:
    """Fixed-width ``[OK   ]`` label so repository names line up."""
    padded = f"{status:<5}"
    return f"[{colorize(padded, STATUS_COLORS.get(status, Colors.BLUE), stream=stream)}]"


def _marked(symbol: str, color: str, message: str, stream: TextIO) -> None:
    print(f"{colorize(symbol, color, bold=True, stream=stream)} {message}", file=stream)


def print_error(message: str, stream: TextIO | None = None) -> None:
    _marked("✗", Colors.RED, message, stream or sys.stderr)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    _marked("⚠", Colors.YELLOW, message, stream or sys.stdout)


def print_info(message: str, stream: TextIO | None = None) -> None:
    _marked("ℹ", Colors.BLUE, message, stream or sys.stdout)


def print_header(message: str, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    print(colorize(message, Colors.CYAN, bold=True, stream=out), file=out)


def _count_color(label: str, value: str | int) -> str | None:
    if not isinstance(value, int) or value <= 0:
        return None
    return Colors.RED if label.lower().startswith("failed") else Colors.GREEN


def print_summary_box(
    title: str, items: Sequence[tuple[str, str | int]], stream: TextIO | None = None
) -> None:
    """Titled block of aligned ``label  value`` rows between two rules.

    Positive counts are green, except a positive ``Failed`` count which is red.
    """
    out = stream or sys.stdout
    width = max((len(label) for label, _ in items), default=0)
    rule = colorize("─" * RULE_WIDTH, Colors.DIM, stream=out)

    print(colorize(f"\n{title}", Colors.CYAN, bold=True, stream=out), file=out)
    print(rule, file=out)
    for label, value in items:
        color = _count_color(label, value)
        shown = colorize(str(value), color, bold=True, stream=out) if color else str(value)
        print(f"  {label.ljust(width)}  {shown}", file=out)
    print(rule, file=out)


__all__ = [
    "Colors",
    "colorize",
    "status_label",
    "print_error",
    "print_warning",
    "print_info",
    "print_header",
    "print_summary_box",
]
