"""ANSI colors for the deployment report.

Color is used only when the output stream is an interactive terminal and the
``NO_COLOR`` convention (https://no-color.org) is not in effect, so CI logs
and redirected reports stay plain text.
"""

import os
import sys
from typing import TextIO


class ANSIColors:
    """ANSI escape codes used by the report.

    Attributes:
        GREEN: Successful deployments.
        RED: Failed deployments.
        YELLOW: Warnings and skipped modules.
        BLUE: Details.
        CYAN: Banners and endpoints.
        RESET: Restore the default terminal color.
    """

    GREEN = "\033[92m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    RESET = "\033[0m"


def is_tty(stream: TextIO | None = None) -> bool:
    """Return True if the stream (stdout by default) is a terminal."""
    stream = stream if stream is not None else sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def supports_color(stream: TextIO | None = None) -> bool:
    """Return True when colored output should be emitted on the stream."""
    if os.environ.get("NO_COLOR"):
        return False
    return is_tty(stream)


def colorize(text: str, color: str, force_tty: bool | None = None) -> str:
    """Wrap text in a color code when color output is supported.

    Args:
        text: Text to color.
        color: ANSI code, e.g. ``ANSIColors.GREEN``.
        force_tty: Force color on or off; None auto-detects.

    Returns:
        Colored or plain text.
    """
    use_colors = force_tty if force_tty is not None else supports_color()
    if not use_colors:
        return text
    return f"{color}{text}{ANSIColors.RESET}"
