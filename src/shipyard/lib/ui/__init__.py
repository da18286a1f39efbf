"""Terminal output helpers used by the deployment report and the CLI."""

from shipyard.lib.ui.colors import ANSIColors, colorize, is_tty, supports_color

__all__ = [
    "ANSIColors",
    "colorize",
    "is_tty",
    "supports_color",
]
