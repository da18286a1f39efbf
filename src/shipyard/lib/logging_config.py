"""Logging configuration for Shipyard.

Every module obtains its logger through ``get_logger(__name__)`` so that all
Shipyard loggers live under the ``shipyard`` namespace and can be configured
in one place by the CLI.
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER_NAME = "shipyard"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Return a logger scoped under the shipyard namespace.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        Configured ``logging.Logger`` instance
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure console logging for CLI commands.

    Args:
        verbose: Emit DEBUG level records
        quiet: Only emit ERROR level records (takes precedence over verbose)
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    # Re-running setup (e.g. in tests) must not stack handlers
    for handler in list(root.handlers):
        if getattr(handler, "_shipyard_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._shipyard_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.propagate = False
