"""Pytest configuration and shared fixtures for Shipyard tests."""

import logging
from collections.abc import Generator
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def _isolate_shipyard_logging() -> Generator[None, None, None]:
    """Restore the shipyard logger after CLI tests reconfigure it.

    CliRunner swaps sys.stderr per invocation, so handlers installed by
    setup_logging would otherwise point at a closed stream.
    """
    root = logging.getLogger("shipyard")
    handlers = list(root.handlers)
    level, propagate = root.level, root.propagate
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    root.propagate = propagate


# Configure pytest
def pytest_configure(config: Any) -> None:
    """Configure pytest with marker options."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests",
    )
