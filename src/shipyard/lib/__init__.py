"""Shared utilities and error handling for Shipyard."""

from shipyard.lib.errors import (
    ConfigError,
    DeploymentError,
    PublishError,
    RegistryError,
    ShipyardError,
)

__all__ = [
    "ShipyardError",
    "ConfigError",
    "DeploymentError",
    "RegistryError",
    "PublishError",
]
