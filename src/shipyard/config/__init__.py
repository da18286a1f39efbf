"""Workspace configuration loading and validation."""

from shipyard.config.loader import CONFIG_FILENAME, load_workspace_config

__all__ = ["CONFIG_FILENAME", "load_workspace_config"]
