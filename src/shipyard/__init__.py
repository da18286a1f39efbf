"""Shipyard: change-aware deployment of multi-module serverless workspaces."""

__version__ = "0.1.0"
