"""Shipyard deployment engine.

This package decides which workspace modules changed since their last
successful deployment, deploys only those in paced batches, and keeps a
per-stage record of successful deployments.
"""

from shipyard.deploy.manager import DeploymentManager, DeploymentRunResult
from shipyard.deploy.report import DeploymentSummary, aggregate, render_summary
from shipyard.deploy.state import DeploymentStateStore

__all__ = [
    "DeploymentManager",
    "DeploymentRunResult",
    "DeploymentStateStore",
    "DeploymentSummary",
    "aggregate",
    "render_summary",
]
