"""Module deployers for Shipyard."""

from __future__ import annotations

from collections.abc import Mapping

from shipyard.deploy.deployers.base import BaseDeployer
from shipyard.deploy.deployers.serverless import ServerlessDeployer, extract_endpoints
from shipyard.deploy.policy import Fingerprinter
from shipyard.deploy.revision import RevisionResolver
from shipyard.lib.errors import DeploymentError
from shipyard.models.deployment import StageConfig


def create_deployer(
    stage: str,
    stages: Mapping[str, StageConfig],
    revision_resolver: RevisionResolver,
    fingerprinter: Fingerprinter,
    command: str = "serverless",
    env: Mapping[str, str] | None = None,
) -> BaseDeployer:
    """Create the deployer for a configured stage."""
    stage_config = stages.get(stage)
    if stage_config is None:
        raise DeploymentError(
            operation="deploy",
            message=(
                f"Unsupported stage: {stage}. "
                f"Valid stages are: {', '.join(stages)}"
            ),
        )
    return ServerlessDeployer(
        stage=stage,
        stage_config=stage_config,
        revision_resolver=revision_resolver,
        fingerprinter=fingerprinter,
        command=command,
        env=env,
    )


__all__ = ["BaseDeployer", "ServerlessDeployer", "create_deployer", "extract_endpoints"]
