"""Base interface for module deployers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shipyard.models.deployment import DeployOutcome, Module


class BaseDeployer(ABC):
    """Abstract base class for per-module deployers.

    Implementations must not raise for ordinary deploy failures; they return
    a failed DeployOutcome instead so sibling deployments are unaffected.
    """

    @property
    @abstractmethod
    def environment(self) -> str:
        """Stage this deployer targets."""

    @abstractmethod
    async def deploy(self, module: Module) -> DeployOutcome:
        """Deploy one module and describe the result.

        Args:
            module: Module to deploy.

        Returns:
            DeployOutcome with endpoints on success, or a categorized error.
        """

    async def __call__(self, module: Module) -> DeployOutcome:
        """Allow a deployer to be used directly as a deploy action."""
        return await self.deploy(module)
