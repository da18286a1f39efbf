"""Deploy/skip decision policy.

Rules, in order:

1. ``force`` always deploys (``forced``).
2. No previous record for the stage deploys (``first-deployment``).
3. Revision-diffing stages compare the recorded revision to the current one
   and, when they differ, ask the resolver for changes under the module.
4. Content-fingerprinting stages recompute the fingerprint and compare it to
   the recorded one.

The policy only reads; re-evaluating it is always safe.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from shipyard.deploy.revision import RevisionResolver
from shipyard.lib.errors import DeploymentError
from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import (
    DeploymentDecision,
    DeployReason,
    FingerprintResult,
    Module,
    StageConfig,
)
from shipyard.models.deployment_state import DeploymentRecord

logger = get_logger(__name__)

Fingerprinter = Callable[[Path], FingerprintResult]

_UNRESOLVED = object()


class DecisionPolicy:
    """Decide which modules need deployment for a stage."""

    def __init__(
        self,
        stages: Mapping[str, StageConfig],
        revision_resolver: RevisionResolver,
        fingerprinter: Fingerprinter,
    ) -> None:
        """Initialize the policy.

        Args:
            stages: Explicit stage to strategy mapping
            revision_resolver: Version-control capability
            fingerprinter: Callable computing a module's content fingerprint
        """
        self.stages = stages
        self.revision_resolver = revision_resolver
        self.fingerprinter = fingerprinter
        self._current_revision: object = _UNRESOLVED

    def current_revision(self) -> str | None:
        """Return the current revision, resolved once per policy instance."""
        if self._current_revision is _UNRESOLVED:
            self._current_revision = self.revision_resolver.current_revision()
        return self._current_revision  # type: ignore[return-value]

    def _stage(self, environment: str) -> StageConfig:
        try:
            return self.stages[environment]
        except KeyError:
            raise DeploymentError(
                operation="decide",
                message=f"Stage '{environment}' is not configured",
            ) from None

    def decide(
        self,
        module: Module,
        previous: DeploymentRecord | None,
        environment: str,
        force: bool = False,
    ) -> DeploymentDecision:
        """Decide whether a module should be deployed.

        Args:
            module: Module under consideration
            previous: Last successful record for the module in this stage
            environment: Target stage
            force: Bypass change detection

        Returns:
            DeploymentDecision with the deploy flag and reason

        Raises:
            DeploymentError: If the stage is not configured
        """
        stage = self._stage(environment)

        def _decision(should_deploy: bool, reason: DeployReason) -> DeploymentDecision:
            logger.debug(f"{module.name}: {reason.value}")
            return DeploymentDecision(
                module_name=module.name, should_deploy=should_deploy, reason=reason
            )

        if force:
            return _decision(True, DeployReason.FORCED)

        if previous is None:
            return _decision(True, DeployReason.FIRST_DEPLOYMENT)

        if stage.is_production_like:
            current = self.current_revision()
            if not current:
                return _decision(True, DeployReason.NO_REVISION_CONTROL)
            if current == previous.source_revision:
                return _decision(False, DeployReason.SAME_REVISION)
            if self.revision_resolver.has_changes(
                module.path, previous.source_revision, current
            ):
                return _decision(True, DeployReason.REVISION_CHANGES)
            return _decision(False, DeployReason.NO_REVISION_CHANGES)

        fingerprint = self.fingerprinter(module.path)
        if fingerprint.digest != previous.content_fingerprint:
            return _decision(True, DeployReason.CONTENT_CHANGES)
        return _decision(False, DeployReason.NO_CONTENT_CHANGES)
