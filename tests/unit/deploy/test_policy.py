"""Unit tests for the deploy/skip decision policy."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from shipyard.deploy.policy import DecisionPolicy
from shipyard.lib.errors import DeploymentError
from shipyard.models.deployment import (
    DeployReason,
    FingerprintResult,
    Module,
    default_stages,
)
from shipyard.models.deployment_state import DeploymentRecord


@pytest.fixture
def module(tmp_path: Path) -> Module:
    return Module(name="api", path=tmp_path)


@pytest.fixture
def resolver() -> MagicMock:
    mock = MagicMock()
    mock.current_revision.return_value = "rev-new"
    mock.has_changes.return_value = True
    return mock


@pytest.fixture
def fingerprinter() -> MagicMock:
    return MagicMock(return_value=FingerprintResult(digest="fp-new"))


def _record(revision: str | None = "rev-old", fingerprint: str | None = "fp-old") -> DeploymentRecord:
    return DeploymentRecord(
        deployed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        source_revision=revision,
        content_fingerprint=fingerprint,
        environment="dev",
    )


def _policy(resolver: MagicMock, fingerprinter: MagicMock) -> DecisionPolicy:
    return DecisionPolicy(default_stages(), resolver, fingerprinter)


class TestCommonRules:
    """Rules shared by every stage."""

    @pytest.mark.parametrize("stage", ["dev", "prod"])
    def test_force_always_deploys(
        self, stage: str, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """force deploys even when nothing changed."""
        fingerprinter.return_value = FingerprintResult(digest="fp-old")
        resolver.current_revision.return_value = "rev-old"

        decision = _policy(resolver, fingerprinter).decide(
            module, _record(), stage, force=True
        )

        assert decision.should_deploy
        assert decision.reason == DeployReason.FORCED

    @pytest.mark.parametrize("stage", ["dev", "prod"])
    def test_first_deployment(
        self, stage: str, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """A module without a record deploys."""
        decision = _policy(resolver, fingerprinter).decide(module, None, stage)

        assert decision.should_deploy
        assert decision.reason == DeployReason.FIRST_DEPLOYMENT

    def test_unknown_stage_raises(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """Deciding for an unconfigured stage is an error."""
        with pytest.raises(DeploymentError, match="not configured"):
            _policy(resolver, fingerprinter).decide(module, None, "qa")


class TestContentStages:
    """Content fingerprint stages."""

    def test_changed_content_deploys(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """A different fingerprint deploys."""
        decision = _policy(resolver, fingerprinter).decide(module, _record(), "dev")

        assert decision.should_deploy
        assert decision.reason == DeployReason.CONTENT_CHANGES
        resolver.has_changes.assert_not_called()

    def test_unchanged_content_skips(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """An identical fingerprint skips."""
        fingerprinter.return_value = FingerprintResult(digest="fp-old")

        decision = _policy(resolver, fingerprinter).decide(module, _record(), "uat")

        assert not decision.should_deploy
        assert decision.reason == DeployReason.NO_CONTENT_CHANGES

    def test_missing_recorded_fingerprint_deploys(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """A record without a fingerprint never matches."""
        decision = _policy(resolver, fingerprinter).decide(
            module, _record(fingerprint=None), "dev"
        )

        assert decision.should_deploy


class TestRevisionStages:
    """Revision diffing stages."""

    def test_no_revision_control_deploys(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """Without a current revision every module deploys."""
        resolver.current_revision.return_value = None

        decision = _policy(resolver, fingerprinter).decide(module, _record(), "prod")

        assert decision.should_deploy
        assert decision.reason == DeployReason.NO_REVISION_CONTROL

    def test_same_revision_skips(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """The recorded revision equals HEAD."""
        resolver.current_revision.return_value = "rev-old"

        decision = _policy(resolver, fingerprinter).decide(module, _record(), "prod")

        assert not decision.should_deploy
        assert decision.reason == DeployReason.SAME_REVISION
        resolver.has_changes.assert_not_called()

    def test_revision_changes_deploy(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """Files changed under the module deploy."""
        decision = _policy(resolver, fingerprinter).decide(module, _record(), "prod")

        assert decision.should_deploy
        assert decision.reason == DeployReason.REVISION_CHANGES
        resolver.has_changes.assert_called_once_with(module.path, "rev-old", "rev-new")
        fingerprinter.assert_not_called()

    def test_no_revision_changes_skip(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """Other modules changed but this one did not."""
        resolver.has_changes.return_value = False

        decision = _policy(resolver, fingerprinter).decide(module, _record(), "prod")

        assert not decision.should_deploy
        assert decision.reason == DeployReason.NO_REVISION_CHANGES


class TestPolicyBehaviour:
    """Cross-cutting properties of the policy."""

    def test_current_revision_resolved_once(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """HEAD is queried once per policy instance."""
        policy = _policy(resolver, fingerprinter)

        for _ in range(3):
            policy.decide(module, _record(), "prod")

        resolver.current_revision.assert_called_once()

    def test_decisions_are_idempotent(
        self, module: Module, resolver: MagicMock, fingerprinter: MagicMock
    ) -> None:
        """Re-evaluating with unchanged inputs gives the same decision."""
        policy = _policy(resolver, fingerprinter)

        first = policy.decide(module, _record(), "dev")
        second = policy.decide(module, _record(), "dev")

        assert first == second
