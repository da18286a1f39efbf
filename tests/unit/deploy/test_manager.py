"""Unit tests for the deployment manager."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from shipyard.deploy.deployers.base import BaseDeployer
from shipyard.deploy.manager import (
    EXIT_FATAL,
    EXIT_PARTIAL_FAILURE,
    EXIT_SUCCESS,
    DeploymentManager,
)
from shipyard.deploy.policy import DecisionPolicy
from shipyard.deploy.state import DeploymentStateStore
from shipyard.deploy.validator import ValidationFailure, ValidationReport
from shipyard.lib.errors import DeploymentError
from shipyard.models.deployment import (
    DeployOutcome,
    DeployReason,
    EnvironmentConfig,
    FingerprintResult,
    Module,
    WorkspaceConfig,
    default_stages,
)
from shipyard.models.deployment_state import DeploymentRecord


class FakeDeployer(BaseDeployer):
    """Deployer returning scripted outcomes."""

    def __init__(
        self,
        failing: set[str] | None = None,
        stage: str = "dev",
        revision: str | None = None,
    ) -> None:
        self.failing = failing or set()
        self.stage = stage
        self.revision = revision
        self.deployed: list[str] = []

    @property
    def environment(self) -> str:
        return self.stage

    async def deploy(self, module: Module) -> DeployOutcome:
        self.deployed.append(module.name)
        if module.name in self.failing:
            return DeployOutcome(
                module_name=module.name,
                success=False,
                environment=self.stage,
                error_message="Unable to locate credentials",
            )
        return DeployOutcome(
            module_name=module.name,
            success=True,
            environment=self.stage,
            source_revision=self.revision,
            content_fingerprint=f"fp-{module.name}",
            deployed_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        )


async def _no_sleep(_: float) -> None:
    return None


def _modules(tmp_path: Path, *names: str) -> list[Module]:
    return [Module(name=name, path=tmp_path / name) for name in names]


def _resolver(revision: str | None = None) -> MagicMock:
    resolver = MagicMock()
    resolver.current_revision.return_value = revision
    resolver.has_changes.return_value = True
    return resolver


def _manager(
    tmp_path: Path,
    modules: list[Module],
    deployer: FakeDeployer,
    fingerprints: dict[str, str] | None = None,
    environment: str = "dev",
    resolver: MagicMock | None = None,
    validator: MagicMock | None = None,
) -> DeploymentManager:
    fingerprints = fingerprints or {}

    def _fingerprint(path: Path) -> FingerprintResult:
        return FingerprintResult(digest=fingerprints.get(path.name, f"fp-{path.name}"))

    return DeploymentManager(
        environment=environment,
        modules_finder=lambda: modules,
        state_store=DeploymentStateStore(tmp_path / "state.json"),
        policy=DecisionPolicy(default_stages(), resolver or _resolver(), _fingerprint),
        deployer=deployer,
        validator=validator,
        sleep=_no_sleep,
    )


class TestDeployAll:
    """Tests for DeploymentManager.deploy_all."""

    @pytest.mark.asyncio
    async def test_first_run_deploys_everything(self, tmp_path: Path) -> None:
        """Without state every module deploys and records are saved."""
        deployer = FakeDeployer()
        manager = _manager(tmp_path, _modules(tmp_path, "a", "b", "c"), deployer)

        result = await manager.deploy_all(concurrency=2)

        assert deployer.deployed == ["a", "b", "c"]
        assert result.exit_code == EXIT_SUCCESS
        assert result.state_saved
        assert set(manager.state_store.load("dev")) == {"a", "b", "c"}
        assert all(d.reason == DeployReason.FIRST_DEPLOYMENT for d in result.decisions)

    @pytest.mark.asyncio
    async def test_second_run_skips_unchanged(self, tmp_path: Path) -> None:
        """A rerun with unchanged content deploys nothing."""
        modules = _modules(tmp_path, "a", "b")
        await _manager(tmp_path, modules, FakeDeployer()).deploy_all()

        deployer = FakeDeployer()
        result = await _manager(tmp_path, modules, deployer).deploy_all()

        assert deployer.deployed == []
        assert result.exit_code == EXIT_SUCCESS
        assert result.summary.deployed_count == 0
        assert len(result.summary.skipped) == 2
        assert not result.state_saved

    @pytest.mark.asyncio
    async def test_only_changed_modules_deploy(self, tmp_path: Path) -> None:
        """A changed fingerprint redeploys just that module."""
        modules = _modules(tmp_path, "a", "b")
        await _manager(tmp_path, modules, FakeDeployer()).deploy_all()

        deployer = FakeDeployer()
        await _manager(tmp_path, modules, deployer, {"b": "fp-b-changed"}).deploy_all()

        assert deployer.deployed == ["b"]

    @pytest.mark.asyncio
    async def test_partial_failure(self, tmp_path: Path) -> None:
        """Failures yield exit 1 and only successes are recorded."""
        deployer = FakeDeployer(failing={"b"})
        manager = _manager(tmp_path, _modules(tmp_path, "a", "b", "c"), deployer)

        result = await manager.deploy_all(concurrency=3)

        assert result.exit_code == EXIT_PARTIAL_FAILURE
        assert result.state_saved
        assert set(manager.state_store.load("dev")) == {"a", "c"}
        assert [o.module_name for o in result.summary.failures] == ["b"]

    @pytest.mark.asyncio
    async def test_failed_module_keeps_prior_record(self, tmp_path: Path) -> None:
        """A failing redeploy does not touch the module's old record."""
        store = DeploymentStateStore(tmp_path / "state.json")
        old = DeploymentRecord(
            deployed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            content_fingerprint="fp-stale",
            environment="dev",
        )
        store.save("dev", {"b": old})

        await _manager(
            tmp_path, _modules(tmp_path, "a", "b"), FakeDeployer(failing={"b"})
        ).deploy_all()

        assert store.load("dev")["b"].content_fingerprint == "fp-stale"

    @pytest.mark.asyncio
    async def test_all_failed_does_not_save(self, tmp_path: Path) -> None:
        """Nothing is written when nothing succeeded."""
        manager = _manager(
            tmp_path, _modules(tmp_path, "a"), FakeDeployer(failing={"a"})
        )

        result = await manager.deploy_all()

        assert not result.state_saved
        assert not (tmp_path / "state.json").exists()

    @pytest.mark.asyncio
    async def test_force_redeploys(self, tmp_path: Path) -> None:
        """force deploys unchanged modules."""
        modules = _modules(tmp_path, "a")
        await _manager(tmp_path, modules, FakeDeployer()).deploy_all()

        deployer = FakeDeployer()
        result = await _manager(tmp_path, modules, deployer).deploy_all(force=True)

        assert deployer.deployed == ["a"]
        assert result.decisions[0].reason == DeployReason.FORCED

    @pytest.mark.asyncio
    async def test_no_modules_raises(self, tmp_path: Path) -> None:
        """An empty workspace cannot be deployed."""
        manager = _manager(tmp_path, [], FakeDeployer())

        with pytest.raises(DeploymentError, match="No deployable modules"):
            await manager.deploy_all()

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self, tmp_path: Path) -> None:
        """Concurrency is validated before anything runs."""
        deployer = FakeDeployer()
        manager = _manager(tmp_path, _modules(tmp_path, "a"), deployer)

        with pytest.raises(ValueError):
            await manager.deploy_all(concurrency=4)
        assert deployer.deployed == []

    @pytest.mark.asyncio
    async def test_revision_stage_rerun_is_idempotent(self, tmp_path: Path) -> None:
        """A second prod run at the same revision deploys nothing."""
        modules = _modules(tmp_path, "a", "b")
        resolver = _resolver("abc123")
        await _manager(
            tmp_path,
            modules,
            FakeDeployer(stage="prod", revision="abc123"),
            environment="prod",
            resolver=resolver,
        ).deploy_all()

        deployer = FakeDeployer(stage="prod", revision="abc123")
        result = await _manager(
            tmp_path, modules, deployer, environment="prod", resolver=resolver
        ).deploy_all()

        assert deployer.deployed == []
        assert result.exit_code == EXIT_SUCCESS
        assert [d.reason for d in result.decisions] == [
            DeployReason.SAME_REVISION,
            DeployReason.SAME_REVISION,
        ]
        resolver.has_changes.assert_not_called()

    @pytest.mark.asyncio
    async def test_run_leaves_other_stages_untouched(self, tmp_path: Path) -> None:
        """Deploying uat does not change the dev records."""
        modules = _modules(tmp_path, "a", "b")
        await _manager(tmp_path, modules, FakeDeployer()).deploy_all()
        store = DeploymentStateStore(tmp_path / "state.json")
        dev_before = store.load("dev")

        deployer = FakeDeployer(stage="uat")
        result = await _manager(
            tmp_path,
            modules,
            deployer,
            fingerprints={"a": "fp-a-uat", "b": "fp-b-uat"},
            environment="uat",
        ).deploy_all()

        assert deployer.deployed == ["a", "b"]
        assert all(d.reason == DeployReason.FIRST_DEPLOYMENT for d in result.decisions)
        assert store.load("dev") == dev_before
        assert set(store.load("uat")) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_decisions_run_off_the_event_loop(self, tmp_path: Path) -> None:
        """Fingerprinting and git calls happen in a worker thread."""
        modules = _modules(tmp_path, "a")
        await _manager(tmp_path, modules, FakeDeployer()).deploy_all()
        loop_thread = threading.get_ident()
        seen: list[int] = []

        def _fingerprint(path: Path) -> FingerprintResult:
            seen.append(threading.get_ident())
            return FingerprintResult(digest=f"fp-{path.name}")

        manager = _manager(tmp_path, modules, FakeDeployer())
        manager.policy.fingerprinter = _fingerprint

        await manager.deploy_all()

        assert seen
        assert loop_thread not in seen


class TestValidationGate:
    """deploy_all runs environment validation before anything else."""

    @pytest.mark.asyncio
    async def test_failed_validation_stops_run(self, tmp_path: Path) -> None:
        """Nothing is discovered, deployed or saved when validation fails."""
        validator = MagicMock()
        validator.validate.return_value = ValidationReport(
            ok=False,
            failure=ValidationFailure.CREDENTIALS,
            messages=["AWS credentials not configured"],
        )
        finder = MagicMock(return_value=_modules(tmp_path, "a"))
        deployer = FakeDeployer()
        manager = _manager(tmp_path, [], deployer, validator=validator)
        manager.modules_finder = finder

        result = await manager.deploy_all()

        assert result.exit_code == EXIT_FATAL
        assert result.validation is not None
        assert result.validation.messages == ["AWS credentials not configured"]
        validator.validate.assert_called_once_with("dev")
        finder.assert_not_called()
        assert deployer.deployed == []
        assert not (tmp_path / "state.json").exists()

    @pytest.mark.asyncio
    async def test_passed_validation_is_reported(self, tmp_path: Path) -> None:
        """Warnings from a passing validation travel with the result."""
        validator = MagicMock()
        validator.validate.return_value = ValidationReport(
            ok=True, warnings=["serverless login failed"]
        )
        manager = _manager(
            tmp_path, _modules(tmp_path, "a"), FakeDeployer(), validator=validator
        )

        result = await manager.deploy_all()

        assert result.exit_code == EXIT_SUCCESS
        assert result.validation is not None
        assert result.validation.warnings == ["serverless login failed"]


class TestFromWorkspace:
    """Tests for default wiring."""

    def test_wires_collaborators(self, tmp_path: Path) -> None:
        """The factory honors workspace settings."""
        config = WorkspaceConfig(state_file="custom/state.json", pacing_seconds=0)

        manager = DeploymentManager.from_workspace(
            tmp_path, "prod", config, EnvironmentConfig()
        )

        assert manager.environment == "prod"
        assert manager.pacing_seconds == 0
        assert manager.state_store.state_path == tmp_path / "custom" / "state.json"
        assert manager.deployer.environment == "prod"
        assert manager.validator is not None

    def test_unknown_stage_rejected(self, tmp_path: Path) -> None:
        """Unconfigured stages cannot be wired."""
        with pytest.raises(DeploymentError):
            DeploymentManager.from_workspace(
                tmp_path, "qa", WorkspaceConfig(), EnvironmentConfig()
            )

    def test_validate_without_validator(self, tmp_path: Path) -> None:
        """A manager without a validator always passes validation."""
        manager = _manager(tmp_path, [], FakeDeployer())

        assert manager.validate_environment()
