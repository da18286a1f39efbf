"""Unit tests for deployment models."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from shipyard.models.deployment import (
    ChangeDetection,
    DeployOutcome,
    Module,
    RegistrySettings,
    StageConfig,
    default_stages,
)
from shipyard.models.deployment_state import DeploymentRecord, DeploymentState


class TestStageConfig:
    """Tests for stage policies."""

    def test_defaults(self) -> None:
        """Stages default to content fingerprinting with profiles allowed."""
        stage = StageConfig()

        assert stage.change_detection == ChangeDetection.CONTENT
        assert stage.allow_profile_credentials
        assert not stage.is_production_like

    def test_default_mapping(self) -> None:
        """prod is the only production-like built-in stage."""
        stages = default_stages()

        assert [name for name, s in stages.items() if s.is_production_like] == ["prod"]


class TestRegistrySettings:
    """Tests for registry settings."""

    def test_namespace_normalized(self) -> None:
        """A leading @ is added when missing."""
        assert RegistrySettings(domain="d", namespace="myorg").namespace == "@myorg"
        assert RegistrySettings(domain="d", namespace="@myorg").namespace == "@myorg"

    @pytest.mark.parametrize("namespace", ["", "@", "  "])
    def test_empty_namespace_rejected(self, namespace: str) -> None:
        """An empty scope is invalid."""
        with pytest.raises(ValidationError):
            RegistrySettings(domain="d", namespace=namespace)

    def test_defaults(self) -> None:
        """Repository layout defaults match the standard setup."""
        settings = RegistrySettings(domain="d", namespace="n")

        assert settings.repository == "npm-store"
        assert settings.upstream_repository == "npm-upstream"
        assert settings.external_connection == "public:npmjs"


class TestValueModels:
    """Tests for per-run value models."""

    def test_module_is_frozen(self, tmp_path: Path) -> None:
        """Modules cannot be mutated."""
        module = Module(name="api", path=tmp_path)

        with pytest.raises(ValidationError):
            module.name = "other"  # type: ignore[misc]

    def test_outcome_rejects_negative_duration(self) -> None:
        """Durations are non-negative."""
        with pytest.raises(ValidationError):
            DeployOutcome(module_name="a", success=True, environment="dev", duration_ms=-1)

    def test_state_document_round_trip(self) -> None:
        """The state document serializes to JSON and back."""
        state = DeploymentState(
            environments={
                "dev": {
                    "api": DeploymentRecord(
                        deployed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                        content_fingerprint="fp",
                        environment="dev",
                    )
                }
            }
        )

        restored = DeploymentState.model_validate_json(state.model_dump_json())

        assert restored == state
