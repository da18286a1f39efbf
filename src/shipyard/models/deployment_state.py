"""Deployment state models for persisted deployments."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DeploymentRecord(BaseModel):
    """Evidence of a module's last successful deployment in one stage."""

    model_config = ConfigDict(extra="forbid")

    deployed_at: datetime = Field(..., description="Deployment completion timestamp")
    source_revision: str | None = Field(
        default=None, description="Source revision that was deployed"
    )
    content_fingerprint: str | None = Field(
        default=None, description="Content fingerprint that was deployed"
    )
    environment: str = Field(..., description="Stage the record belongs to")


class DeploymentState(BaseModel):
    """Top-level deployment state stored on disk."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="1.0", description="State file version")
    environments: dict[str, dict[str, DeploymentRecord]] = Field(
        default_factory=dict,
        description="Records keyed by stage, then by module name",
    )
