"""Pydantic models for deployment configuration and outcomes.

This module defines the workspace configuration schema (stages, module
directories, registry settings), the credentials snapshot used by the
validator, and the per-module values that flow through a deployment run.
"""

import re
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

STAGE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 3
DEFAULT_CONCURRENCY = 2
DEFAULT_PACING_SECONDS = 3.0


class ChangeDetection(str, Enum):
    """Change-detection strategy used for a stage."""

    CONTENT = "content"
    REVISION = "revision"


class DeployReason(str, Enum):
    """Why a module was selected for deployment or skipped."""

    FORCED = "forced"
    FIRST_DEPLOYMENT = "first-deployment"
    NO_REVISION_CONTROL = "no-revision-control"
    SAME_REVISION = "same-revision"
    REVISION_CHANGES = "revision-changes"
    NO_REVISION_CHANGES = "no-revision-changes"
    CONTENT_CHANGES = "content-changes"
    NO_CONTENT_CHANGES = "no-content-changes"


class FailureCategory(str, Enum):
    """Heuristic classification of a deploy error, for triage only."""

    CREDENTIALS = "credentials"
    REGION = "region"
    TOOLING = "tooling"
    PERMISSIONS = "permissions"
    INFRASTRUCTURE_STACK = "infrastructure-stack"
    COMPUTE_FUNCTION = "compute-function"
    API_GATEWAY = "api-gateway"
    UNKNOWN = "unknown"


class StageConfig(BaseModel):
    """Per-stage deployment policy.

    Attributes:
        change_detection: How unchanged modules are detected for this stage
        allow_profile_credentials: Whether a named credential profile may be
            used instead of an access-key pair
    """

    model_config = ConfigDict(extra="forbid")

    change_detection: ChangeDetection = Field(
        default=ChangeDetection.CONTENT,
        description="Change-detection strategy for the stage",
    )
    allow_profile_credentials: bool = Field(
        default=True,
        description="Allow AWS_PROFILE instead of an access-key pair",
    )

    @property
    def is_production_like(self) -> bool:
        """Return True when the stage diffs source revisions."""
        return self.change_detection == ChangeDetection.REVISION


def default_stages() -> dict[str, StageConfig]:
    """Return the built-in stage mapping."""
    return {
        "dev": StageConfig(change_detection=ChangeDetection.CONTENT),
        "uat": StageConfig(change_detection=ChangeDetection.CONTENT),
        "prod": StageConfig(
            change_detection=ChangeDetection.REVISION,
            allow_profile_credentials=False,
        ),
    }


class RegistrySettings(BaseModel):
    """Private package registry configuration.

    Attributes:
        domain: CodeArtifact domain name
        domain_owner: AWS account id owning the domain (optional)
        repository: Repository packages are published to
        upstream_repository: Repository holding the public external connection
        external_connection: External connection name
        namespace: npm scope packages are published under
        token_ttl_seconds: Authorization token lifetime
        consumers: Directories that receive a generated .npmrc
        library_dir: Directory holding the packages to publish
    """

    model_config = ConfigDict(extra="forbid")

    domain: str = Field(..., description="CodeArtifact domain name")
    domain_owner: str | None = Field(
        default=None, description="AWS account id owning the domain"
    )
    repository: str = Field(default="npm-store", description="Target repository")
    upstream_repository: str | None = Field(
        default="npm-upstream", description="Repository with the external connection"
    )
    external_connection: str = Field(
        default="public:npmjs", description="External connection name"
    )
    namespace: str = Field(..., description="npm scope, e.g. @myorg")
    token_ttl_seconds: int = Field(
        default=43200, ge=900, le=43200, description="Token lifetime in seconds"
    )
    consumers: list[str] = Field(
        default_factory=list, description="Consumer directories for .npmrc files"
    )
    library_dir: str = Field(
        default="libs", description="Directory holding packages to publish"
    )

    @field_validator("namespace")
    @classmethod
    def normalize_namespace(cls, v: str) -> str:
        """Ensure the namespace carries a leading '@'."""
        v = v.strip()
        if not v or v == "@":
            raise ValueError("namespace cannot be empty")
        return v if v.startswith("@") else f"@{v}"


class WorkspaceConfig(BaseModel):
    """Workspace-level configuration loaded from shipyard.yaml."""

    model_config = ConfigDict(extra="forbid")

    module_dirs: list[str] = Field(
        default_factory=lambda: ["modules"],
        description="Workspace subdirectories scanned for deployable modules",
    )
    manifest: str = Field(
        default="serverless.yml", description="Manifest file marking a module"
    )
    state_file: str = Field(
        default=".shipyard/deployment-state.json",
        description="Deployment state document, relative to the workspace",
    )
    default_stage: str = Field(default="dev", description="Stage used when omitted")
    pacing_seconds: float = Field(
        default=DEFAULT_PACING_SECONDS,
        ge=0,
        description="Delay between deployment batches",
    )
    deploy_command: str = Field(
        default="serverless", description="Deployment tool executable"
    )
    min_tool_major_version: int = Field(
        default=4, ge=1, description="Minimum supported deployment tool major version"
    )
    login: bool = Field(
        default=True, description="Attempt a deployment tool login before deploying"
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Extra names excluded from content fingerprints",
    )
    stages: dict[str, StageConfig] = Field(
        default_factory=default_stages, description="Supported stages"
    )
    registry: RegistrySettings | None = Field(
        default=None, description="Private package registry settings"
    )

    @field_validator("stages")
    @classmethod
    def validate_stage_names(
        cls, v: dict[str, StageConfig]
    ) -> dict[str, StageConfig]:
        """Validate stage name pattern."""
        if not v:
            raise ValueError("at least one stage must be configured")
        for name in v:
            if not STAGE_NAME_PATTERN.match(name):
                raise ValueError(
                    f"Invalid stage name: {name}. "
                    "Must start with a letter and contain only lowercase "
                    "letters, numbers and '-'"
                )
        return v

    @model_validator(mode="after")
    def validate_default_stage(self) -> "WorkspaceConfig":
        """Validate that the default stage is one of the configured stages."""
        if self.default_stage not in self.stages:
            raise ValueError(
                f"default_stage '{self.default_stage}' is not a configured stage"
            )
        return self


class EnvironmentConfig(BaseModel):
    """Snapshot of the credential-related environment for one run.

    Captured once at startup and passed explicitly to the components that
    need it instead of reading process-global state.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    access_key_id: str | None = None
    secret_access_key: str | None = None
    profile: str | None = None
    region: str | None = None
    deploy_tool_token: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "EnvironmentConfig":
        """Build the snapshot from an environment mapping.

        Empty strings are treated as unset.
        """

        def _get(*names: str) -> str | None:
            for name in names:
                value = environ.get(name, "").strip()
                if value:
                    return value
            return None

        return cls(
            access_key_id=_get("AWS_ACCESS_KEY_ID"),
            secret_access_key=_get("AWS_SECRET_ACCESS_KEY"),
            profile=_get("AWS_PROFILE"),
            region=_get("AWS_REGION", "AWS_DEFAULT_REGION"),
            deploy_tool_token=_get("SERVERLESS_ACCESS_KEY"),
        )


class Module(BaseModel):
    """An independently deployable unit discovered in the workspace."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Unique, stable module name")
    path: Path = Field(..., description="Module root directory")
    has_env_file: bool = Field(
        default=False, description="Whether the module ships a .env file"
    )


class FingerprintResult(BaseModel):
    """Content fingerprint of a module and the files it covers."""

    model_config = ConfigDict(extra="forbid")

    digest: str
    files: list[str] = Field(default_factory=list)


class DeploymentDecision(BaseModel):
    """Outcome of the deployment decision policy for one module."""

    model_config = ConfigDict(extra="forbid")

    module_name: str
    should_deploy: bool
    reason: DeployReason


class DeployOutcome(BaseModel):
    """Result of one deploy attempt for one module.

    Attributes:
        module_name: Module that was deployed
        success: Whether the deploy tool reported success
        duration_ms: Wall-clock duration of the attempt
        environment: Target stage
        endpoints: Reachable endpoints extracted from tool output
        source_revision: Revision deployed (successful attempts)
        content_fingerprint: Fingerprint deployed (successful attempts)
        deployed_at: Completion timestamp (successful attempts)
        error_message: Error text with guidance (failed attempts)
        failure_category: Heuristic failure category (failed attempts)
        output_excerpt: First characters of raw tool output for diagnostics
    """

    model_config = ConfigDict(extra="forbid")

    module_name: str
    success: bool
    duration_ms: int = Field(default=0, ge=0)
    environment: str
    endpoints: list[str] = Field(default_factory=list)
    source_revision: str | None = None
    content_fingerprint: str | None = None
    deployed_at: datetime | None = None
    error_message: str | None = None
    failure_category: FailureCategory | None = None
    output_excerpt: str = ""
