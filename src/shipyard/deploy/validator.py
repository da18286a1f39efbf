"""Environment and prerequisite checks gating a deployment run.

Checks run in a fixed order and stop at the first unmet prerequisite:

1. Credential shape (access-key pair, or a profile where the stage allows it)
2. Region
3. Deployment tool access key
4. Stage is configured
5. Deployment tool installed (an old major version only warns)
6. Optional tool login (failure only warns)
"""

from __future__ import annotations

import re
import subprocess  # nosec B404
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import (
    EnvironmentConfig,
    StageConfig,
    WorkspaceConfig,
)

logger = get_logger(__name__)

TOOL_VERSION_PATTERNS = (
    re.compile(r"Framework(?: Core)?:?\s*v?(\d+)\.", re.IGNORECASE),
    re.compile(r"\b(\d+)\.\d+\.\d+\b"),
)
COMMAND_TIMEOUT_SECONDS = 120


class ValidationFailure(str, Enum):
    """Prerequisite that stopped validation."""

    CREDENTIALS = "credentials"
    REGION = "region"
    TOOL_TOKEN = "tool-token"
    STAGE = "stage"
    TOOL_MISSING = "tool-missing"


@dataclass
class CommandResult:
    """Exit status and combined output of an external command."""

    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


CommandRunner = Callable[[Sequence[str]], CommandResult]


def run_command(args: Sequence[str]) -> CommandResult:
    """Run a command and capture its combined output; never raises."""
    try:
        result = subprocess.run(  # noqa: S603  # nosec B603
            list(args),
            capture_output=True,
            text=True,
            check=False,
            timeout=COMMAND_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        return CommandResult(returncode=127, output=str(e))
    return CommandResult(
        returncode=result.returncode, output=(result.stdout or "") + (result.stderr or "")
    )


def parse_tool_major_version(output: str) -> int | None:
    """Extract the deployment tool's major version from ``--version`` output."""
    for pattern in TOOL_VERSION_PATTERNS:
        match = pattern.search(output)
        if match:
            return int(match.group(1))
    return None


@dataclass
class ValidationReport:
    """Result of environment validation.

    Truthy when every blocking prerequisite is met.
    """

    ok: bool
    failure: ValidationFailure | None = None
    messages: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok


class EnvironmentValidator:
    """Validate credentials, region and tooling for a stage."""

    def __init__(
        self,
        config: EnvironmentConfig,
        stages: Mapping[str, StageConfig],
        command: str = "serverless",
        min_major_version: int = 4,
        login: bool = True,
        command_runner: CommandRunner = run_command,
    ) -> None:
        """Initialize the validator.

        Args:
            config: Credential environment snapshot
            stages: Supported stages and their policies
            command: Deployment tool executable
            min_major_version: Lowest tool major version considered compatible
            login: Attempt a tool login as the last step
            command_runner: Runs external commands (injectable for tests)
        """
        self.config = config
        self.stages = stages
        self.command = command
        self.min_major_version = min_major_version
        self.login = login
        self._run = command_runner

    @classmethod
    def for_workspace(
        cls, config: EnvironmentConfig, workspace: WorkspaceConfig
    ) -> EnvironmentValidator:
        """Build a validator using the workspace's stage and tool settings."""
        return cls(
            config,
            workspace.stages,
            command=workspace.deploy_command,
            min_major_version=workspace.min_tool_major_version,
            login=workspace.login,
        )

    def _fail(
        self, failure: ValidationFailure, *messages: str
    ) -> ValidationReport:
        for message in messages:
            logger.error(message)
        return ValidationReport(ok=False, failure=failure, messages=list(messages))

    def _check_credentials(self, environment: str) -> ValidationReport | None:
        cfg = self.config
        if cfg.access_key_id and not cfg.secret_access_key:
            return self._fail(
                ValidationFailure.CREDENTIALS,
                "AWS_ACCESS_KEY_ID is set but AWS_SECRET_ACCESS_KEY is missing",
                "Both AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be "
                "provided together",
            )
        if cfg.secret_access_key and not cfg.access_key_id:
            return self._fail(
                ValidationFailure.CREDENTIALS,
                "AWS_SECRET_ACCESS_KEY is set but AWS_ACCESS_KEY_ID is missing",
                "Both AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be "
                "provided together",
            )
        if cfg.access_key_id and cfg.secret_access_key:
            logger.info("Using direct AWS credentials")
            return None

        stage = self.stages.get(environment)
        # Unknown stages are reported by the stage check, not here
        allow_profile = stage.allow_profile_credentials if stage else True
        if cfg.profile and allow_profile:
            logger.info(f"Using AWS profile: {cfg.profile}")
            return None

        if cfg.profile:
            return self._fail(
                ValidationFailure.CREDENTIALS,
                f"AWS_PROFILE is not supported for stage '{environment}'",
                "Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY",
            )
        return self._fail(
            ValidationFailure.CREDENTIALS,
            "AWS credentials not configured",
            "Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY"
            + (" (or AWS_PROFILE)" if allow_profile else ""),
        )

    def validate(self, environment: str) -> ValidationReport:
        """Validate prerequisites for deploying to a stage.

        Never raises; the first unmet prerequisite is logged and returned.
        """
        logger.info(f"Validating deployment environment for stage: {environment}")

        report = self._check_credentials(environment)
        if report is not None:
            return report

        if not self.config.region:
            return self._fail(
                ValidationFailure.REGION,
                "AWS region not configured",
                "Set AWS_REGION or AWS_DEFAULT_REGION",
            )
        logger.info(f"AWS region configured: {self.config.region}")

        if not self.config.deploy_tool_token:
            return self._fail(
                ValidationFailure.TOOL_TOKEN,
                "Deployment tool authentication not configured",
                "Set SERVERLESS_ACCESS_KEY (issued at https://app.serverless.com/)",
            )

        if environment not in self.stages:
            return self._fail(
                ValidationFailure.STAGE,
                f"Invalid stage: {environment}",
                f"Valid stages are: {', '.join(self.stages)}",
            )

        warnings: list[str] = []
        version_result = self._run([self.command, "--version"])
        if not version_result.ok:
            return self._fail(
                ValidationFailure.TOOL_MISSING,
                f"Deployment tool '{self.command}' not found",
                f"Install it with: npm install -g serverless@{self.min_major_version}",
            )
        major = parse_tool_major_version(version_result.output)
        if major is not None and major < self.min_major_version:
            warnings.append(
                f"{self.command} v{major} detected; v{self.min_major_version} "
                "or newer is recommended"
            )
        elif major is not None:
            logger.info(f"{self.command} v{major} detected")

        if self.login:
            login_result = self._run([self.command, "login"])
            if not login_result.ok:
                warnings.append(
                    f"{self.command} login failed; continuing in case a session "
                    "is already active"
                )

        for warning in warnings:
            logger.warning(warning)
        logger.info("Environment validation passed")
        return ValidationReport(ok=True, warnings=warnings)
