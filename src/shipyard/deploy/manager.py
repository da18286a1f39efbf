"""Incremental, change-aware deployment of workspace modules.

A run loads the stage's deployment records once, decides per module whether
anything changed since its last successful deploy, deploys the changed
modules in paced batches, and writes the merged records back once at the end.
Nothing is persisted mid-run: an interrupted run loses its own progress but
never corrupts the previously recorded state.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from shipyard.deploy.deployers import BaseDeployer, create_deployer
from shipyard.deploy.discovery import discover_modules
from shipyard.deploy.executor import BatchExecutor, Sleep
from shipyard.deploy.fingerprint import ContentFingerprinter
from shipyard.deploy.policy import DecisionPolicy
from shipyard.deploy.report import (
    DeploymentSummary,
    aggregate,
    build_records,
)
from shipyard.deploy.revision import GitRevisionResolver
from shipyard.deploy.state import DeploymentStateStore, get_state_path
from shipyard.deploy.validator import EnvironmentValidator, ValidationReport
from shipyard.lib.errors import DeploymentError
from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PACING_SECONDS,
    DeploymentDecision,
    EnvironmentConfig,
    Module,
    WorkspaceConfig,
)
from shipyard.models.deployment_state import DeploymentRecord

logger = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_FATAL = 2

ModuleFinder = Callable[[], list[Module]]


@dataclass
class DeploymentRunResult:
    """Everything a caller needs after a run completes."""

    summary: DeploymentSummary
    decisions: list[DeploymentDecision] = field(default_factory=list)
    state_saved: bool = False
    elapsed_ms: int = 0
    validation: ValidationReport | None = None

    @property
    def exit_code(self) -> int:
        """2 if validation failed, 0 when every attempted deploy succeeded, else 1."""
        if self.validation is not None and not self.validation:
            return EXIT_FATAL
        return EXIT_SUCCESS if self.summary.all_succeeded else EXIT_PARTIAL_FAILURE


class DeploymentManager:
    """Orchestrate one deployment run for a stage."""

    def __init__(
        self,
        environment: str,
        modules_finder: ModuleFinder,
        state_store: DeploymentStateStore,
        policy: DecisionPolicy,
        deployer: BaseDeployer,
        validator: EnvironmentValidator | None = None,
        pacing_seconds: float = DEFAULT_PACING_SECONDS,
        sleep: Sleep | None = None,
    ) -> None:
        """Initialize the manager with explicit collaborators.

        Args:
            environment: Target stage
            modules_finder: Returns the modules of the workspace
            state_store: Deployment state persistence
            policy: Deploy/skip decision policy
            deployer: Deploy action for one module
            validator: Prerequisite validator (None skips validation)
            pacing_seconds: Delay between batches
            sleep: Awaitable sleep override for pacing
        """
        self.environment = environment
        self.modules_finder = modules_finder
        self.state_store = state_store
        self.policy = policy
        self.deployer = deployer
        self.validator = validator
        self.pacing_seconds = pacing_seconds
        self._sleep = sleep

    @classmethod
    def from_workspace(
        cls,
        workspace_root: Path,
        environment: str,
        config: WorkspaceConfig,
        env_config: EnvironmentConfig,
        process_env: Mapping[str, str] | None = None,
    ) -> DeploymentManager:
        """Build a manager wired with the default collaborators.

        Args:
            workspace_root: Workspace directory
            environment: Target stage
            config: Workspace configuration
            env_config: Credential environment snapshot
            process_env: Environment passed to the deployment tool

        Raises:
            DeploymentError: If the stage is not configured
        """
        fingerprinter = ContentFingerprinter(config.exclude)
        resolver = GitRevisionResolver(workspace_root)

        def _find() -> list[Module]:
            return discover_modules(workspace_root, config.module_dirs, config.manifest)

        return cls(
            environment=environment,
            modules_finder=_find,
            state_store=DeploymentStateStore(
                get_state_path(workspace_root, config.state_file)
            ),
            policy=DecisionPolicy(config.stages, resolver, fingerprinter),
            deployer=create_deployer(
                environment,
                config.stages,
                resolver,
                fingerprinter,
                command=config.deploy_command,
                env=process_env,
            ),
            validator=EnvironmentValidator.for_workspace(env_config, config),
            pacing_seconds=config.pacing_seconds,
        )

    def validate_environment(self) -> ValidationReport:
        """Run the prerequisite checks for the target stage."""
        if self.validator is None:
            return ValidationReport(ok=True)
        return self.validator.validate(self.environment)

    def select_modules(
        self,
        modules: Sequence[Module],
        previous: Mapping[str, DeploymentRecord],
        force: bool = False,
    ) -> tuple[list[Module], list[DeploymentDecision]]:
        """Split modules into those to deploy and the skip decisions.

        Returns:
            (modules to deploy in discovery order, all decisions)
        """
        to_deploy: list[Module] = []
        decisions: list[DeploymentDecision] = []
        for module in modules:
            decision = self.policy.decide(
                module,
                previous.get(module.name),
                self.environment,
                force=force,
            )
            decisions.append(decision)
            if decision.should_deploy:
                to_deploy.append(module)
            logger.info(f"  {module.name}: {decision.reason.value}")
        return to_deploy, decisions

    async def deploy_all(
        self, concurrency: int = DEFAULT_CONCURRENCY, force: bool = False
    ) -> DeploymentRunResult:
        """Deploy every changed module of the workspace.

        Args:
            concurrency: Batch size, 1 to 3
            force: Deploy every module regardless of prior state

        Returns:
            DeploymentRunResult with the summary and persistence status; when
            environment validation fails nothing is deployed and the result
            carries the failed report (exit code 2)

        Raises:
            DeploymentError: If no modules are discovered
            ValueError: If concurrency is out of range
        """
        started = time.monotonic()
        executor = BatchExecutor(
            concurrency,
            self.environment,
            pacing_seconds=self.pacing_seconds,
            sleep=self._sleep or asyncio.sleep,
        )

        validation = await asyncio.to_thread(self.validate_environment)
        if not validation:
            return DeploymentRunResult(
                summary=aggregate([], self.environment),
                elapsed_ms=int((time.monotonic() - started) * 1000),
                validation=validation,
            )

        modules = self.modules_finder()
        if not modules:
            raise DeploymentError(
                operation="discover", message="No deployable modules found"
            )

        previous = self.state_store.load(self.environment)
        logger.info(f"Checking for changes in {len(modules)} modules")
        to_deploy, decisions = await asyncio.to_thread(
            self.select_modules, modules, previous, force
        )
        skipped = [d for d in decisions if not d.should_deploy]

        if not to_deploy:
            logger.info("No modules need deployment - all are up to date")
            return DeploymentRunResult(
                summary=aggregate([], self.environment, skipped),
                decisions=decisions,
                elapsed_ms=int((time.monotonic() - started) * 1000),
                validation=validation,
            )

        logger.info(
            f"Deploying {len(to_deploy)} modules with concurrency {concurrency}"
            + (f", skipping {len(skipped)} unchanged" if skipped else "")
        )
        outcomes = await executor.run(to_deploy, self.deployer)

        summary = aggregate(outcomes, self.environment, skipped)
        state_saved = False
        if summary.successes:
            state_saved = self.state_store.save(
                self.environment, build_records(previous, outcomes)
            )

        return DeploymentRunResult(
            summary=summary,
            decisions=decisions,
            state_saved=state_saved,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            validation=validation,
        )

