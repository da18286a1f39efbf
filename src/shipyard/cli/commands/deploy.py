"""CLI command for deploying workspace modules.

Implements ``shipyard deploy [STAGE]``.

Exit codes:
    0: Every attempted deployment succeeded, or nothing needed deploying
    1: At least one module failed; the run otherwise completed
    2: The run could not start (usage, configuration, validation, discovery
       or unexpected errors)
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import click

from shipyard.config.loader import load_workspace_config
from shipyard.deploy.manager import EXIT_FATAL, DeploymentManager
from shipyard.deploy.report import render_summary
from shipyard.lib.errors import ConfigError, DeploymentError, ShipyardError
from shipyard.lib.logging_config import get_logger, setup_logging
from shipyard.models.deployment import (
    DEFAULT_CONCURRENCY,
    MAX_CONCURRENCY,
    MIN_CONCURRENCY,
    EnvironmentConfig,
)

logger = get_logger(__name__)


@contextmanager
def handle_deployment_errors() -> Generator[None, None, None]:
    """Map setup failures and unexpected exceptions to exit code 2."""
    try:
        yield
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(EXIT_FATAL)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(EXIT_FATAL)
    except ShipyardError as e:
        logger.error(str(e))
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_FATAL)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_FATAL)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("stage", required=False)
@click.option(
    "--concurrency",
    type=click.IntRange(MIN_CONCURRENCY, MAX_CONCURRENCY),
    default=DEFAULT_CONCURRENCY,
    show_default=True,
    help="Number of modules deployed concurrently per batch",
)
@click.option(
    "--force",
    is_flag=True,
    help="Deploy all modules regardless of changes",
)
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace root containing the modules",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Workspace configuration file (default: <workspace>/shipyard.yaml)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose debug logging",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress progress output",
)
def deploy(
    stage: str | None,
    concurrency: int,
    force: bool,
    workspace: Path,
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Deploy changed modules to STAGE (default: the configured default stage).

    Modules whose content (fast-iteration stages) or source revision
    (production-like stages) is unchanged since their last successful
    deployment are skipped.

    Example:

        shipyard deploy

        shipyard deploy prod --concurrency 1

        shipyard deploy dev --force
    """
    setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        workspace_root = workspace.resolve()
        config = load_workspace_config(workspace_root, config_path)
        stage = stage or config.default_stage

        if not quiet:
            click.secho("Module Deployment", bold=True)
            click.echo(f"  Started:      {datetime.now(timezone.utc).isoformat()}")
            click.echo(f"  Stage:        {stage}")
            click.echo(f"  Concurrency:  {concurrency}")
            if force:
                click.echo("  Force:        enabled")
            click.echo()

        env_config = EnvironmentConfig.from_environ(os.environ)
        manager = DeploymentManager.from_workspace(
            workspace_root, stage, config, env_config
        )
        result = asyncio.run(manager.deploy_all(concurrency=concurrency, force=force))

    report = result.validation
    if report is not None and not report:
        click.secho("Error: Environment validation failed", fg="red", err=True)
        for message in report.messages:
            click.echo(f"  {message}", err=True)
        sys.exit(EXIT_FATAL)
    if report is not None:
        for warning in report.warnings:
            click.secho(f"Warning: {warning}", fg="yellow", err=True)

    click.echo(render_summary(result.summary, elapsed_ms=result.elapsed_ms))

    if result.exit_code == 0:
        if not quiet:
            click.secho("All deployments completed successfully!", fg="green")
    else:
        click.secho(
            "Some deployments failed. Check the summary above.", fg="yellow", err=True
        )
    sys.exit(result.exit_code)
