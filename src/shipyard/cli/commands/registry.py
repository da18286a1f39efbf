"""CLI commands for the private package registry.

Implements ``shipyard registry setup|token|publish``.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from shipyard.cli.commands.deploy import handle_deployment_errors
from shipyard.config.loader import load_workspace_config
from shipyard.lib.errors import ConfigError
from shipyard.lib.logging_config import get_logger, setup_logging
from shipyard.models.deployment import (
    EnvironmentConfig,
    RegistrySettings,
    WorkspaceConfig,
)
from shipyard.registry.codeartifact import CodeArtifactClient
from shipyard.registry.npmrc import write_registry_config
from shipyard.registry.packages import scan_library
from shipyard.registry.publisher import publish_package

logger = get_logger(__name__)

_workspace_option = click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace root",
)
_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Workspace configuration file (default: <workspace>/shipyard.yaml)",
)
_verbose_option = click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose debug logging"
)
_quiet_option = click.option(
    "--quiet", "-q", is_flag=True, help="Suppress progress output"
)


def _load_registry(
    workspace: Path, config_path: Path | None
) -> tuple[WorkspaceConfig, RegistrySettings]:
    config = load_workspace_config(workspace, config_path)
    if config.registry is None:
        raise ConfigError(
            field="registry",
            message="No 'registry' section configured in shipyard.yaml",
        )
    return config, config.registry


def _client(settings: RegistrySettings) -> CodeArtifactClient:
    env = EnvironmentConfig.from_environ(os.environ)
    return CodeArtifactClient(region=env.region, domain_owner=settings.domain_owner)


def _mint_credentials(settings: RegistrySettings) -> tuple[str, str]:
    client = _client(settings)
    token, expires_at = client.get_authorization_token(
        settings.domain, settings.token_ttl_seconds
    )
    if expires_at is not None:
        logger.info(f"Token expires: {expires_at.isoformat()}")
    endpoint = client.get_registry_endpoint(settings.domain, settings.repository)
    return token, endpoint


@click.group(
    name="registry", context_settings={"help_option_names": ["-h", "--help"]}
)
def registry() -> None:
    """Manage the private npm package registry."""


@registry.command(name="setup")
@_workspace_option
@_config_option
@_verbose_option
@_quiet_option
def setup(
    workspace: Path, config_path: Path | None, verbose: bool, quiet: bool
) -> None:
    """Create the registry domain, repositories and public upstream."""
    setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        _, settings = _load_registry(workspace.resolve(), config_path)
        client = _client(settings)

        results = [client.ensure_domain(settings.domain)]
        if settings.upstream_repository:
            results.append(
                client.ensure_repository(settings.domain, settings.upstream_repository)
            )
            results.append(
                client.ensure_external_connection(
                    settings.domain,
                    settings.upstream_repository,
                    settings.external_connection,
                )
            )
            results.append(
                client.ensure_repository(
                    settings.domain,
                    settings.repository,
                    upstreams=[settings.upstream_repository],
                )
            )
        else:
            results.append(
                client.ensure_repository(settings.domain, settings.repository)
            )
            results.append(
                client.ensure_external_connection(
                    settings.domain,
                    settings.repository,
                    settings.external_connection,
                )
            )

    if not quiet:
        for result in results:
            status = "created" if result.created else "already exists"
            click.echo(f"  {result.name}: {status}")
        click.secho("Registry setup complete", fg="green")


@registry.command(name="token")
@click.argument(
    "target_dirs",
    nargs=-1,
    type=click.Path(file_okay=False, path_type=Path),
)
@_workspace_option
@_config_option
@_verbose_option
@_quiet_option
def token(
    target_dirs: tuple[Path, ...],
    workspace: Path,
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Mint a registry token and write .npmrc into TARGET_DIRS.

    Without arguments the configured consumer directories are used.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        workspace_root = workspace.resolve()
        _, settings = _load_registry(workspace_root, config_path)
        targets = list(target_dirs) or [
            workspace_root / consumer for consumer in settings.consumers
        ]
        if not targets:
            raise ConfigError(
                field="registry.consumers",
                message="No target directories given and none configured",
            )

        auth_token, endpoint = _mint_credentials(settings)
        written = [
            write_registry_config(target, endpoint, auth_token, settings.namespace)
            for target in targets
        ]

    if not quiet:
        for path in written:
            click.echo(f"  Wrote {path}")
        click.secho(f"Registry configured: {endpoint}", fg="green")


@registry.command(name="publish")
@click.argument(
    "library_dir",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@_workspace_option
@_config_option
@_verbose_option
@_quiet_option
def publish(
    library_dir: Path | None,
    workspace: Path,
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Publish the packages under LIBRARY_DIR in dependency order.

    Versions already present in the registry are skipped. Exits with 1
    when any package fails to publish.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        workspace_root = workspace.resolve()
        _, settings = _load_registry(workspace_root, config_path)
        root = library_dir or workspace_root / settings.library_dir
        packages = scan_library(root)
        if not packages:
            click.secho(f"No publishable packages found in {root}", fg="yellow")
            return

        auth_token, endpoint = _mint_credentials(settings)
        results = [
            publish_package(pkg.path, endpoint, auth_token, settings.namespace, pkg.name)
            for pkg in packages
        ]

    published = [r for r in results if r.success and not r.skipped]
    skipped = [r for r in results if r.skipped]
    failed = [r for r in results if not r.success]

    if not quiet:
        click.echo(f"Published: {len(published)}")
        for r in published:
            click.secho(f"  {r.package}", fg="green")
        click.echo(f"Skipped (already exists): {len(skipped)}")
        for r in skipped:
            click.echo(f"  {r.package}")
    if failed:
        click.secho(f"Failed: {len(failed)}", fg="red", err=True)
        for r in failed:
            click.echo(f"  {r.package}: {r.error}", err=True)
        sys.exit(1)
