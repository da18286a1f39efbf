"""Publishing library packages to the private registry through npm."""

from __future__ import annotations

import os
import shutil
import subprocess  # nosec B404
import tempfile
from dataclasses import dataclass
from pathlib import Path

from shipyard.lib.logging_config import get_logger
from shipyard.registry.npmrc import NPMRC_FILENAME, NPMRC_MODE, registry_host

logger = get_logger(__name__)

VERSION_CONFLICT_MARKERS = (
    "409",
    "E409",
    "already exists",
    "cannot publish over existing version",
)
PUBLISH_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class PublishResult:
    """Outcome of publishing one package.

    ``skipped`` is True when the version was already in the registry; that
    counts as success.
    """

    package: str
    success: bool
    skipped: bool = False
    error: str | None = None


def is_version_conflict(output: str) -> bool:
    """Return True when npm output reports an already-published version."""
    return any(marker in output for marker in VERSION_CONFLICT_MARKERS)


def _write_scratch_npmrc(
    directory: Path, registry_url: str, token: str, namespace: str
) -> Path:
    scope = namespace if namespace.startswith("@") else f"@{namespace}"
    npmrc_path = directory / NPMRC_FILENAME
    npmrc_path.write_text(
        f"{scope}:registry={registry_url}\n"
        f"//{registry_host(registry_url)}/:_authToken={token}\n",
        encoding="utf-8",
    )
    os.chmod(npmrc_path, NPMRC_MODE)
    return npmrc_path


def publish_package(
    package_dir: Path,
    registry_url: str,
    token: str,
    namespace: str,
    package_name: str | None = None,
    npm: str = "npm",
) -> PublishResult:
    """Publish one package directory; never raises.

    The credential file lives in a temporary directory that is removed on
    every path out of this function.

    Args:
        package_dir: Directory containing package.json
        registry_url: Repository endpoint URL
        token: Registry authorization token
        namespace: npm scope routed to the registry
        package_name: Display name (defaults to the directory name)
        npm: npm executable
    """
    name = package_name or Path(package_dir).name
    if not (Path(package_dir) / "package.json").is_file():
        logger.error(f"No package.json found in {package_dir}")
        return PublishResult(package=name, success=False, error="missing package.json")

    logger.info(f"Publishing {name}...")
    scratch = Path(tempfile.mkdtemp(prefix="npmrc-"))
    try:
        npmrc_path = _write_scratch_npmrc(scratch, registry_url, token, namespace)
        try:
            result = subprocess.run(  # noqa: S603  # nosec B603
                [npm, "publish", "--userconfig", str(npmrc_path)],
                cwd=package_dir,
                capture_output=True,
                text=True,
                check=False,
                timeout=PUBLISH_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Failed to publish {name}: {e}")
            return PublishResult(package=name, success=False, error=str(e))

        if result.returncode == 0:
            logger.info(f"Published {name}")
            return PublishResult(package=name, success=True)

        output = (result.stderr or "") + (result.stdout or "")
        if is_version_conflict(output):
            logger.info(f"Skipped {name} - version already exists")
            return PublishResult(package=name, success=True, skipped=True)

        error = output.strip() or f"npm publish exited with code {result.returncode}"
        logger.error(f"Failed to publish {name}: {error}")
        return PublishResult(package=name, success=False, error=error)
    finally:
        shutil.rmtree(scratch, ignore_errors=True)
