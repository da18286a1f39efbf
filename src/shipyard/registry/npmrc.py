"""Generation of npm client configuration pointing at the private registry."""

from __future__ import annotations

import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

from shipyard.lib.errors import RegistryError
from shipyard.lib.logging_config import get_logger

logger = get_logger(__name__)

NPMRC_FILENAME = ".npmrc"
NPMRC_MODE = 0o600


def registry_host(registry_url: str) -> str:
    """Strip the scheme and trailing slash from a registry URL."""
    return re.sub(r"^https?://", "", registry_url).rstrip("/")


def format_npmrc_content(
    registry_url: str,
    token: str,
    namespace: str,
    generated_at: datetime | None = None,
) -> str:
    """Render .npmrc content routing a scope to the registry.

    Args:
        registry_url: Repository endpoint URL
        token: Registry authorization token
        namespace: npm scope, with or without the leading '@'
        generated_at: Timestamp written into the header

    Returns:
        File content ending with a newline
    """
    scope = namespace if namespace.startswith("@") else f"@{namespace}"
    host = registry_host(registry_url)
    generated_at = generated_at or datetime.now(timezone.utc)
    return "\n".join(
        [
            "# AWS CodeArtifact Registry Configuration",
            f"# Generated: {generated_at.isoformat()}",
            "",
            "# Registry URL for scoped packages",
            f"{scope}:registry={registry_url}",
            "",
            "# Authentication token",
            f"//{host}/:always-auth=true",
            f"//{host}/:_authToken={token}",
            "",
        ]
    )


def backup_existing_npmrc(target_dir: Path) -> Path | None:
    """Copy an existing .npmrc aside with a timestamped name.

    Returns:
        Path of the backup, or None when there was nothing to back up
    """
    npmrc_path = target_dir / NPMRC_FILENAME
    if not npmrc_path.exists():
        return None

    stamp = re.sub(r"[:.]", "-", datetime.now(timezone.utc).isoformat())
    backup_path = target_dir / f"{NPMRC_FILENAME}.backup.{stamp}"
    shutil.copy2(npmrc_path, backup_path)
    logger.info(f"Backed up existing {NPMRC_FILENAME} to {backup_path.name}")
    return backup_path


def write_registry_config(
    target_dir: Path, registry_url: str, token: str, namespace: str
) -> Path:
    """Write an owner-only .npmrc into a consumer directory.

    Raises:
        RegistryError: If the target directory does not exist
    """
    target_dir = Path(target_dir)
    if not target_dir.is_dir():
        raise RegistryError(
            operation="write_registry_config",
            message=f"Target directory does not exist: {target_dir}",
        )

    backup_existing_npmrc(target_dir)
    npmrc_path = target_dir / NPMRC_FILENAME
    fd = os.open(npmrc_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, NPMRC_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        # O_CREAT's mode only applies to new files; restrict before the token lands
        os.chmod(npmrc_path, NPMRC_MODE)
        f.write(format_npmrc_content(registry_url, token, namespace))
    logger.info(f"Generated {NPMRC_FILENAME} in {target_dir}")
    return npmrc_path
