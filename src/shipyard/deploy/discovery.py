"""Discovery of deployable modules in a workspace."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import Module

logger = get_logger(__name__)

DEFAULT_MODULE_DIRS = ("modules",)
DEFAULT_MANIFEST = "serverless.yml"
# Equivalent manifest spellings accepted by the deployment tool
MANIFEST_ALTERNATIVES = ("serverless.yml", "serverless.yaml", "serverless.ts")
SKIPPED_DIRECTORIES = {"node_modules"}


def _manifest_candidates(manifest: str) -> tuple[str, ...]:
    if manifest in MANIFEST_ALTERNATIVES:
        return MANIFEST_ALTERNATIVES
    return (manifest,)


def _iter_module_dirs(scan_root: Path) -> Iterable[Path]:
    try:
        entries = sorted(scan_root.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.warning(f"Cannot list module directory {scan_root}: {e}")
        return []
    return [
        entry
        for entry in entries
        if entry.is_dir()
        and not entry.name.startswith(".")
        and entry.name not in SKIPPED_DIRECTORIES
    ]


def discover_modules(
    workspace_root: Path,
    module_dirs: Sequence[str] = DEFAULT_MODULE_DIRS,
    manifest: str = DEFAULT_MANIFEST,
) -> list[Module]:
    """Enumerate deployable modules under the workspace.

    A module is any direct child directory of one of ``module_dirs`` that has
    the deployment manifest at its root. Results are ordered by scan root,
    then by directory name. Finding nothing returns an empty list; the caller
    decides whether that is fatal.

    Args:
        workspace_root: Workspace directory
        module_dirs: Subdirectories of the workspace to scan
        manifest: Manifest filename identifying a module

    Returns:
        Discovered modules in stable order
    """
    candidates = _manifest_candidates(manifest)
    modules: list[Module] = []
    seen: set[str] = set()

    for module_dir in module_dirs:
        scan_root = workspace_root / module_dir
        if not scan_root.is_dir():
            logger.debug(f"Module directory {scan_root} does not exist, skipping")
            continue

        for path in _iter_module_dirs(scan_root):
            if not any((path / name).is_file() for name in candidates):
                continue
            if path.name in seen:
                logger.warning(
                    f"Duplicate module name '{path.name}' at {path}, skipping"
                )
                continue
            seen.add(path.name)
            modules.append(
                Module(
                    name=path.name,
                    path=path.resolve(),
                    has_env_file=(path / ".env").is_file(),
                )
            )

    logger.debug(f"Discovered {len(modules)} modules under {workspace_root}")
    return modules
