"""Discovery, validation and publish ordering of library packages."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from pathlib import Path

from shipyard.lib.errors import PublishError
from shipyard.lib.logging_config import get_logger

logger = get_logger(__name__)

PACKAGE_MANIFEST = "package.json"
VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+")
DEPENDENCY_FIELDS = ("dependencies", "peerDependencies", "optionalDependencies")


@dataclass
class PackageInfo:
    """A package.json manifest found in the library workspace."""

    path: Path
    name: str | None
    version: str | None
    dependencies: set[str] = field(default_factory=set)
    private: bool = False

    @property
    def valid(self) -> bool:
        return bool(
            isinstance(self.name, str)
            and self.name
            and isinstance(self.version, str)
            and VERSION_PATTERN.match(self.version)
        )


def find_packages(root: Path) -> list[Path]:
    """Return every package.json under root, skipping node_modules and dot-dirs."""
    found: list[Path] = []

    def _on_error(error: OSError) -> None:
        logger.warning(f"Failed to scan directory {error.filename}: {error.strerror}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(
            d for d in dirnames if d != "node_modules" and not d.startswith(".")
        )
        if PACKAGE_MANIFEST in filenames:
            found.append(Path(dirpath) / PACKAGE_MANIFEST)
    return found


def read_package(manifest: Path) -> PackageInfo:
    """Read a manifest; unreadable or malformed files yield an invalid package."""
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.debug(f"Failed to read package info from {manifest}: {e}")
        return PackageInfo(path=manifest.parent, name=None, version=None)
    if not isinstance(data, dict):
        return PackageInfo(path=manifest.parent, name=None, version=None)

    dependencies: set[str] = set()
    for dep_field in DEPENDENCY_FIELDS:
        section = data.get(dep_field)
        if isinstance(section, dict):
            dependencies.update(section)

    name = data.get("name")
    version = data.get("version")
    return PackageInfo(
        path=manifest.parent,
        name=name if isinstance(name, str) else None,
        version=version if isinstance(version, str) else None,
        dependencies=dependencies,
        private=bool(data.get("private", False)),
    )


def order_packages(packages: Iterable[PackageInfo]) -> list[PackageInfo]:
    """Order packages so internal dependencies are published first.

    Packages without internal dependencies keep their discovery order.

    Raises:
        PublishError: If internal dependencies form a cycle
    """
    by_name = {pkg.name: pkg for pkg in packages if pkg.name}
    sorter: TopologicalSorter[str] = TopologicalSorter()
    for name, pkg in by_name.items():
        sorter.add(name, *sorted(d for d in pkg.dependencies if d in by_name))
    try:
        order = list(sorter.static_order())
    except CycleError as e:
        cycle = " -> ".join(e.args[1]) if len(e.args) > 1 else "unknown"
        raise PublishError(
            package=cycle.split(" -> ")[0], message=f"Dependency cycle: {cycle}"
        ) from e
    return [by_name[name] for name in order]


def scan_library(root: Path) -> list[PackageInfo]:
    """Find, validate and order the publishable packages under root.

    Invalid and private packages are logged and left out.
    """
    publishable: list[PackageInfo] = []
    for manifest in find_packages(root):
        pkg = read_package(manifest)
        if not pkg.valid:
            logger.warning(f"Skipping invalid package at {pkg.path}")
            continue
        if pkg.private:
            logger.info(f"Skipping private package {pkg.name}")
            continue
        publishable.append(pkg)
    return order_packages(publishable)
