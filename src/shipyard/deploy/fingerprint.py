"""Content fingerprints for change detection.

A fingerprint is a SHA-256 digest over the sorted list of
``(relative path, file bytes)`` pairs of every included file in a module.
Both the path and the content feed the digest, so renaming a file changes
the fingerprint even when its bytes are identical.
"""

from __future__ import annotations

import fnmatch
import hashlib
import os
from collections.abc import Iterable, Sequence
from pathlib import Path

from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import FingerprintResult

logger = get_logger(__name__)

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "node_modules",
    ".git",
    ".serverless",
    "coverage",
    "*.log",
    ".env.local",
    ".DS_Store",
)

_READ_CHUNK_SIZE = 8192


def is_excluded(name: str, patterns: Iterable[str]) -> bool:
    """Return True if a file or directory name matches an exclusion pattern."""
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns)


def collect_module_files(
    module_path: Path, exclude_patterns: Sequence[str] = DEFAULT_EXCLUDE_PATTERNS
) -> list[str]:
    """List included files of a module as sorted relative POSIX paths.

    Subtrees that cannot be listed are skipped.
    """
    files: list[str] = []

    def _on_error(error: OSError) -> None:
        logger.debug(f"Skipping unreadable path {error.filename}: {error}")

    for dirpath, dirnames, filenames in os.walk(module_path, onerror=_on_error):
        # Prune in place so excluded directories are never descended into
        dirnames[:] = [d for d in dirnames if not is_excluded(d, exclude_patterns)]
        base = Path(dirpath)
        for filename in filenames:
            if is_excluded(filename, exclude_patterns):
                continue
            full_path = base / filename
            if not full_path.is_file():
                continue
            files.append(full_path.relative_to(module_path).as_posix())

    files.sort()
    return files


def compute_fingerprint(
    module_path: Path, exclude_patterns: Sequence[str] = DEFAULT_EXCLUDE_PATTERNS
) -> FingerprintResult:
    """Compute the content fingerprint of a module directory.

    Args:
        module_path: Module root directory
        exclude_patterns: fnmatch patterns matched against each path segment

    Returns:
        FingerprintResult with the hex digest and the files that were hashed
    """
    digest = hashlib.sha256()
    included: list[str] = []

    for relative in collect_module_files(module_path, exclude_patterns):
        try:
            with open(module_path / relative, "rb") as f:
                # An unreadable file contributes nothing to the digest
                chunks = list(iter(lambda: f.read(_READ_CHUNK_SIZE), b""))
        except OSError as e:
            logger.debug(f"Skipping unreadable file {relative}: {e}")
            continue
        digest.update(relative.encode("utf-8") + b"\0")
        for chunk in chunks:
            digest.update(chunk)
        included.append(relative)

    return FingerprintResult(digest=digest.hexdigest(), files=included)


class ContentFingerprinter:
    """Callable fingerprinter bound to an exclusion list."""

    def __init__(self, exclude_patterns: Sequence[str] | None = None) -> None:
        """Initialize with the default exclusions plus any extra patterns."""
        self.exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS + tuple(
            exclude_patterns or ()
        )

    def __call__(self, module_path: Path) -> FingerprintResult:
        """Fingerprint a module directory."""
        return compute_fingerprint(module_path, self.exclude_patterns)
