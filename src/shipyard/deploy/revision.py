"""Source revision lookups backed by git.

The resolver is injected into the decision policy and the deployer instead of
being called as a free function, so revision-based change detection can be
exercised without a real checkout.
"""

from __future__ import annotations

import subprocess  # nosec B404
from pathlib import Path
from typing import Protocol

from shipyard.lib.logging_config import get_logger

logger = get_logger(__name__)


class RevisionResolver(Protocol):
    """Capability for querying version-control history."""

    def current_revision(self) -> str | None:
        """Return the current revision, or None if it cannot be determined."""
        ...

    def has_changes(self, module_path: Path, since: str | None, until: str) -> bool:
        """Return True if files under module_path differ between revisions."""
        ...


class GitCommandError(RuntimeError):
    """Raised when a git invocation fails."""


class GitRevisionResolver:
    """Revision resolver that shells out to ``git``."""

    def __init__(self, repo_dir: Path, git_executable: str = "git") -> None:
        """Initialize the resolver.

        Args:
            repo_dir: Any directory inside the repository
            git_executable: git binary to invoke
        """
        self.repo_dir = repo_dir
        self.git_executable = git_executable
        self._toplevel: Path | None = None

    def _git(self, *args: str) -> str:
        try:
            result = subprocess.run(  # noqa: S603  # nosec B603
                [self.git_executable, *args],
                cwd=self.repo_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise GitCommandError(f"git {args[0]} could not be started: {e}") from e
        if result.returncode != 0:
            raise GitCommandError(
                f"git {' '.join(args)} exited with {result.returncode}: "
                f"{result.stderr.strip()}"
            )
        return result.stdout

    def toplevel(self) -> Path:
        """Return the repository root directory.

        Raises:
            GitCommandError: If the directory is not inside a git repository
        """
        if self._toplevel is None:
            self._toplevel = Path(self._git("rev-parse", "--show-toplevel").strip())
        return self._toplevel

    def current_revision(self) -> str | None:
        """Return the commit checked out at HEAD, or None outside a repository."""
        try:
            revision = self._git("rev-parse", "HEAD").strip()
        except GitCommandError as e:
            logger.debug(f"Current revision unavailable: {e}")
            return None
        return revision or None

    def changed_files(self, module_path: Path, since: str, until: str) -> list[str]:
        """List files under module_path that differ between two revisions.

        Raises:
            GitCommandError: If history cannot be queried
        """
        toplevel = self.toplevel()
        try:
            relative = module_path.resolve().relative_to(toplevel.resolve())
        except ValueError as e:
            raise GitCommandError(
                f"{module_path} is outside the repository at {toplevel}"
            ) from e
        output = self._git(
            "diff", "--name-only", since, until, "--", relative.as_posix() or "."
        )
        return [line for line in output.splitlines() if line.strip()]

    def has_changes(self, module_path: Path, since: str | None, until: str) -> bool:
        """Return True if the module changed between two revisions.

        A missing ``since`` revision or any failure to read history counts as
        changed, so the module is redeployed rather than silently skipped.
        """
        if not since:
            return True
        if since == until:
            return False
        try:
            return bool(self.changed_files(module_path, since, until))
        except GitCommandError as e:
            logger.warning(
                f"Revision change detection failed for {module_path}: {e}"
            )
            return True
