"""Deployment state persistence.

The state document maps stage name to module name to the module's last
successful deployment record. It is bookkeeping, not a source of truth:
read and write failures are logged as warnings and never fail a run.
Concurrent runs against the same file are not coordinated (last save wins).
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment_state import DeploymentRecord, DeploymentState

logger = get_logger(__name__)

STATE_VERSION = "1.0"
DEFAULT_STATE_PATH = Path(".shipyard") / "deployment-state.json"


def get_state_path(workspace_root: Path, state_file: str | Path | None = None) -> Path:
    """Return the deployment state file path for a workspace."""
    return workspace_root / (state_file or DEFAULT_STATE_PATH)


def _parse_state(state_path: Path) -> DeploymentState | None:
    """Read the full state document.

    Returns:
        The document (empty if absent or blank), or None if an existing
        document could not be decoded or failed validation
    """
    if not state_path.exists():
        return DeploymentState(version=STATE_VERSION)

    try:
        content = state_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(f"Could not read deployment state at {state_path}: {exc}")
        return None

    if not content.strip():
        return DeploymentState(version=STATE_VERSION)

    try:
        state = DeploymentState.model_validate_json(content)
    except ValidationError as exc:
        logger.warning(
            f"Ignoring invalid deployment state format in {state_path}: "
            f"{exc.error_count()} error(s)"
        )
        return None

    if not state.version:
        state = state.model_copy(update={"version": STATE_VERSION})
    return state


def _read_state(state_path: Path) -> DeploymentState:
    """Read the full state document, falling back to an empty document."""
    state = _parse_state(state_path)
    return state if state is not None else DeploymentState(version=STATE_VERSION)


def _backup_rejected(state_path: Path) -> Path | None:
    """Copy a rejected state document aside before it is overwritten."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    backup_path = state_path.with_name(f"{state_path.name}.rejected-{stamp}")
    try:
        shutil.copy2(state_path, backup_path)
    except OSError as exc:
        logger.warning(f"Could not back up rejected state {state_path}: {exc}")
        return None
    return backup_path


def _write_atomic(state_path: Path, payload: str) -> None:
    """Write payload next to state_path, then rename it into place."""
    state_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{state_path.name}.", suffix=".tmp", dir=state_path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, state_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class DeploymentStateStore:
    """Per-stage view over the deployment state document."""

    def __init__(self, state_path: Path) -> None:
        """Initialize the store.

        Args:
            state_path: Location of the JSON state document
        """
        self.state_path = state_path

    def load_document(self) -> DeploymentState:
        """Return the whole state document (empty if absent or unreadable)."""
        return _read_state(self.state_path)

    def load(self, environment: str) -> dict[str, DeploymentRecord]:
        """Return the records for one stage, keyed by module name.

        Never raises: a missing or corrupt document yields an empty mapping.
        """
        state = _read_state(self.state_path)
        return dict(state.environments.get(environment, {}))

    def save(self, environment: str, records: dict[str, DeploymentRecord]) -> bool:
        """Replace one stage's records and rewrite the document atomically.

        Other stages in the document are preserved untouched. An existing
        document that cannot be read is copied aside before being replaced,
        since its other stages cannot be carried over.

        Returns:
            True if the document was written, False if the write failed
        """
        state = _parse_state(self.state_path)
        if state is None:
            backup_path = _backup_rejected(self.state_path)
            logger.warning(
                f"Replacing unreadable deployment state {self.state_path}; "
                "records of other stages are discarded"
                + (f" (previous document kept at {backup_path})" if backup_path else "")
            )
            state = DeploymentState(version=STATE_VERSION)
        state.environments[environment] = dict(records)
        payload = json.dumps(state.model_dump(mode="json"), indent=2, sort_keys=True)

        try:
            _write_atomic(self.state_path, payload)
        except OSError as exc:
            logger.warning(
                f"Could not save deployment state to {self.state_path}: {exc}"
            )
            return False

        logger.debug(
            f"Saved {len(records)} deployment record(s) for stage "
            f"'{environment}' to {self.state_path}"
        )
        return True
