"""Workspace configuration loader.

Loads ``shipyard.yaml`` from the workspace root. The file is optional; when it
is absent the built-in defaults apply (``modules/`` scan root, ``dev``/``uat``
content fingerprinting, ``prod`` revision diffing).
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from shipyard.config.env_loader import substitute_env_vars
from shipyard.config.validator import flatten_pydantic_errors
from shipyard.lib.errors import ConfigError
from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import WorkspaceConfig

logger = get_logger(__name__)

CONFIG_FILENAME = "shipyard.yaml"


def _read_yaml_with_env_substitution(
    path: Path, environ: Mapping[str, str] | None = None
) -> dict[str, Any] | None:
    """Read a YAML file with environment variable substitution.

    Raises:
        OSError: If file cannot be read
        yaml.YAMLError: If YAML parsing fails
        ConfigError: If env var substitution fails
    """
    raw_text = path.read_text(encoding="utf-8")
    substituted = substitute_env_vars(raw_text, environ)
    content = yaml.safe_load(substituted)
    return content if content else None


def load_workspace_config(
    workspace_root: Path,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> WorkspaceConfig:
    """Load and validate the workspace configuration.

    Args:
        workspace_root: Workspace directory
        config_path: Explicit configuration file; must exist when given
        environ: Environment used for ``${VAR}`` substitution

    Returns:
        Validated WorkspaceConfig (defaults when no file exists)

    Raises:
        ConfigError: If the file is unreadable, malformed or invalid
    """
    path = config_path or workspace_root / CONFIG_FILENAME
    if not path.exists():
        if config_path is not None:
            raise ConfigError("config", f"Configuration file not found: {path}")
        logger.debug(f"No {CONFIG_FILENAME} in {workspace_root}, using defaults")
        return WorkspaceConfig()

    try:
        content = _read_yaml_with_env_substitution(path, environ)
    except OSError as e:
        raise ConfigError("config", f"Failed to read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError("yaml_parse", f"Failed to parse {path}: {e}") from e

    if content is None:
        return WorkspaceConfig()
    if not isinstance(content, dict):
        raise ConfigError("config", f"{path} must contain a YAML mapping")

    try:
        config = WorkspaceConfig.model_validate(content)
    except PydanticValidationError as e:
        details = "\n".join(f"  - {msg}" for msg in flatten_pydantic_errors(e))
        raise ConfigError("config", f"Invalid configuration in {path}:\n{details}") from e

    logger.debug(f"Loaded workspace configuration from {path}")
    return config
