"""Environment variable substitution for configuration files."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping

from shipyard.lib.errors import ConfigError

# ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def substitute_env_vars(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Replace ``${VAR}`` references with values from the environment.

    Args:
        text: Raw configuration text
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        Text with every reference substituted

    Raises:
        ConfigError: If a referenced variable is unset and has no default
    """
    env = os.environ if environ is None else environ

    def _replace(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        value = env.get(name)
        if value is not None:
            return value
        if default is not None:
            return default
        raise ConfigError(
            name,
            f"Environment variable '{name}' is referenced but not set",
        )

    return ENV_VAR_PATTERN.sub(_replace, text)
