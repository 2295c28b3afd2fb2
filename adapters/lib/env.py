"""Environment variable utilities.

Adapter configs and credentials may reference ``${VAR_NAME}`` placeholders;
these are expanded from the process environment, optionally seeded from a
``.env`` file with python-dotenv.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Optional, Union

from dotenv import find_dotenv, load_dotenv

__all__ = ["expand_env_vars", "expand_config", "load_env_file", "read_secret"]

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load environment variables from a .env file.

    Without ``path`` the nearest .env at or above the working directory is
    used. Returns True if a .env file was found and loaded.
    """
    if path is None:
        path = find_dotenv(usecwd=True) or None
        if path is None:
            return False
    return load_dotenv(dotenv_path=path, override=override)


def expand_env_vars(value: str, *, strict: bool = False) -> str:
    """Expand ``${VAR}`` references in a string.

    Unset variables are left untouched unless ``strict`` is set, in which case
    a KeyError is raised.

    Example:
        >>> os.environ["GRAPH_HOST"] = "graph.microsoft.com"
        >>> expand_env_vars("https://${GRAPH_HOST}")
        'https://graph.microsoft.com'
    """

    def replacer(match: "re.Match[str]") -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            if strict:
                raise KeyError(f"Environment variable not set: {var_name}")
            return match.group(0)
        return env_value

    return ENV_VAR_PATTERN.sub(replacer, value)


def expand_config(value: Any, *, strict: bool = False) -> Any:
    """Recursively expand environment variables in a parsed config document."""
    if isinstance(value, str):
        return expand_env_vars(value, strict=strict)
    if isinstance(value, dict):
        return {key: expand_config(item, strict=strict) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_config(item, strict=strict) for item in value]
    return value


def read_secret(explicit: Optional[str], env_var: str) -> Optional[str]:
    """Return an explicitly passed secret, falling back to ``env_var``."""
    if explicit:
        return expand_env_vars(explicit)
    return os.environ.get(env_var) or None
