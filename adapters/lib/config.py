"""Shared adapter configuration.

Adapter configs are plain dataclasses built from the camelCase JSON/YAML
document a caller supplies. This module holds the settings every adapter
shares and the YAML loader used by the CLI.

Example YAML (azuread.yaml):
    requestTimeoutSeconds: 10
    localTimeZoneOffset: 0
    apiVersion: v1.0
    filters:
      User: "accountEnabled eq true"
    applyFiltersToMembers: false
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from adapters.lib.env import expand_config
from adapters.lib.errors import DatasourceConfigError

logger = logging.getLogger(__name__)

__all__ = [
    "CommonConfig",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "load_config_file",
]

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class CommonConfig:
    """Settings shared by every adapter.

    ``local_timezone_offset`` is in seconds east of UTC and is applied to
    datetime values that carry no explicit zone.
    """

    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    local_timezone_offset: int = 0

    def __post_init__(self) -> None:
        if self.request_timeout_seconds <= 0:
            raise DatasourceConfigError(
                f"requestTimeoutSeconds must be positive, got {self.request_timeout_seconds}."
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CommonConfig":
        """Build from the camelCase config document; missing keys use defaults."""
        data = data or {}
        timeout = data.get("requestTimeoutSeconds")
        offset = data.get("localTimeZoneOffset")
        return cls(
            request_timeout_seconds=int(timeout) if timeout is not None else DEFAULT_REQUEST_TIMEOUT_SECONDS,
            local_timezone_offset=int(offset) if offset is not None else 0,
        )


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML (or JSON) adapter config and expand ``${VAR}`` references.

    Raises:
        FileNotFoundError: If the file doesn't exist
        DatasourceConfigError: If the file is not a valid mapping
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DatasourceConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if document is None:
        logger.debug("Config file %s is empty, using defaults", config_path)
        return {}

    if not isinstance(document, dict):
        raise DatasourceConfigError(
            f"Configuration file {config_path} must contain a mapping, got {type(document).__name__}."
        )

    return expand_config(document)
