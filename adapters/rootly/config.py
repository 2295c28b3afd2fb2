"""Rootly adapter configuration.

Example:
    {
        "requestTimeoutSeconds": 10,
        "apiVersion": "v1",
        "filters": {
            "users": "email=rufus_raynor@hegmann.test",
            "incidents": "status=started&severity=high"
        },
        "includes": {
            "incidents": "form_field_selections"
        }
    }

``filters`` values are query strings; each ``key=value`` pair is sent as
``filter[key]=value``. ``includes`` values are passed through as the
JSON:API ``include`` parameter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from adapters.lib.config import CommonConfig
from adapters.lib.errors import DatasourceConfigError

__all__ = ["RootlyConfig", "SUPPORTED_API_VERSIONS"]

SUPPORTED_API_VERSIONS = frozenset({"v1"})


def _string_map(data: Dict[str, Any], key: str) -> Dict[str, str]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise DatasourceConfigError(f"{key} must be a mapping of entity to string.")
    return {str(k): str(v) for k, v in value.items()}


@dataclass
class RootlyConfig:
    """Configuration for the Rootly adapter."""

    api_version: str = "v1"
    filters: Dict[str, str] = field(default_factory=dict)
    includes: Dict[str, str] = field(default_factory=dict)
    common: CommonConfig = field(default_factory=CommonConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RootlyConfig":
        data = data or {}
        return cls(
            api_version=data.get("apiVersion", "v1"),
            filters=_string_map(data, "filters"),
            includes=_string_map(data, "includes"),
            common=CommonConfig.from_dict(data),
        )

    def validate(self) -> None:
        """Raise DatasourceConfigError if the API version is unusable."""
        if not self.api_version:
            problem = "apiVersion is not set"
        elif self.api_version not in SUPPORTED_API_VERSIONS:
            problem = f"apiVersion is not supported: {self.api_version}"
        else:
            return
        raise DatasourceConfigError(f"Rootly config is invalid: {problem}.")
