"""Azure AD adapter configuration.

Example:
    {
        "requestTimeoutSeconds": 10,
        "localTimeZoneOffset": 43200,
        "apiVersion": "v1.0",
        "filters": {
            "User": "accountEnabled eq true"
        },
        "applyFiltersToMembers": true
    }

``filters`` maps an entity to a native Graph ``$filter`` expression. With
``applyFiltersToMembers`` the filter of a member entity's parent (Group for
GroupMember, User for RoleMember) also restricts the outer collection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from adapters.azuread.filters import AdvancedFilters
from adapters.lib.config import CommonConfig
from adapters.lib.errors import DatasourceConfigError

__all__ = ["AzureADConfig", "SUPPORTED_API_VERSIONS"]

SUPPORTED_API_VERSIONS = frozenset({"v1.0"})


@dataclass
class AzureADConfig:
    """Configuration for the Azure AD adapter."""

    api_version: str = "v1.0"
    filters: Dict[str, str] = field(default_factory=dict)
    apply_filters_to_members: bool = False
    advanced_filters: Optional[AdvancedFilters] = None
    common: CommonConfig = field(default_factory=CommonConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AzureADConfig":
        """Build from the camelCase config document."""
        data = data or {}

        filters = data.get("filters") or {}
        if not isinstance(filters, dict):
            raise DatasourceConfigError("filters must be a mapping of entity to filter expression.")

        advanced = data.get("advancedFilters")
        return cls(
            api_version=data.get("apiVersion", "v1.0"),
            filters={str(k): str(v) for k, v in filters.items()},
            apply_filters_to_members=bool(data.get("applyFiltersToMembers", False)),
            advanced_filters=AdvancedFilters.from_dict(advanced) if advanced is not None else None,
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
        raise DatasourceConfigError(f"Azure AD config is invalid: {problem}.")
