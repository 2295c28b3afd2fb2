"""Azure AD (Microsoft Graph) adapter."""

from adapters.azuread.adapter import AzureADAdapter
from adapters.azuread.config import AzureADConfig
from adapters.azuread.datasource import AzureADDatasource
from adapters.azuread.entities import Entity
from adapters.azuread.filters import AdvancedFilters, extract_implicit_filters
from adapters.azuread.request import GraphRequest

__all__ = [
    "AzureADAdapter",
    "AzureADConfig",
    "AzureADDatasource",
    "AdvancedFilters",
    "Entity",
    "GraphRequest",
    "extract_implicit_filters",
]
