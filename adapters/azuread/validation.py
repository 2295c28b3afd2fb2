"""Validation of Azure AD page requests."""

from __future__ import annotations

from adapters.azuread.config import AzureADConfig
from adapters.azuread.entities import Entity
from adapters.azuread.filters import validate_advanced_filter_configuration
from adapters.lib.errors import DatasourceConfigError, EntityConfigError, InvalidPageRequestError
from adapters.lib.framework import PageRequest

__all__ = ["validate_get_page_request", "MAX_PAGE_SIZE", "UNIQUE_ID_ATTRIBUTE"]

UNIQUE_ID_ATTRIBUTE = "id"

# Typical Graph maximum; some attribute selections lower it further
MAX_PAGE_SIZE = 999


def validate_get_page_request(request: PageRequest[AzureADConfig]) -> None:
    """Check ``request`` before anything is sent to Graph.

    Raises:
        AdapterError: The first problem found
    """
    config = request.config
    if config is None:
        raise DatasourceConfigError("Azure AD config is invalid: request contains no config.")

    config.validate()

    validate_advanced_filter_configuration(config.advanced_filters, config.filters)

    if request.address.strip().lower().startswith("http://"):
        raise DatasourceConfigError("The provided HTTP protocol is not supported.")

    if not request.auth:
        raise DatasourceConfigError(
            "Provided datasource auth is missing required http authorization credentials."
        )

    if not request.auth.startswith("Bearer "):
        raise DatasourceConfigError('Provided auth token is missing required "Bearer " prefix.')

    Entity.parse(request.entity.external_id)

    if not request.entity.has_attribute(UNIQUE_ID_ATTRIBUTE):
        raise EntityConfigError(
            "Requested entity attributes are missing unique ID attribute.",
            entity=request.entity.external_id,
        )

    if request.ordered:
        raise EntityConfigError("Ordered must be set to false.", entity=request.entity.external_id)

    if request.page_size > MAX_PAGE_SIZE:
        raise InvalidPageRequestError(
            f"Provided page size ({request.page_size}) exceeds the maximum allowed ({MAX_PAGE_SIZE}).",
            details={"page_size": request.page_size, "max_page_size": MAX_PAGE_SIZE},
        )
