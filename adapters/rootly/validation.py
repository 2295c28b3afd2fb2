"""Validation of Rootly page requests."""

from __future__ import annotations

import re

from adapters.lib.errors import DatasourceConfigError, EntityConfigError, InvalidPageRequestError
from adapters.lib.framework import PageRequest
from adapters.rootly.config import RootlyConfig

__all__ = ["validate_get_page_request", "MIN_PAGE_SIZE", "MAX_PAGE_SIZE"]

UNIQUE_ID_ATTRIBUTE = "id"
MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 1000

_PAGE_NUMBER = re.compile(r"^[1-9]\d*$")


def validate_get_page_request(request: PageRequest[RootlyConfig]) -> None:
    """Check ``request`` before anything is sent to Rootly.

    Raises:
        AdapterError: The first problem found
    """
    if request.config is None:
        raise DatasourceConfigError("request contains no config")

    request.config.validate()

    if request.address.startswith("http://"):
        raise DatasourceConfigError("The provided HTTP protocol is not supported.")

    if not request.auth:
        raise DatasourceConfigError(
            "Provided datasource auth is missing required http authorization credentials."
        )

    if not request.auth.startswith("Bearer "):
        raise DatasourceConfigError('Provided auth token is missing required "Bearer " prefix.')

    if not request.entity.has_attribute(UNIQUE_ID_ATTRIBUTE):
        raise EntityConfigError(
            "Requested entity attributes are missing unique ID attribute.",
            entity=request.entity.external_id,
        )

    if not MIN_PAGE_SIZE <= request.page_size <= MAX_PAGE_SIZE:
        raise InvalidPageRequestError(
            f"Provided page size ({request.page_size}) does not fall within the allowed range "
            f"({MIN_PAGE_SIZE}-{MAX_PAGE_SIZE}).",
            details={"page_size": request.page_size},
        )

    if request.cursor and not _PAGE_NUMBER.match(request.cursor):
        raise InvalidPageRequestError(
            f"Provided cursor ({request.cursor}) is not a valid page number.",
            entity=request.entity.external_id,
        )
