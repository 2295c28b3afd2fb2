"""Azure AD adapter.

Turns a ``PageRequest`` into a ``GraphRequest``, picking the filters and the
cursor format (plain composite cursor, or the advanced filter cursor when
advanced filters apply to the entity), then converts the returned objects
and encodes the next cursor.
"""

from __future__ import annotations

from typing import Any, List, Optional

from adapters.azuread.config import AzureADConfig
from adapters.azuread.datasource import AzureADDatasource
from adapters.azuread.endpoint import COMPLEX_ATTRIBUTE_DELIMITER
from adapters.azuread.entities import Entity
from adapters.azuread.filters import (
    AdvancedFilterCursor,
    EntityFilter,
    decode_advanced_filter_cursor,
    encode_advanced_filter_cursor,
    extract_implicit_filters,
    next_advanced_filter_cursor,
    select_filter_pair,
    validate_advanced_filter_cursor,
)
from adapters.azuread.request import GraphRequest
from adapters.azuread.validation import validate_get_page_request
from adapters.lib.conversion import convert_objects
from adapters.lib.errors import DatasourceConfigError, http_error
from adapters.lib.framework import Adapter, Page, PageRequest
from adapters.lib.logging import get_adapter_logger
from adapters.lib.pagination import CompositeCursor, decode_cursor, encode_cursor

__all__ = ["AzureADAdapter"]


class AzureADAdapter(Adapter[AzureADConfig]):
    """Pages Azure AD entities out of Microsoft Graph.

    Example:
        adapter = AzureADAdapter()
        page = adapter.get_page(
            PageRequest(
                address="graph.microsoft.com",
                auth="Bearer eyJ0...",
                entity=EntityConfig("User", [AttributeConfig("id", unique_id=True)]),
                page_size=100,
                config=AzureADConfig(),
            )
        )
        # feed page.next_cursor back as request.cursor until it is ""
    """

    def __init__(self, datasource: Optional[AzureADDatasource] = None):
        self.datasource = datasource or AzureADDatasource()
        self.logger = get_adapter_logger(__name__)

    def validate_get_page_request(self, request: PageRequest[AzureADConfig]) -> None:
        validate_get_page_request(request)

    def request_page_from_datasource(self, request: PageRequest[AzureADConfig]) -> Page:
        config = request.config or AzureADConfig()
        entity = Entity.parse(request.entity.external_id)

        address = request.address.strip()
        if not address.lower().startswith("https://"):
            address = "https://" + address

        use_advanced_filters = False
        advanced_filters: List[EntityFilter] = []

        if config.advanced_filters is not None and config.advanced_filters.scoped_objects:
            scoped = config.advanced_filters.scoped_objects
            if entity.value in scoped:
                use_advanced_filters = True
                advanced_filters = scoped[entity.value]

            implicit = extract_implicit_filters(config.advanced_filters).get(entity.value)
            if implicit:
                if entity.value in config.filters:
                    raise DatasourceConfigError(
                        f"Implicit filters generated for entity `{entity.value}` are not allowed "
                        "with standard filters.",
                        entity=entity.value,
                    )
                use_advanced_filters = True
                advanced_filters = implicit

        filter: Optional[str] = None
        parent_filter: Optional[str] = None
        member_entity: Optional[Entity] = None
        advanced_cursor = AdvancedFilterCursor()
        cursor: Optional[CompositeCursor[Any]]

        if use_advanced_filters:
            advanced_cursor = decode_advanced_filter_cursor(request.cursor)
            validate_advanced_filter_cursor(advanced_cursor, advanced_filters, entity)
            cursor = advanced_cursor.cursor

            selection = select_filter_pair(advanced_cursor, advanced_filters)
            filter = selection.filter
            parent_filter = selection.parent_filter
            member_entity = selection.member_entity
        else:
            cursor = decode_cursor(request.cursor, value_type=str)
            filter = config.filters.get(entity.value)

            if config.apply_filters_to_members and entity.member_of is not None:
                parent_filter = config.filters.get(entity.member_of.value)

        self.logger.set_context(entity=entity.value, page_size=request.page_size)
        try:
            self.logger.debug(
                "Requesting Azure AD page",
                extra={
                    "advanced_filters": use_advanced_filters,
                    "entity_filter_index": advanced_cursor.entity_filter_index,
                    "member_filter_index": advanced_cursor.member_filter_index,
                },
            )

            response = self.datasource.get_page(
                GraphRequest(
                    base_url=address,
                    token=request.auth or "",
                    entity=entity,
                    page_size=request.page_size,
                    api_version=config.api_version,
                    cursor=cursor,
                    filter=filter,
                    parent_filter=parent_filter,
                    attributes=list(request.entity.attributes),
                    request_timeout_seconds=config.common.request_timeout_seconds,
                    use_advanced_filters=use_advanced_filters,
                    advanced_member_entity=member_entity,
                )
            )

            error = http_error(response.status_code, response.retry_after_header, entity=entity.value)
            if error is not None:
                self.logger.warning("Azure AD request failed", extra={"status": response.status_code})
                raise error

            objects = convert_objects(
                request.entity,
                response.objects,
                complex_attribute_delimiter=COMPLEX_ATTRIBUTE_DELIMITER,
                json_path_attribute_names=True,
                local_timezone_offset=config.common.local_timezone_offset,
            )

            if use_advanced_filters:
                next_cursor = encode_advanced_filter_cursor(
                    next_advanced_filter_cursor(advanced_cursor, advanced_filters, response.next_cursor)
                )
            else:
                next_cursor = encode_cursor(response.next_cursor)

            self.logger.info(
                "Azure AD page complete", extra={"objects": len(objects), "has_more": bool(next_cursor)}
            )
        finally:
            self.logger.clear_context()

        return Page(objects=objects, next_cursor=next_cursor)
