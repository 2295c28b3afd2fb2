"""Rootly adapter."""

from __future__ import annotations

from typing import Optional

from adapters.lib.conversion import convert_objects
from adapters.lib.framework import Adapter, Page, PageRequest
from adapters.rootly.config import RootlyConfig
from adapters.rootly.datasource import RootlyDatasource
from adapters.rootly.endpoint import RootlyRequest
from adapters.rootly.validation import validate_get_page_request

__all__ = ["RootlyAdapter"]


class RootlyAdapter(Adapter[RootlyConfig]):
    """Pages Rootly resources (incidents, users, services, ...).

    The cursor is the page number of the next page.
    """

    def __init__(self, datasource: Optional[RootlyDatasource] = None):
        self.datasource = datasource or RootlyDatasource()

    def validate_get_page_request(self, request: PageRequest[RootlyConfig]) -> None:
        validate_get_page_request(request)

    def request_page_from_datasource(self, request: PageRequest[RootlyConfig]) -> Page:
        config = request.config or RootlyConfig()
        entity = request.entity.external_id

        address = request.address
        if not address.startswith("https://"):
            address = f"https://{address}"
        if not address.endswith("/"):
            address = f"{address}/"

        response = self.datasource.get_page(
            RootlyRequest(
                base_url=f"{address}{config.api_version}",
                authorization=request.auth or "",
                entity=entity,
                page_size=request.page_size,
                cursor=request.cursor or None,
                filter=config.filters.get(entity, ""),
                includes=config.includes.get(entity, ""),
                request_timeout_seconds=config.common.request_timeout_seconds,
            )
        )

        objects = convert_objects(
            request.entity,
            response.objects,
            json_path_attribute_names=True,
            local_timezone_offset=config.common.local_timezone_offset,
            allow_date_only=True,
        )

        return Page(objects=objects, next_cursor=response.next_cursor or "")
