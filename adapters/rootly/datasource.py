"""Rootly datasource.

Rootly is a JSON:API service paged by page number:

    GET /v1/incidents?page[number]=2&page[size]=50
    {"data": [...], "included": [...], "meta": {"current_page": 2, "total_pages": 7}}

The next cursor is the next page number while ``current_page`` is below
``total_pages``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from adapters.lib.errors import InternalError, UpstreamError
from adapters.lib.http import HttpClient
from adapters.lib.logging import get_adapter_logger
from adapters.rootly.endpoint import RootlyRequest, construct_endpoint
from adapters.rootly.includes import enrich_all_incident_data, process_includes

__all__ = ["RootlyDatasource", "RootlyResponse", "INCIDENTS_ENTITY"]

SERVICE_NAME = "Rootly"
INCIDENTS_ENTITY = "incidents"
JSON_API_CONTENT_TYPE = "application/vnd.api+json"


@dataclass
class RootlyResponse:
    objects: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None


def _page_number(meta: Dict[str, Any], key: str) -> int:
    value = meta.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


class RootlyDatasource:
    """Fetches pages of Rootly resources."""

    def __init__(self, client: Optional[HttpClient] = None):
        self.client = client or HttpClient()

    def get_page(self, request: RootlyRequest) -> RootlyResponse:
        """Fetch one page for ``request``.

        Raises:
            UpstreamError: If Rootly answers with a non-200 status
            InternalError: If the response cannot be parsed or the request fails
        """
        logger = get_adapter_logger(__name__, entity=request.entity, page_size=request.page_size)
        logger.info("Starting datasource request")

        url = construct_endpoint(request)
        logger.info("Sending request to datasource", extra={"url": url})

        response = self.client.get(
            url,
            headers={"Authorization": request.authorization, "Content-Type": JSON_API_CONTENT_TYPE},
            timeout_seconds=request.request_timeout_seconds,
            service=SERVICE_NAME,
        )

        body = response.text

        if response.status_code != 200:
            retry_after = response.headers.get("Retry-After", "")
            logger.error(
                "Datasource responded with an error",
                extra={"url": url, "status": response.status_code, "retry_after": retry_after, "body": body},
            )
            try:
                json.loads(body)
            except ValueError as e:
                raise InternalError(
                    f"Failed to parse error response: {e}. Status: {response.status_code}. Body: {body}.",
                    entity=request.entity,
                ) from e
            raise UpstreamError(
                f"Received Http Error {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                retry_after=retry_after,
                entity=request.entity,
            )

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise InternalError(f"Failed to parse response: {e}. Body: {body}.", entity=request.entity) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise InternalError(
                f"Invalid response format: missing required data field. Body: {body}.",
                entity=request.entity,
            )

        included = payload.get("included")
        if not isinstance(included, list):
            included = None

        objects = process_includes(data, included)
        if request.entity == INCIDENTS_ENTITY:
            objects = enrich_all_incident_data(objects, included)

        meta = payload.get("meta")
        if not isinstance(meta, dict):
            meta = {}
        current_page = _page_number(meta, "current_page")
        total_pages = _page_number(meta, "total_pages")

        next_cursor = str(current_page + 1) if current_page < total_pages else None

        logger.info(
            "Datasource request completed successfully",
            extra={"status": response.status_code, "objects": len(objects), "next_cursor": next_cursor},
        )

        return RootlyResponse(objects=objects, next_cursor=next_cursor)
