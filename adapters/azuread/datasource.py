"""Microsoft Graph datasource.

Flat entities are one GET per page. Member entities (GroupMember,
RoleMember, and Users/Groups reached through advanced filters) are paged
two levels deep: one outer object at a time is fetched with page size 1,
then its members are paged, and pages are accumulated across outer objects
until the requested page size is reached.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from adapters.azuread.endpoint import UNIQUE_ID_ATTRIBUTE, construct_endpoint
from adapters.azuread.entities import Entity
from adapters.azuread.request import GraphRequest
from adapters.lib.errors import InternalError, InvalidPageRequestError
from adapters.lib.http import HttpClient
from adapters.lib.pagination import (
    CompositeCursor,
    DatasourceResponse,
    accumulate_page,
    fetch_collection_page,
    next_cursor_from_page_size,
    paginate_objects,
    parse_offset,
    validate_composite_cursor,
)

logger = logging.getLogger(__name__)

__all__ = ["AzureADDatasource", "parse_response"]

SERVICE_NAME = "Azure AD"


def _link_group_member(member: Dict[str, Any], member_id: str, group_id: str) -> Dict[str, Any]:
    linked = dict(member)
    linked["id"] = f"{member_id}-{group_id}"
    linked["memberId"] = member_id
    linked["groupId"] = group_id
    return linked


def _link_role_member(member: Dict[str, Any], role_id: str, user_id: str) -> Dict[str, Any]:
    # The listing is a user's roles, so the "member" is the outer user
    linked = dict(member)
    linked["id"] = f"{role_id}-{user_id}"
    linked["memberId"] = user_id
    linked["roleId"] = role_id
    return linked


_MEMBER_LINKS: Dict[Entity, Callable[[Dict[str, Any], str, str], Dict[str, Any]]] = {
    Entity.GROUP_MEMBER: _link_group_member,
    Entity.ROLE_MEMBER: _link_role_member,
}


def parse_response(body: bytes) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """Split a Graph collection response into its objects and nextLink.

    Raises:
        InternalError: If the body is not a Graph collection response
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise InternalError(f"Failed to unmarshal the datasource response: {e}.") from e

    if not isinstance(data, dict):
        raise InternalError(
            f"Failed to unmarshal the datasource response: expected a JSON object, got {type(data).__name__}."
        )

    values = data.get("value") or []
    if not isinstance(values, list) or not all(isinstance(v, dict) for v in values):
        raise InternalError("Failed to unmarshal the datasource response: value must be a list of objects.")

    next_link = data.get("@odata.nextLink")
    if next_link is not None and not isinstance(next_link, str):
        raise InternalError("Failed to unmarshal the datasource response: @odata.nextLink must be a string.")

    return values, next_link


class AzureADDatasource:
    """Fetches pages of Azure AD entities from Microsoft Graph."""

    def __init__(self, client: Optional[HttpClient] = None):
        self.client = client or HttpClient()

    def get_page(self, request: GraphRequest) -> DatasourceResponse:
        """Fetch one page for ``request``.

        A non-2xx upstream status is returned in the response, not raised.

        Raises:
            AdapterError: On a malformed cursor, unusable response or
                transport failure
        """
        parent = request.parent_entity
        if parent is None:
            validate_composite_cursor(request.cursor, request.entity.value, is_member_entity=False)
            return self._fetch(request)

        def fetch_collection(position: Optional[CompositeCursor[Any]]) -> DatasourceResponse:
            return self.get_page(
                GraphRequest(
                    base_url=request.base_url,
                    token=request.token,
                    entity=parent,
                    page_size=1,
                    api_version=request.api_version,
                    cursor=position,
                    filter=request.parent_filter,
                    request_timeout_seconds=request.request_timeout_seconds,
                )
            )

        def fetch_members(cursor: CompositeCursor[Any]) -> DatasourceResponse:
            return self._fetch(replace(request, cursor=cursor))

        def fetch_member_page(cursor: Optional[CompositeCursor[Any]]) -> DatasourceResponse:
            return fetch_collection_page(
                cursor,
                entity=request.entity.value,
                fetch_collection=fetch_collection,
                fetch_members=fetch_members,
                link_member=_MEMBER_LINKS.get(request.entity),
                unique_id_attribute=UNIQUE_ID_ATTRIBUTE,
            )

        logger.debug(
            "Paging %s through %s collection (page size %d)",
            request.entity.value,
            parent.value,
            request.page_size,
        )
        return accumulate_page(fetch_member_page, request.cursor, request.page_size)

    def _fetch(self, request: GraphRequest) -> DatasourceResponse:
        """Issue a single Graph request for ``request``."""
        entity = request.entity

        if entity.is_pim and request.cursor is not None and request.cursor.cursor is not None:
            try:
                skip = parse_offset(request.cursor)
            except InvalidPageRequestError as e:
                raise InternalError(
                    f"Expected a numeric cursor for PIM entities: {request.cursor.cursor}.",
                    entity=entity.value,
                ) from e
            request = replace(request, skip=skip)

        url = construct_endpoint(request)

        headers = {"Authorization": request.token}
        if request.use_advanced_filters:
            headers["ConsistencyLevel"] = "eventual"

        response = self.client.get(
            url,
            headers=headers,
            timeout_seconds=request.request_timeout_seconds,
            service=SERVICE_NAME,
        )

        retry_after = response.headers.get("Retry-After", "")

        if response.status_code != 200:
            logger.error(
                "Azure AD API error",
                extra={"entity": entity.value, "status": response.status_code, "response": response.text},
            )
            return DatasourceResponse(status_code=response.status_code, retry_after_header=retry_after)

        objects, next_link = parse_response(response.content)

        if not entity.info.server_paging:
            try:
                objects, next_link = paginate_objects(objects, request.page_size, request.cursor)
            except InvalidPageRequestError as e:
                raise InternalError(
                    f"Failed to paginate Directory Roles response - {e.message}.",
                    entity=entity.value,
                ) from e

        if entity.is_pim:
            next_skip = next_cursor_from_page_size(len(objects), request.page_size, request.skip)
            next_link = str(next_skip) if next_skip is not None else None

        logger.debug("Fetched %d %s objects", len(objects), entity.value)

        return DatasourceResponse(
            status_code=response.status_code,
            retry_after_header=retry_after,
            objects=objects,
            next_cursor=CompositeCursor(cursor=next_link) if next_link is not None else None,
        )
