"""Microsoft Graph URL construction.

Graph pages are fetched with ``$select`` for the requested attributes,
``$expand`` for attributes that live on related objects, ``$top`` for the
page size and an optional ``$filter``. Follow-up pages reuse the
``@odata.nextLink`` the previous response returned, which already encodes
all of those parameters.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional
from urllib.parse import quote, quote_plus

from adapters.azuread.entities import MEMBER_ENDPOINT_SUFFIXES, Entity
from adapters.azuread.request import GraphRequest
from adapters.lib.errors import EntityConfigError, InternalError
from adapters.lib.framework import AttributeConfig
from adapters.lib.jsonpath import JSONPathError, attributes_from_json_path

logger = logging.getLogger(__name__)

__all__ = ["construct_endpoint", "form_attribute_params", "COMPLEX_ATTRIBUTE_DELIMITER"]

COMPLEX_ATTRIBUTE_DELIMITER = "__"
UNIQUE_ID_ATTRIBUTE = "id"


def _escape(value: str) -> str:
    return quote_plus(value, safe="")


def construct_endpoint(request: GraphRequest) -> str:
    """Build the URL for the page ``request`` describes.

    Raises:
        InternalError: If a member listing is requested without a collection id
        EntityConfigError: If an attribute cannot be expressed as a Graph query
    """
    entity = request.entity
    cursor = request.cursor

    # Role pages are served from memory and PIM cursors are offsets; every
    # other cursor is a nextLink
    if entity.info.server_paging and not entity.is_pim:
        if cursor is not None and cursor.cursor is not None:
            return str(cursor.cursor)

    base = f"{request.base_url}/{request.api_version}"
    page_size = str(request.page_size)

    if entity == Entity.GROUP_MEMBER:
        url = base + _group_members_path(request) + f"?$select={UNIQUE_ID_ATTRIBUTE}&$top={page_size}"
        if request.filter is not None:
            url += "&$filter=" + _escape(request.filter)
        if request.use_advanced_filters:
            url += "&$count=true"
        return url

    if entity == Entity.ROLE_MEMBER:
        if cursor is None or cursor.collection_id is None:
            raise InternalError("Unable to construct role member endpoint without valid cursor.")
        path = entity.info.path.format(collection_id=quote(str(cursor.collection_id), safe=""))
        url = base + path + f"?$select={UNIQUE_ID_ATTRIBUTE}&$top={page_size}"
        if request.filter is not None:
            url += "&$filter=" + _escape(request.filter)
        return url

    if (
        entity in (Entity.USER, Entity.GROUP)
        and request.use_advanced_filters
        and request.advanced_member_entity is not None
    ):
        path = _group_members_path(request)
    else:
        path = entity.info.path

    return base + path + form_attribute_params(
        entity,
        page_size=request.page_size,
        offset=request.skip,
        filter=request.filter,
        use_advanced_filters=request.use_advanced_filters,
        default_attribute=UNIQUE_ID_ATTRIBUTE,
        expandable=entity.info.expandable,
        attributes=request.attributes,
    )


def _group_members_path(request: GraphRequest) -> str:
    cursor = request.cursor
    if cursor is None or cursor.collection_id is None:
        raise InternalError("Unable to construct group member endpoint without valid cursor.")

    path = Entity.GROUP_MEMBER.info.path.format(collection_id=quote(str(cursor.collection_id), safe=""))

    if request.use_advanced_filters and request.advanced_member_entity is not None:
        suffix = MEMBER_ENDPOINT_SUFFIXES[Entity.GROUP_MEMBER].get(request.advanced_member_entity)
        if suffix is None:
            raise EntityConfigError(
                "Provided advanced filter member external ID is invalid.",
                entity=request.entity.value,
            )
        path += suffix

    return path


def form_attribute_params(
    entity: Entity,
    *,
    page_size: int,
    offset: int = 0,
    filter: Optional[str] = None,
    use_advanced_filters: bool = False,
    default_attribute: str = UNIQUE_ID_ATTRIBUTE,
    expandable: FrozenSet[str] = frozenset(),
    attributes: Optional[List[AttributeConfig]] = None,
) -> str:
    """Query string selecting ``attributes`` for a collection listing.

    Attributes on related objects (``$.manager.displayName`` or
    ``manager__displayName``) are fetched with ``$expand`` when the
    relationship is expandable. Other ``__`` names select their parent
    property, which is then walked during conversion.

    Raises:
        EntityConfigError: If an attribute cannot be expressed
    """
    selects = [_escape(default_attribute)]
    expand: Dict[str, List[str]] = {}
    complex_parents = set()

    for attribute in attributes or []:
        external_id = attribute.external_id

        if external_id == default_attribute:
            continue

        if external_id.startswith("$"):
            try:
                names = attributes_from_json_path(external_id)
            except JSONPathError as e:
                raise EntityConfigError(
                    "Provided entity attribute external id contains unsupported JSON path "
                    f"expression: {_go_quote(external_id)}.",
                    entity=entity.value,
                ) from e

            if not names:
                raise EntityConfigError(
                    "Unable to extract any attributes from JSON path expression in provided "
                    f"attribute external id: {_go_quote(external_id)}.",
                    entity=entity.value,
                )
            if len(names) == 1:
                selects.append(_escape(names[0]))
                continue
            if len(names) == 2:
                parent, child = names
                if parent not in expandable:
                    raise EntityConfigError(
                        f"Unsupported parent attribute provided for the current entity type: {_go_quote(parent)}.",
                        entity=entity.value,
                    )
                expand.setdefault(parent, []).append(child)
                continue
            raise EntityConfigError(
                "Too many attributes extracted from JSON path expression in provided attribute "
                f"external id. Found: {len(names)}. Maximum supported: 2.",
                entity=entity.value,
            )

        if COMPLEX_ATTRIBUTE_DELIMITER in external_id:
            parent, child = external_id.split(COMPLEX_ATTRIBUTE_DELIMITER, 1)
            if not parent or not child:
                raise EntityConfigError(
                    f"Provided entity attribute list contains the following unsupported attribute: {external_id}.",
                    entity=entity.value,
                )
            if parent in expandable:
                expand.setdefault(parent, []).append(child)
            elif parent not in complex_parents:
                complex_parents.add(parent)
                selects.append(_escape(parent))
            continue

        selects.append(_escape(external_id))

    params = "?$select=" + ",".join(selects)

    # Graph rejects $expand in advanced queries on users and groups
    if expand and not (use_advanced_filters and entity in (Entity.USER, Entity.GROUP)):
        params += "&$expand=" + ",".join(
            f"{_escape(parent)}($select={','.join(_escape(c) for c in expand[parent])})"
            for parent in sorted(expand)
        )

    if entity != Entity.ROLE:
        params += f"&$top={page_size}"

    if entity.is_pim:
        params += f"&$skip={offset}"

    if filter is not None:
        params += "&$filter=" + _escape(filter)

    if use_advanced_filters:
        params += "&$count=true"

    return params


def _go_quote(value: str) -> str:
    """Double-quoted, backslash-escaped rendering used in error messages."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
