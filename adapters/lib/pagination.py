"""Composite cursor pagination.

Some entities live two levels deep: every member of every group, every
directory role of every user. A single opaque cursor string has to describe
progress through both levels so a sync can resume mid-stream with no
server-side session. ``CompositeCursor`` holds that position:

    cursor             position inside the current inner (member) collection,
                       or inside the top-level collection for flat entities
    collection_id      the outer element whose members are being paged
    collection_cursor  position of the next outer element

The engine fetches one outer element at a time, pages through its members,
then advances to the next outer element. ``accumulate_page`` strings several
of those calls together so small inner collections still fill a page.

Cursors are immutable; every step returns a new value.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar, Union

from adapters.lib.errors import InternalError, InvalidPageRequestError

logger = logging.getLogger(__name__)

__all__ = [
    "CompositeCursor",
    "DatasourceResponse",
    "CollectionPosition",
    "encode_token",
    "decode_token",
    "encode_cursor",
    "decode_cursor",
    "validate_composite_cursor",
    "resolve_collection_cursor",
    "fetch_collection_page",
    "accumulate_page",
    "parse_offset",
    "paginate_objects",
    "next_cursor_from_page_size",
]

T = TypeVar("T", str, int)

_OFFSET_PATTERN = re.compile(r"^[+-]?\d+$")

_WIRE_FIELDS = (
    ("cursor", "cursor"),
    ("collection_id", "collectionId"),
    ("collection_cursor", "collectionCursor"),
)

_TYPE_NAMES = {str: "a string", int: "an integer"}


@dataclass(frozen=True)
class CompositeCursor(Generic[T]):
    """Position within a (possibly two-level) paginated collection."""

    cursor: Optional[T] = None
    collection_id: Optional[T] = None
    collection_cursor: Optional[T] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation; unset fields are omitted."""
        return {
            wire_name: getattr(self, attr)
            for attr, wire_name in _WIRE_FIELDS
            if getattr(self, attr) is not None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], value_type: Optional[type] = None) -> "CompositeCursor[Any]":
        """Build from the wire representation.

        Args:
            data: Decoded JSON object
            value_type: ``str`` or ``int`` to require that type for every set
                field; None accepts either

        Raises:
            InvalidPageRequestError: If a field holds a value of the wrong type
        """
        allowed = (value_type,) if value_type is not None else (str, int)
        expected = " or ".join(_TYPE_NAMES[t] for t in allowed)

        values: Dict[str, Any] = {}
        for attr, wire_name in _WIRE_FIELDS:
            value = data.get(wire_name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, allowed)):
                raise InvalidPageRequestError(
                    f"Failed to unmarshal JSON cursor: field {wire_name} must be {expected}, "
                    f"got {type(value).__name__}."
                )
            values[attr] = value
        return cls(**values)


@dataclass
class DatasourceResponse:
    """Result of one fetch against an upstream datasource.

    A non-2xx ``status_code`` is carried, not raised, so pagination code can
    hand it back unchanged; adapters turn it into an ``UpstreamError``.
    """

    status_code: int = 200
    retry_after_header: str = ""
    objects: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[CompositeCursor[Any]] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class CollectionPosition:
    """Outcome of resolving which outer element to page next.

    Exactly one of these holds:
      * ``failed_response`` is set: the outer fetch returned a non-2xx status
      * ``is_complete`` is True: no outer elements remain
      * otherwise ``cursor`` is the position to fetch members from
    """

    cursor: CompositeCursor[Any]
    is_complete: bool = False
    failed_response: Optional[DatasourceResponse] = None


FetchPage = Callable[[Optional[CompositeCursor[Any]]], DatasourceResponse]
FetchMembers = Callable[[CompositeCursor[Any]], DatasourceResponse]
LinkMember = Callable[[Dict[str, Any], str, str], Dict[str, Any]]


def encode_token(payload: Dict[str, Any]) -> str:
    """JSON-encode ``payload`` and wrap it in standard base64."""
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_token(token: str) -> Dict[str, Any]:
    """Reverse of ``encode_token``.

    Raises:
        InvalidPageRequestError: If the token is not base64, not JSON, or not
            a JSON object
    """
    try:
        raw = base64.b64decode(token.encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidPageRequestError(f"Failed to decode base64 cursor: {e}.") from e

    try:
        payload = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise InvalidPageRequestError(f"Failed to unmarshal JSON cursor: {e}.") from e

    if not isinstance(payload, dict):
        raise InvalidPageRequestError(
            f"Failed to unmarshal JSON cursor: expected a JSON object, got {type(payload).__name__}."
        )

    return payload


def encode_cursor(cursor: Optional[CompositeCursor[Any]]) -> str:
    """Encode a cursor for the caller. ``None`` (sync complete) encodes to ``""``."""
    if cursor is None:
        return ""
    return encode_token(cursor.to_dict())


def decode_cursor(value: str, value_type: Optional[type] = None) -> Optional[CompositeCursor[Any]]:
    """Decode a caller-supplied cursor. ``""`` means "start from the beginning".

    ``value_type`` restricts the cursor fields to ``str`` or ``int``.
    """
    if not value:
        return None
    return CompositeCursor.from_dict(decode_token(value), value_type=value_type)


def validate_composite_cursor(
    cursor: Optional[CompositeCursor[Any]],
    entity: str,
    is_member_entity: bool,
) -> None:
    """Check the cursor's shape against the kind of entity being synced.

    Member entities must know which outer element they are paging; flat
    entities must not carry any outer-collection state.

    Raises:
        InvalidPageRequestError: If the cursor is malformed for ``entity``
    """
    if cursor is None:
        return

    if is_member_entity:
        if cursor.collection_id is None:
            raise InvalidPageRequestError(
                f"Cursor does not have CollectionID set for entity {entity}.",
                entity=entity,
                details={"cursor": cursor.to_dict()},
            )
        return

    if cursor.collection_id is not None or cursor.collection_cursor is not None:
        raise InvalidPageRequestError(
            f"Cursor must not contain CollectionID or CollectionCursor fields for entity {entity}.",
            entity=entity,
            details={"cursor": cursor.to_dict()},
        )


def resolve_collection_cursor(
    cursor: CompositeCursor[Any],
    fetch_collection: FetchPage,
    unique_id_attribute: str = "id",
) -> CollectionPosition:
    """Work out which outer element the next member page belongs to.

    If ``cursor.cursor`` is set we are part way through one element's members
    and nothing is fetched. Otherwise exactly one outer element is fetched,
    starting from ``cursor.collection_cursor`` (or the first element).

    Raises:
        InternalError: If the outer fetch returned more than one element
    """
    if cursor.cursor is not None:
        return CollectionPosition(cursor=cursor)

    outer_position = None
    if cursor.collection_cursor is not None:
        outer_position = CompositeCursor(cursor=cursor.collection_cursor)

    response = fetch_collection(outer_position)
    if not response.ok:
        return CollectionPosition(cursor=cursor, failed_response=response)

    if len(response.objects) > 1:
        raise InternalError(
            f"Too many collection objects returned in response; expected 1, got {len(response.objects)}."
        )

    collection_id = None
    if response.objects:
        collection_id = response.objects[0].get(unique_id_attribute)
        if not isinstance(collection_id, str):
            raise InternalError(
                f"Failed to parse {unique_id_attribute} field in collection response as string."
            )

    collection_cursor = None
    if response.next_cursor is not None:
        collection_cursor = response.next_cursor.cursor

    resolved = replace(cursor, collection_id=collection_id, collection_cursor=collection_cursor)

    return CollectionPosition(
        cursor=resolved,
        is_complete=collection_id is None and collection_cursor is None,
    )


def fetch_collection_page(
    cursor: Optional[CompositeCursor[Any]],
    *,
    entity: str,
    fetch_collection: FetchPage,
    fetch_members: FetchMembers,
    link_member: Optional[LinkMember] = None,
    unique_id_attribute: str = "id",
) -> DatasourceResponse:
    """Fetch one page of members of the current outer element.

    Args:
        cursor: Position returned by the previous call, or None to start
        entity: Entity name, used in error messages
        fetch_collection: Fetches one outer element at the given position
        fetch_members: Fetches one page of members for ``cursor.collection_id``
        link_member: Builds the returned record from (member, member id, outer id)
        unique_id_attribute: Identifier field of outer elements and members

    Returns:
        The members with a next cursor, no next cursor once every outer
        element is exhausted, or the failing upstream response unchanged.

    Raises:
        InvalidPageRequestError: If the cursor is malformed
        InternalError: If the upstream breaks the one-element contract or a
            member has no string identifier
    """
    position = resolve_collection_cursor(cursor or CompositeCursor(), fetch_collection, unique_id_attribute)

    if position.failed_response is not None:
        return position.failed_response

    if position.is_complete:
        logger.debug("No outer elements remain for %s; sync complete", entity)
        return DatasourceResponse()

    resolved = position.cursor

    if resolved.collection_id is None and resolved.cursor is None:
        # Empty outer page that still points at further outer pages
        logger.debug("Empty outer page for %s; advancing to next outer page", entity)
        return DatasourceResponse(next_cursor=CompositeCursor(collection_cursor=resolved.collection_cursor))

    validate_composite_cursor(resolved, entity, is_member_entity=True)

    response = fetch_members(resolved)
    if not response.ok:
        return response

    collection_id = resolved.collection_id
    objects: List[Dict[str, Any]] = []
    for member in response.objects:
        member_id = member.get(unique_id_attribute)
        if not isinstance(member_id, str):
            raise InternalError(
                f"Failed to parse {unique_id_attribute} field in {entity} response as string.",
                entity=entity,
            )
        objects.append(link_member(member, member_id, collection_id) if link_member else member)

    inner_cursor = response.next_cursor.cursor if response.next_cursor is not None else None
    next_cursor: Optional[CompositeCursor[Any]] = replace(resolved, cursor=inner_cursor)
    if inner_cursor is None and resolved.collection_cursor is None:
        next_cursor = None

    return DatasourceResponse(
        status_code=response.status_code,
        retry_after_header=response.retry_after_header,
        objects=objects,
        next_cursor=next_cursor,
    )


def accumulate_page(
    fetch: FetchPage,
    cursor: Optional[CompositeCursor[Any]],
    page_size: int,
) -> DatasourceResponse:
    """Call ``fetch`` repeatedly until ``page_size`` records are collected.

    A batch that would push the page past ``page_size`` is discarded and the
    cursor that produced it is returned, so the next call starts with that
    batch. The first batch of a call is always kept. A non-2xx response is
    returned immediately, with nothing accumulated.
    """
    objects: List[Dict[str, Any]] = []
    current = cursor
    fetches = 0

    while True:
        response = fetch(current)
        fetches += 1

        if not response.ok:
            return response

        # The first batch is kept even when it alone exceeds page_size
        if objects and len(objects) + len(response.objects) > page_size:
            logger.debug(
                "Discarding batch of %d records that would overflow page size %d",
                len(response.objects),
                page_size,
            )
            return DatasourceResponse(objects=objects, next_cursor=current)

        objects.extend(response.objects)

        if response.next_cursor is None:
            logger.debug("Accumulated %d records in %d fetches; sync complete", len(objects), fetches)
            return DatasourceResponse(objects=objects)

        current = response.next_cursor

        if len(objects) >= page_size:
            logger.debug("Accumulated %d records in %d fetches", len(objects), fetches)
            return DatasourceResponse(objects=objects, next_cursor=current)


def parse_offset(cursor: Optional[CompositeCursor[Any]]) -> int:
    """Read a numeric offset from ``cursor.cursor``; no cursor means offset 0.

    Raises:
        InvalidPageRequestError: If the cursor is not a whole number
    """
    if cursor is None or cursor.cursor is None:
        return 0

    value: Union[str, int] = cursor.cursor
    if isinstance(value, int):
        return value

    if not _OFFSET_PATTERN.match(value):
        raise InvalidPageRequestError(f"Unable to parse cursor: want valid number, got {{{value}}}.")

    return int(value)


def paginate_objects(
    objects: List[Dict[str, Any]],
    page_size: int,
    cursor: Optional[CompositeCursor[Any]],
) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """Serve pages out of a fully fetched list, for APIs without paging.

    Returns the page and the next offset as a decimal string (None when the
    list is exhausted).

    Raises:
        InvalidPageRequestError: If the offset is not numeric or is out of range
    """
    start = parse_offset(cursor)
    count = len(objects)

    # Offset 0 is always valid so an empty list yields an empty page
    if start != 0 and (start >= count or start < 0):
        raise InvalidPageRequestError(
            f"The cursor value: {start}, is out of range for number of objects: {count}"
        )

    end = min(start + page_size, count)
    next_position = str(end) if end < count else None

    return objects[start:end], next_position


def next_cursor_from_page_size(objects_in_page: int, page_size: int, current: int) -> Optional[int]:
    """Offset of the next page when only the page's length is known.

    A short page is the last one; a full (or overlong) page may be followed
    by more.
    """
    if objects_in_page < page_size:
        return None
    return current + page_size
