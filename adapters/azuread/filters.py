"""Advanced filters and the cursor that walks them.

Advanced filters restrict a member entity to the members of a filtered set
of groups, optionally filtering the members themselves. Example config:

    advancedFilters:
      getObjectsByScope:
        GroupMember:
          - scopeEntity: Group
            scopeEntityFilter: "id in ('7df6bf7d-...', '84168a05-...')"
            members:
              - memberEntity: User
                memberEntityFilter: "department eq 'Architecture'"
              - memberEntity: Group
          - scopeEntity: Group
            scopeEntityFilter: "id eq '94e98d95-...'"
            members:
              - memberEntity: User

Each (scope filter i, member filter j) pair is synced in order with its own
composite cursor. ``AdvancedFilterCursor`` records (i, j, cursor) and is
what the caller round-trips between pages.

A GroupMember configuration also implies which Users and Groups should be
synced; ``extract_implicit_filters`` derives those filter lists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from adapters.azuread.entities import MEMBER_ENDPOINT_SUFFIXES, SCOPE_ENTITIES, Entity
from adapters.lib.errors import DatasourceConfigError, InvalidPageRequestError
from adapters.lib.pagination import CompositeCursor, decode_token, encode_token

logger = logging.getLogger(__name__)

__all__ = [
    "MemberFilter",
    "EntityFilter",
    "AdvancedFilters",
    "AdvancedFilterCursor",
    "FilterSelection",
    "encode_advanced_filter_cursor",
    "decode_advanced_filter_cursor",
    "validate_advanced_filter_cursor",
    "next_advanced_filter_cursor",
    "select_filter_pair",
    "extract_implicit_filters",
    "validate_advanced_filter_configuration",
]

_PREFIX = "advancedFilters.getObjectsByScope"


@dataclass(frozen=True)
class MemberFilter:
    """Filter on one member type; no ``member_entity_filter`` means all members."""

    member_entity: str
    member_entity_filter: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberFilter":
        return cls(
            member_entity=data.get("memberEntity") or "",
            member_entity_filter=data.get("memberEntityFilter") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"memberEntity": self.member_entity}
        if self.member_entity_filter:
            result["memberEntityFilter"] = self.member_entity_filter
        return result


@dataclass(frozen=True)
class EntityFilter:
    """A scope (outer collection) filter with its ordered member filters."""

    scope_entity: str
    scope_entity_filter: str
    members: List[MemberFilter] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityFilter":
        members = data.get("members") or []
        if not isinstance(members, list):
            raise DatasourceConfigError("members of an advanced filter must be a list.")
        return cls(
            scope_entity=data.get("scopeEntity") or "",
            scope_entity_filter=data.get("scopeEntityFilter") or "",
            members=[MemberFilter.from_dict(m) for m in members],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scopeEntity": self.scope_entity,
            "scopeEntityFilter": self.scope_entity_filter,
            "members": [m.to_dict() for m in self.members],
        }


@dataclass(frozen=True)
class AdvancedFilters:
    """Entity external id -> ordered list of scope filters."""

    scoped_objects: Dict[str, List[EntityFilter]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdvancedFilters":
        scoped = data.get("getObjectsByScope") or {}
        if not isinstance(scoped, dict):
            raise DatasourceConfigError(f"{_PREFIX} must be a mapping of entity to filter list.")

        scoped_objects: Dict[str, List[EntityFilter]] = {}
        for entity, filters in scoped.items():
            if filters is None:
                filters = []
            if not isinstance(filters, list):
                raise DatasourceConfigError(f"{_PREFIX}.{entity} must be a list of filters.")
            scoped_objects[entity] = [EntityFilter.from_dict(f) for f in filters]
        return cls(scoped_objects=scoped_objects)


@dataclass(frozen=True)
class AdvancedFilterCursor:
    """Position in the (scope filter, member filter) matrix.

    ``cursor`` is the composite cursor of the pair currently being synced.
    """

    entity_filter_index: int = 0
    member_filter_index: int = 0
    cursor: Optional[CompositeCursor[Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityFilterIndex": self.entity_filter_index,
            "memberFilterIndex": self.member_filter_index,
            "cursor": self.cursor.to_dict() if self.cursor is not None else None,
        }


@dataclass(frozen=True)
class FilterSelection:
    """Filters to apply for the current pair.

    Attributes:
        filter: Applied to the entity (or member listing) being paged
        parent_filter: Applied to the outer collection
        member_entity: Member type to restrict the listing to, when the
            pair has members
    """

    filter: Optional[str] = None
    parent_filter: Optional[str] = None
    member_entity: Optional[Entity] = None


def encode_advanced_filter_cursor(cursor: Optional[AdvancedFilterCursor]) -> str:
    """``None`` (every pair exhausted) encodes to ``""``."""
    if cursor is None:
        return ""
    return encode_token(cursor.to_dict())


def _index(payload: Dict[str, Any], key: str) -> int:
    value = payload.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPageRequestError(
            f"Failed to unmarshal JSON cursor: field {key} must be an integer, got {type(value).__name__}."
        )
    return value


def decode_advanced_filter_cursor(value: str) -> AdvancedFilterCursor:
    """Decode a caller cursor; ``""`` starts at the first pair.

    Raises:
        InvalidPageRequestError: If the cursor cannot be decoded
    """
    if not value:
        return AdvancedFilterCursor()

    payload = decode_token(value)

    inner = payload.get("cursor")
    if inner is not None and not isinstance(inner, dict):
        raise InvalidPageRequestError(
            f"Failed to unmarshal JSON cursor: field cursor must be an object, got {type(inner).__name__}."
        )

    return AdvancedFilterCursor(
        entity_filter_index=_index(payload, "entityFilterIndex"),
        member_filter_index=_index(payload, "memberFilterIndex"),
        cursor=CompositeCursor.from_dict(inner, value_type=str) if inner is not None else None,
    )


def validate_advanced_filter_cursor(
    cursor: AdvancedFilterCursor,
    filters: List[EntityFilter],
    entity: Entity,
) -> None:
    """Check the cursor's indices against the configured filters.

    Raises:
        InvalidPageRequestError: If an index is out of range
    """
    i = cursor.entity_filter_index
    if i < 0 or i >= len(filters):
        raise InvalidPageRequestError(
            f"Invalid filter index for {entity.value}: {i}.",
            entity=entity.value,
            details={"entity_filter_index": i, "filter_count": len(filters)},
        )

    members = filters[i].members
    if not entity.has_advanced_members and not members:
        return

    j = cursor.member_filter_index
    if j < 0 or j >= len(members):
        raise InvalidPageRequestError(
            f"Invalid member filter index for {entity.value}: {j}.",
            entity=entity.value,
            details={"entity_filter_index": i, "member_filter_index": j, "member_count": len(members)},
        )


def next_advanced_filter_cursor(
    current: AdvancedFilterCursor,
    filters: List[EntityFilter],
    response_next_cursor: Optional[CompositeCursor[Any]],
) -> Optional[AdvancedFilterCursor]:
    """Advance the matrix walk after one page of the current pair.

    Stays on the pair while it has more pages, then moves to the next member
    filter, then to the next scope filter. Returns None once every pair has
    been synced.
    """
    i, j = current.entity_filter_index, current.member_filter_index

    if response_next_cursor is not None:
        return AdvancedFilterCursor(i, j, response_next_cursor)

    if j + 1 < len(filters[i].members):
        return AdvancedFilterCursor(i, j + 1, None)

    if i + 1 < len(filters):
        return AdvancedFilterCursor(i + 1, 0, None)

    return None


def select_filter_pair(cursor: AdvancedFilterCursor, filters: List[EntityFilter]) -> FilterSelection:
    """Filters for the pair the cursor points at.

    Without members, the scope filter applies directly to the entity. With
    members, the member filter applies to the member listing and the scope
    filter to the outer collection.
    """
    entity_filter = filters[cursor.entity_filter_index]

    if not entity_filter.members:
        return FilterSelection(filter=entity_filter.scope_entity_filter)

    member_filter = entity_filter.members[cursor.member_filter_index]
    return FilterSelection(
        filter=member_filter.member_entity_filter or None,
        parent_filter=entity_filter.scope_entity_filter or None,
        member_entity=Entity.parse(member_filter.member_entity),
    )


def extract_implicit_filters(advanced_filters: AdvancedFilters) -> Dict[str, List[EntityFilter]]:
    """Derive the User/Group filters implied by member advanced filters.

    Syncing the members of filtered groups implies syncing those groups and
    those members. For each scope filter this emits:
      * under each non-scope member type, the scope filter with that type's
        member filters
      * under the scope type, the scope filter with no members (the groups
        themselves), followed by one carrying the same-type member filters
        when there are any

    Example:
        GroupMember: [{Group X, members: [User A, Group B]}]
        ->
        {"User": [{Group X, [User A]}],
         "Group": [{Group X, []}, {Group X, [Group B]}]}
    """
    implicit: Dict[str, List[EntityFilter]] = {}

    for entity_name, filters in advanced_filters.scoped_objects.items():
        try:
            entity = Entity(entity_name)
        except ValueError:
            continue
        member_types = MEMBER_ENDPOINT_SUFFIXES.get(entity)
        if not member_types:
            continue

        for entity_filter in filters:
            by_type: Dict[str, List[MemberFilter]] = {}
            for member in entity_filter.members:
                if any(member.member_entity == t.value for t in member_types):
                    by_type.setdefault(member.member_entity, []).append(member)

            scope = entity_filter.scope_entity

            for member_type, members in by_type.items():
                if member_type == scope:
                    continue
                implicit.setdefault(member_type, []).append(
                    EntityFilter(scope, entity_filter.scope_entity_filter, members)
                )

            if any(scope == s.value for s in SCOPE_ENTITIES):
                implicit.setdefault(scope, []).append(EntityFilter(scope, entity_filter.scope_entity_filter))

            if scope in by_type:
                implicit.setdefault(scope, []).append(
                    EntityFilter(scope, entity_filter.scope_entity_filter, by_type[scope])
                )

    return implicit


def validate_advanced_filter_configuration(
    advanced_filters: Optional[AdvancedFilters],
    filters: Optional[Dict[str, str]],
) -> None:
    """Validate the advanced filter section of the config.

    Raises:
        DatasourceConfigError: On the first problem found
    """
    if advanced_filters is None:
        return

    if not advanced_filters.scoped_objects:
        raise DatasourceConfigError(f"{_PREFIX} cannot be empty.")

    filters = filters or {}

    for entity_name, entity_filters in advanced_filters.scoped_objects.items():
        try:
            entity: Optional[Entity] = Entity(entity_name)
        except ValueError:
            entity = None

        if entity is None or not entity.has_advanced_members:
            raise DatasourceConfigError(f"Advanced Filters on {_PREFIX}.{entity_name} is not supported.")

        if entity_name in filters:
            raise DatasourceConfigError(
                f"Only one of {_PREFIX}.{entity_name} OR filters.{entity_name} is allowed."
            )

        if not entity_filters:
            raise DatasourceConfigError(f"{_PREFIX}.{entity_name} must have at least one filter defined.")

        allowed_members = MEMBER_ENDPOINT_SUFFIXES[entity]

        for idx, entity_filter in enumerate(entity_filters):
            location = f"{_PREFIX}.{entity_name}.[{idx}]"

            if not entity_filter.scope_entity:
                raise DatasourceConfigError(f"{location}.scopeEntity cannot be empty.")

            if not any(entity_filter.scope_entity == s.value for s in SCOPE_ENTITIES):
                raise DatasourceConfigError(f"{location}.scopeEntity is not supported.")

            if not entity_filter.scope_entity_filter:
                raise DatasourceConfigError(f"{location}.scopeEntityFilter cannot be empty.")

            if not entity_filter.members:
                raise DatasourceConfigError(f"{location}.members cannot be empty.")

            for member_idx, member in enumerate(entity_filter.members):
                if not member.member_entity:
                    raise DatasourceConfigError(
                        f"{location}.members[{member_idx}].memberEntity cannot be empty."
                    )

                if not any(member.member_entity == t.value for t in allowed_members):
                    raise DatasourceConfigError(
                        f"{location}.members[{member_idx}].memberEntity is not supported."
                    )
