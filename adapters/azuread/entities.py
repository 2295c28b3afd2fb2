"""Azure AD entity types supported by the adapter.

Entities are a closed enum; everything the adapter needs to know about one
(collection path, parent collection, expandable relationships, paging
style) lives in ``ENTITY_INFO`` so adding an entity is a single table edit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional

from adapters.lib.errors import EntityConfigError

__all__ = ["Entity", "EntityInfo", "ENTITY_INFO", "MEMBER_ENDPOINT_SUFFIXES", "SCOPE_ENTITIES"]


class Entity(str, Enum):
    """Entity external ids understood by the Azure AD adapter."""

    USER = "User"
    GROUP = "Group"
    GROUP_MEMBER = "GroupMember"
    APPLICATION = "Application"
    DEVICE = "Device"
    ROLE = "Role"
    ROLE_MEMBER = "RoleMember"
    ROLE_ASSIGNMENT = "RoleAssignment"
    # Privileged Identity Management entities, paged with $top and $skip
    ROLE_ASSIGNMENT_SCHEDULE_REQUEST = "RoleAssignmentScheduleRequest"
    GROUP_ASSIGNMENT_SCHEDULE_REQUEST = "GroupAssignmentScheduleRequest"

    @classmethod
    def parse(cls, external_id: str) -> "Entity":
        """Look up a caller-supplied entity name.

        Raises:
            EntityConfigError: If the name is not a supported entity
        """
        try:
            return cls(external_id)
        except ValueError:
            raise EntityConfigError(
                "Provided entity external ID is invalid.", entity=external_id
            ) from None

    @property
    def info(self) -> "EntityInfo":
        return ENTITY_INFO[self]

    @property
    def member_of(self) -> Optional["Entity"]:
        return ENTITY_INFO[self].member_of

    @property
    def is_pim(self) -> bool:
        return ENTITY_INFO[self].offset_paging

    @property
    def has_advanced_members(self) -> bool:
        """Whether advanced filters for this entity pair a scope with member filters."""
        return self in MEMBER_ENDPOINT_SUFFIXES


@dataclass(frozen=True)
class EntityInfo:
    """Static facts about an entity.

    Attributes:
        path: Collection path under the API version
        member_of: Outer collection for member entities
        expandable: Relationships that may be fetched with $expand
        offset_paging: Paged with $top/$skip and a numeric cursor
        server_paging: False when the API returns everything in one response
    """

    path: str
    member_of: Optional[Entity] = None
    expandable: FrozenSet[str] = field(default_factory=frozenset)
    offset_paging: bool = False
    server_paging: bool = True


ENTITY_INFO: Dict[Entity, EntityInfo] = {
    Entity.USER: EntityInfo(
        path="/users",
        expandable=frozenset({"manager", "directReports", "ownedDevices", "registeredDevices"}),
    ),
    Entity.GROUP: EntityInfo(
        path="/groups",
        expandable=frozenset({"appRoleAssignments", "owners"}),
    ),
    Entity.GROUP_MEMBER: EntityInfo(path="/groups/{collection_id}/members", member_of=Entity.GROUP),
    Entity.APPLICATION: EntityInfo(path="/applications", expandable=frozenset({"owners"})),
    Entity.DEVICE: EntityInfo(
        path="/devices",
        expandable=frozenset({"memberOf", "registeredOwners", "registeredUsers", "transitiveMemberOf"}),
    ),
    Entity.ROLE: EntityInfo(path="/directoryRoles", server_paging=False),
    Entity.ROLE_MEMBER: EntityInfo(
        path="/users/{collection_id}/transitiveMemberOf/microsoft.graph.directoryRole",
        member_of=Entity.USER,
    ),
    Entity.ROLE_ASSIGNMENT: EntityInfo(path="/roleManagement/directory/roleAssignments"),
    Entity.ROLE_ASSIGNMENT_SCHEDULE_REQUEST: EntityInfo(
        path="/roleManagement/directory/roleAssignmentScheduleRequests",
        offset_paging=True,
    ),
    Entity.GROUP_ASSIGNMENT_SCHEDULE_REQUEST: EntityInfo(
        path="/identityGovernance/privilegedAccess/group/assignmentScheduleRequests",
        offset_paging=True,
    ),
}

# Member types an advanced filter may target, and the type-cast path segment
# that restricts a membership listing to that type
MEMBER_ENDPOINT_SUFFIXES: Dict[Entity, Dict[Entity, str]] = {
    Entity.GROUP_MEMBER: {
        Entity.USER: "/microsoft.graph.user",
        Entity.GROUP: "/microsoft.graph.group",
    },
}

# Entities an advanced filter may scope by
SCOPE_ENTITIES: FrozenSet[Entity] = frozenset({Entity.GROUP})
