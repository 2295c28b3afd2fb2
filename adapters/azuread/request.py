"""Request passed from the Azure AD adapter to its datasource."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from adapters.azuread.entities import Entity
from adapters.lib.config import DEFAULT_REQUEST_TIMEOUT_SECONDS
from adapters.lib.framework import AttributeConfig
from adapters.lib.pagination import CompositeCursor

__all__ = ["GraphRequest"]


@dataclass(frozen=True)
class GraphRequest:
    """One page request against Microsoft Graph.

    Attributes:
        base_url: ``https://`` address of the Graph host
        token: Full Authorization header value (``Bearer ...``)
        entity: Entity to page
        page_size: Requested number of objects
        cursor: Position returned with the previous page
        filter: ``$filter`` for the entity or member listing
        parent_filter: ``$filter`` for the outer collection of member entities
        use_advanced_filters: Send advanced query headers and ``$count=true``
        advanced_member_entity: Restrict a membership listing to one type
        skip: ``$skip`` offset for offset-paged entities
    """

    base_url: str
    token: str
    entity: Entity
    page_size: int
    api_version: str = "v1.0"
    cursor: Optional[CompositeCursor[Any]] = None
    filter: Optional[str] = None
    parent_filter: Optional[str] = None
    attributes: List[AttributeConfig] = field(default_factory=list)
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    use_advanced_filters: bool = False
    advanced_member_entity: Optional[Entity] = None
    skip: int = 0

    @property
    def parent_entity(self) -> Optional[Entity]:
        """Outer collection to page, if this request is for members of one.

        Under advanced filters Users are always reached through their groups,
        and Groups are when the pair targets member groups.
        """
        if self.use_advanced_filters:
            if self.entity == Entity.USER:
                return Entity.GROUP
            if self.entity == Entity.GROUP and self.advanced_member_entity is not None:
                return Entity.GROUP
        return self.entity.member_of
