"""Page request/response contract shared by all adapters.

A caller asks an adapter for one page of an entity's objects, passing the
opaque cursor returned with the previous page. An empty ``next_cursor`` on
the returned page means the sync for that entity is complete.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

__all__ = [
    "AttributeType",
    "AttributeConfig",
    "EntityConfig",
    "PageRequest",
    "Page",
    "Adapter",
]

ConfigT = TypeVar("ConfigT")


class AttributeType(str, Enum):
    """Types an entity attribute value is cast to."""

    STRING = "string"
    INT64 = "int64"
    DOUBLE = "double"
    BOOL = "bool"
    DATETIME = "datetime"
    DURATION = "duration"


@dataclass(frozen=True)
class AttributeConfig:
    """One requested attribute of an entity.

    ``external_id`` is the attribute's name upstream: a plain key, a JSON path
    (``$.manager.id``) or a ``parent__child`` complex name.
    """

    external_id: str
    type: AttributeType = AttributeType.STRING
    list: bool = False
    unique_id: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttributeConfig":
        return cls(
            external_id=data["externalId"],
            type=AttributeType(data.get("type", AttributeType.STRING.value)),
            list=bool(data.get("list", False)),
            unique_id=bool(data.get("uniqueId", False)),
        )


@dataclass(frozen=True)
class EntityConfig:
    """The entity a page is requested for and the attributes to return."""

    external_id: str
    attributes: List[AttributeConfig] = field(default_factory=list)
    child_entities: List["EntityConfig"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityConfig":
        return cls(
            external_id=data["externalId"],
            attributes=[AttributeConfig.from_dict(a) for a in data.get("attributes", [])],
            child_entities=[cls.from_dict(c) for c in data.get("childEntities", [])],
        )

    def has_attribute(self, external_id: str) -> bool:
        return any(attribute.external_id == external_id for attribute in self.attributes)


@dataclass
class PageRequest(Generic[ConfigT]):
    """A request for one page of an entity's objects."""

    address: str
    entity: EntityConfig
    page_size: int
    config: Optional[ConfigT] = None
    auth: Optional[str] = None  # full HTTP Authorization header value
    cursor: str = ""
    ordered: bool = False


@dataclass
class Page:
    """One page of converted objects.

    ``next_cursor`` is empty when there are no more pages.
    """

    objects: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"objects": self.objects, "nextCursor": self.next_cursor}


class Adapter(ABC, Generic[ConfigT]):
    """Base class for adapters: validate the request, then fetch the page."""

    def get_page(self, request: PageRequest[ConfigT]) -> Page:
        """Validate ``request`` and return the requested page.

        Raises:
            AdapterError: Any validation, cursor, or upstream failure
        """
        self.validate_get_page_request(request)
        return self.request_page_from_datasource(request)

    @abstractmethod
    def validate_get_page_request(self, request: PageRequest[ConfigT]) -> None:
        """Raise an AdapterError if the request cannot be served."""

    @abstractmethod
    def request_page_from_datasource(self, request: PageRequest[ConfigT]) -> Page:
        """Fetch and convert one page from the upstream datasource."""
