"""Pytest configuration and fixtures."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx
import pytest

from adapters.azuread.datasource import AzureADDatasource
from adapters.lib.http import HttpClient

GRAPH_ADDRESS = "https://graph.test"


class FakeGraph:
    """In-memory Microsoft Graph.

    Serves ``/groups``, ``/groups/{id}/members[/microsoft.graph.user|group]``,
    ``/users``, ``/users/{id}/transitiveMemberOf/microsoft.graph.directoryRole``
    and ``/directoryRoles``, honouring ``$top`` and paging with a
    ``$skiptoken`` nextLink, as Graph does.
    """

    def __init__(
        self,
        groups: Optional[Dict[str, List[str]]] = None,
        users: Optional[Dict[str, List[str]]] = None,
        roles: Optional[List[str]] = None,
    ):
        self.groups = groups or {}
        self.users = users or {}
        self.roles = roles or []
        self.member_types: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self.fail_status: Optional[int] = None
        self.ignore_top = False

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.fail_status is not None:
            return httpx.Response(
                self.fail_status,
                headers={"Retry-After": "30"},
                json={"error": {"code": "TooManyRequests", "message": "throttled"}},
            )

        parts = request.url.path.strip("/").split("/")[1:]
        items = self._collection(parts)
        if items is None:
            return httpx.Response(404, json={"error": {"code": "Request_ResourceNotFound"}})

        params = request.url.params
        top = len(items) if self.ignore_top else int(params.get("$top", "100"))
        start = int(params.get("$skiptoken", params.get("$skip", "0")))

        body: Dict[str, object] = {"value": items[start:start + top]}
        if "$skip" not in params and start + top < len(items):
            body["@odata.nextLink"] = str(request.url.copy_set_param("$skiptoken", str(start + top)))

        return httpx.Response(200, json=body)

    def _collection(self, parts: List[str]) -> Optional[List[Dict[str, object]]]:
        if parts == ["groups"]:
            return [{"id": g, "displayName": f"Group {g}"} for g in self.groups]
        if parts == ["users"]:
            return [{"id": u, "displayName": f"User {u}"} for u in self.users]
        if parts == ["directoryRoles"]:
            return [{"id": r, "displayName": f"Role {r}"} for r in self.roles]
        if len(parts) >= 3 and parts[0] == "groups" and parts[2] == "members":
            members = self.groups.get(parts[1])
            if members is None:
                return None
            if len(parts) == 4:
                wanted = parts[3].rsplit(".", 1)[-1]
                members = [m for m in members if self.member_types.get(m, "user") == wanted]
            return [{"id": m} for m in members]
        if len(parts) == 4 and parts[0] == "users" and parts[2] == "transitiveMemberOf":
            roles = self.users.get(parts[1])
            if roles is None:
                return None
            return [{"id": r} for r in roles]
        if parts[-1] in ("roleAssignmentScheduleRequests", "assignmentScheduleRequests"):
            return [{"id": f"request-{i}"} for i in range(5)]
        return None

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


def make_groups(n: int, m: int) -> Dict[str, List[str]]:
    """``n`` groups with ``m`` members each; member ids are unique."""
    return {f"g{i}": [f"g{i}-u{j}" for j in range(m)] for i in range(n)}


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph(groups=make_groups(3, 2), users={"u1": ["r1", "r2"], "u2": [], "u3": ["r1"]})


@pytest.fixture
def graph_datasource(fake_graph: FakeGraph) -> AzureADDatasource:
    return AzureADDatasource(HttpClient(transport=fake_graph.transport()))


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
