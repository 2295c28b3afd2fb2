"""Tests for Microsoft Graph URL construction."""

from __future__ import annotations

import pytest

from adapters.azuread.endpoint import construct_endpoint, form_attribute_params
from adapters.azuread.entities import Entity
from adapters.azuread.request import GraphRequest
from adapters.lib.errors import EntityConfigError, InternalError
from adapters.lib.framework import AttributeConfig
from adapters.lib.pagination import CompositeCursor

BASE = "https://graph.microsoft.com"


def attrs(*names):
    return [AttributeConfig(external_id=name, unique_id=name == "id") for name in names]


def graph_request(entity, **kwargs):
    kwargs.setdefault("page_size", 10)
    return GraphRequest(base_url=BASE, token="Bearer t", entity=entity, **kwargs)


class TestConstructEndpoint:
    """Tests for construct_endpoint."""

    def test_next_link_is_used_verbatim(self):
        """Test that a nextLink cursor is requested unchanged."""
        next_link = "https://graph.microsoft.com/v1.0/users?$skiptoken=abc"
        request = graph_request(Entity.USER, cursor=CompositeCursor(cursor=next_link))
        assert construct_endpoint(request) == next_link

    def test_first_user_page(self):
        """Test select, expand and top for a first page of users."""
        request = graph_request(
            Entity.USER,
            attributes=attrs("id", "displayName", "$.manager.displayName", "directReports__id"),
        )
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/users?$select=id,displayName"
            "&$expand=directReports($select=id),manager($select=displayName)&$top=10"
        )

    def test_api_version_is_used(self):
        """Test that the configured API version prefixes the path."""
        request = graph_request(Entity.GROUP, api_version="beta")
        assert construct_endpoint(request) == f"{BASE}/beta/groups?$select=id&$top=10"

    def test_filter_is_escaped(self):
        """Test that $filter is query-escaped."""
        request = graph_request(Entity.USER, filter="department eq 'R&D'")
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/users?$select=id&$top=10&$filter=department+eq+%27R%26D%27"
        )

    def test_group_member_listing(self):
        """Test the member listing of the current group."""
        request = graph_request(Entity.GROUP_MEMBER, page_size=5, cursor=CompositeCursor(collection_id="g1"))
        assert construct_endpoint(request) == f"{BASE}/v1.0/groups/g1/members?$select=id&$top=5"

    def test_group_member_next_link_is_used_verbatim(self):
        """Test that member pages follow the nextLink too."""
        next_link = f"{BASE}/v1.0/groups/g1/members?$skiptoken=2"
        request = graph_request(
            Entity.GROUP_MEMBER,
            cursor=CompositeCursor(cursor=next_link, collection_id="g1"),
        )
        assert construct_endpoint(request) == next_link

    def test_group_member_collection_id_is_quoted(self):
        """Test that collection ids are safe in the path."""
        request = graph_request(Entity.GROUP_MEMBER, cursor=CompositeCursor(collection_id="a/b c"))
        assert construct_endpoint(request).startswith(f"{BASE}/v1.0/groups/a%2Fb%20c/members?")

    def test_group_member_with_filter(self):
        """Test that a member filter is applied to the member listing."""
        request = graph_request(
            Entity.GROUP_MEMBER,
            cursor=CompositeCursor(collection_id="g1"),
            filter="accountEnabled eq true",
        )
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/groups/g1/members?$select=id&$top=10&$filter=accountEnabled+eq+true"
        )

    def test_group_member_without_collection_id(self):
        """Test that a member listing needs a group."""
        with pytest.raises(InternalError) as exc_info:
            construct_endpoint(graph_request(Entity.GROUP_MEMBER))
        assert exc_info.value.message == "Unable to construct group member endpoint without valid cursor."

    def test_advanced_group_member_listing(self):
        """Test the type-cast member listing used by advanced filters."""
        request = graph_request(
            Entity.GROUP_MEMBER,
            cursor=CompositeCursor(collection_id="g1"),
            filter="department eq 'Sales'",
            use_advanced_filters=True,
            advanced_member_entity=Entity.USER,
        )
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/groups/g1/members/microsoft.graph.user"
            "?$select=id&$top=10&$filter=department+eq+%27Sales%27&$count=true"
        )

    def test_advanced_member_type_must_be_supported(self):
        """Test that only user and group member listings exist."""
        request = graph_request(
            Entity.GROUP_MEMBER,
            cursor=CompositeCursor(collection_id="g1"),
            use_advanced_filters=True,
            advanced_member_entity=Entity.DEVICE,
        )
        with pytest.raises(EntityConfigError, match="Provided advanced filter member external ID is invalid."):
            construct_endpoint(request)

    def test_advanced_users_are_listed_through_groups(self):
        """Test that advanced User pages list the members of the scope group."""
        request = graph_request(
            Entity.USER,
            cursor=CompositeCursor(collection_id="g1"),
            use_advanced_filters=True,
            advanced_member_entity=Entity.USER,
            attributes=attrs("id", "mail", "$.manager.id"),
        )
        # $expand is not allowed in advanced queries
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/groups/g1/members/microsoft.graph.user?$select=id,mail&$top=10&$count=true"
        )

    def test_advanced_groups_without_member_type_use_group_path(self):
        """Test that scope-only advanced Group pages list groups directly."""
        request = graph_request(Entity.GROUP, filter="id eq 'g1'", use_advanced_filters=True)
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/groups?$select=id&$top=10&$filter=id+eq+%27g1%27&$count=true"
        )

    def test_role_member_listing(self):
        """Test the directory roles of the current user."""
        request = graph_request(Entity.ROLE_MEMBER, page_size=3, cursor=CompositeCursor(collection_id="u1"))
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/users/u1/transitiveMemberOf/microsoft.graph.directoryRole?$select=id&$top=3"
        )

    def test_role_member_without_collection_id(self):
        """Test that a role listing needs a user."""
        with pytest.raises(InternalError) as exc_info:
            construct_endpoint(graph_request(Entity.ROLE_MEMBER, cursor=CompositeCursor()))
        assert exc_info.value.message == "Unable to construct role member endpoint without valid cursor."

    def test_roles_have_no_top(self):
        """Test that directory roles are fetched in one response."""
        request = graph_request(
            Entity.ROLE,
            cursor=CompositeCursor(cursor="2"),
            attributes=attrs("id", "displayName"),
        )
        assert construct_endpoint(request) == f"{BASE}/v1.0/directoryRoles?$select=id,displayName"

    def test_pim_uses_skip(self):
        """Test that PIM entities are offset paged."""
        request = graph_request(
            Entity.ROLE_ASSIGNMENT_SCHEDULE_REQUEST,
            cursor=CompositeCursor(cursor="20"),
            skip=20,
        )
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/roleManagement/directory/roleAssignmentScheduleRequests?$select=id&$top=10&$skip=20"
        )

    def test_group_pim_path(self):
        """Test the group assignment schedule request path."""
        request = graph_request(Entity.GROUP_ASSIGNMENT_SCHEDULE_REQUEST)
        assert construct_endpoint(request) == (
            f"{BASE}/v1.0/identityGovernance/privilegedAccess/group/assignmentScheduleRequests"
            "?$select=id&$top=10&$skip=0"
        )


class TestFormAttributeParams:
    """Tests for attribute selection."""

    def test_id_is_selected_once(self):
        """Test that the unique id is always first and never repeated."""
        assert form_attribute_params(Entity.USER, page_size=5, attributes=attrs("mail", "id")) == (
            "?$select=id,mail&$top=5"
        )

    def test_complex_attribute_selects_parent_once(self):
        """Test that parent__child names on non-expandable parents select the parent."""
        params = form_attribute_params(
            Entity.USER,
            page_size=5,
            attributes=attrs("onPremisesExtensionAttributes__a1", "onPremisesExtensionAttributes__a2"),
        )
        assert params == "?$select=id,onPremisesExtensionAttributes&$top=5"

    def test_expand_children_are_grouped(self):
        """Test that several children of one relationship share an $expand."""
        params = form_attribute_params(
            Entity.GROUP,
            page_size=5,
            expandable=Entity.GROUP.info.expandable,
            attributes=attrs("owners__id", "$.owners.mail"),
        )
        assert params == "?$select=id&$expand=owners($select=id,mail)&$top=5"

    def test_single_json_path_attribute_is_selected(self):
        """Test that a one-level JSON path selects that attribute."""
        params = form_attribute_params(Entity.USER, page_size=5, attributes=attrs("$.emails[0]"))
        assert params == "?$select=id,emails&$top=5"

    @pytest.mark.parametrize(
        "external_id,message",
        [
            (
                "$..name",
                'Provided entity attribute external id contains unsupported JSON path expression: "$..name".',
            ),
            (
                "$.[0]",
                "Unable to extract any attributes from JSON path expression in provided "
                'attribute external id: "$.[0]".',
            ),
            (
                "$.manager.address.city",
                "Too many attributes extracted from JSON path expression in provided attribute "
                "external id. Found: 3. Maximum supported: 2.",
            ),
            (
                "$.owners.id",
                'Unsupported parent attribute provided for the current entity type: "owners".',
            ),
            (
                "__name",
                "Provided entity attribute list contains the following unsupported attribute: __name.",
            ),
        ],
    )
    def test_unsupported_attributes(self, external_id, message):
        """Test the error for each unsupported attribute form."""
        with pytest.raises(EntityConfigError) as exc_info:
            form_attribute_params(
                Entity.USER,
                page_size=5,
                expandable=Entity.USER.info.expandable,
                attributes=attrs(external_id),
            )
        assert exc_info.value.message == message
