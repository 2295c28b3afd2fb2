"""Tests for JSON:API included resource handling."""

from __future__ import annotations

import copy

from adapters.rootly.includes import enrich_all_incident_data, enrich_incident_data, process_includes

INCIDENT = {
    "id": "inc1",
    "type": "incidents",
    "attributes": {"title": "Checkout errors"},
    "relationships": {
        "user": {"data": {"id": "u1", "type": "users"}},
        "services": {"data": [{"id": "s1", "type": "services"}, {"id": "s2", "type": "services"}]},
        "environments": {"data": None},
        "links": {"self": "https://api.rootly.com/v1/incidents/inc1"},
    },
}

INCLUDED = [
    {"id": "u1", "type": "users", "attributes": {"name": "Ann"}},
    {"id": "s1", "type": "services", "attributes": {"name": "API"}},
]

SELECTIONS = [
    {
        "id": "ffs1",
        "type": "incident_form_field_selections",
        "attributes": {
            "incident_id": "inc1",
            "form_field_id": "ff1",
            "selected_users": [{"id": 5, "name": "Ann"}],
            "selected_services": [{"id": "s1"}],
        },
    },
    {
        "id": "ffs2",
        "type": "incident_form_field_selections",
        "attributes": {"incident_id": "inc1", "selected_users": [{"id": 6}]},
    },
    {
        "id": "ffs3",
        "type": "incident_form_field_selections",
        "attributes": {"incident_id": "other", "selected_users": [{"id": 7}]},
    },
]


class TestProcessIncludes:
    """Tests for process_includes."""

    def test_single_reference_is_merged(self):
        """Test that a to-one reference gains the included resource's fields."""
        [result] = process_includes([INCIDENT], INCLUDED)
        assert result["relationships"]["user"]["data"] == {"id": "u1", "type": "users", "attributes": {"name": "Ann"}}

    def test_list_references_are_merged(self):
        """Test that to-many references are merged where a match exists."""
        [result] = process_includes([INCIDENT], INCLUDED)
        assert result["relationships"]["services"]["data"] == [
            {"id": "s1", "type": "services", "attributes": {"name": "API"}},
            {"id": "s2", "type": "services"},
        ]

    def test_other_relationships_are_untouched(self):
        """Test that empty and link-only relationships are kept as they are."""
        [result] = process_includes([INCIDENT], INCLUDED)
        assert result["relationships"]["environments"] == {"data": None}
        assert result["relationships"]["links"] == INCIDENT["relationships"]["links"]

    def test_input_is_not_modified(self):
        """Test that the response objects are copied, not changed in place."""
        original = copy.deepcopy(INCIDENT)
        process_includes([INCIDENT], INCLUDED)
        assert INCIDENT == original

    def test_without_included_data_is_returned(self):
        """Test that nothing happens when the response has no included array."""
        assert process_includes([INCIDENT], None) == [INCIDENT]
        assert process_includes([INCIDENT], []) == [INCIDENT]


class TestEnrichIncidentData:
    """Tests for incident form field flattening."""

    def test_included_lists_selected_entities_then_item(self):
        """Test the order and tagging of the expanded included list."""
        enriched = enrich_incident_data({"id": "inc1"}, SELECTIONS)

        assert enriched["included"] == [
            {"id": "s1", "entity_type": "selected_services", "form_field_id": "ff1"},
            {"id": 5, "name": "Ann", "entity_type": "selected_users", "form_field_id": "ff1"},
            dict(SELECTIONS[0], form_field_id="ff1"),
            {"id": 6, "entity_type": "selected_users"},
            SELECTIONS[1],
        ]

    def test_all_lists_collect_across_selections(self):
        """Test that all_<type> gathers every selected entity of the incident."""
        enriched = enrich_incident_data({"id": "inc1"}, SELECTIONS)

        assert enriched["all_selected_users"] == [{"id": 5, "name": "Ann", "field_id": "ff1"}, {"id": 6}]
        assert enriched["all_selected_services"] == [{"id": "s1", "field_id": "ff1"}]
        assert "all_selected_groups" not in enriched

    def test_other_incidents_are_ignored(self):
        """Test that selections of another incident are not attached."""
        enriched = enrich_incident_data({"id": "inc2"}, SELECTIONS)
        assert enriched == {"id": "inc2"}

    def test_incident_without_id(self):
        """Test that an incident without an id is returned unchanged."""
        assert enrich_incident_data({"title": "x"}, SELECTIONS) == {"title": "x"}

    def test_enrich_all(self):
        """Test that every incident of a page is enriched."""
        enriched = enrich_all_incident_data([{"id": "inc1"}, {"id": "other"}], SELECTIONS)
        assert [len(e.get("all_selected_users", [])) for e in enriched] == [2, 1]
