"""JSON:API ``included`` handling for Rootly responses.

Rootly returns related resources requested with ``include`` in a top-level
``included`` array, referenced from each object's ``relationships`` by
``type`` and ``id``. ``process_includes`` inlines them. Incidents get extra
treatment: their form field selections are flattened so the selected
users, services, groups and so on can be reached with simple JSON paths.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

__all__ = [
    "SELECTED_ENTITY_TYPES",
    "process_includes",
    "enrich_incident_data",
    "enrich_all_incident_data",
]

SELECTED_ENTITY_TYPES = (
    "selected_groups",
    "selected_options",
    "selected_services",
    "selected_functionalities",
    "selected_catalog_entities",
    "selected_users",
)


def _key(obj: Dict[str, Any]) -> Optional[str]:
    obj_id, obj_type = obj.get("id"), obj.get("type")
    if not isinstance(obj_id, str) or not isinstance(obj_type, str):
        return None
    return f"{obj_type}:{obj_id}"


def _merge(reference: Dict[str, Any], included: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if included is None:
        return reference
    merged = dict(reference)
    merged.update(included)
    return merged


def process_includes(
    data: List[Dict[str, Any]],
    included: Optional[List[Dict[str, Any]]],
) -> List[Dict[str, Any]]:
    """Replace relationship references with the matching included resource.

    The reference's own fields are kept and the included resource's fields
    are laid over them. References with no match are left as they are.
    """
    if not included:
        return data

    by_key: Dict[str, Dict[str, Any]] = {}
    for item in included:
        key = _key(item)
        if key is not None:
            by_key[key] = item

    result = []
    for obj in data:
        relationships = obj.get("relationships")
        if not isinstance(relationships, dict):
            result.append(obj)
            continue

        merged_relationships: Dict[str, Any] = {}
        for name, relationship in relationships.items():
            if not isinstance(relationship, dict) or "data" not in relationship:
                merged_relationships[name] = relationship
                continue

            ref = relationship["data"]
            if isinstance(ref, list):
                ref = [
                    _merge(item, by_key.get(_key(item) or ""))
                    for item in ref
                    if isinstance(item, dict)
                ]
            elif isinstance(ref, dict):
                ref = _merge(ref, by_key.get(_key(ref) or ""))

            merged_relationships[name] = dict(relationship, data=ref)

        result.append(dict(obj, relationships=merged_relationships))

    return result


def _attributes(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    attributes = item.get("attributes")
    return attributes if isinstance(attributes, dict) else None


def _selected(attributes: Dict[str, Any], entity_type: str) -> List[Dict[str, Any]]:
    value = attributes.get(entity_type)
    if not isinstance(value, list):
        return []
    return [entity for entity in value if isinstance(entity, dict)]


def _matching(
    incident_id: str, included: List[Dict[str, Any]]
) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any]]]:
    for item in included:
        attributes = _attributes(item)
        if attributes is None:
            continue
        if attributes.get("incident_id") == incident_id:
            yield item, attributes


def enrich_incident_data(incident: Dict[str, Any], included: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Attach the included items belonging to ``incident``.

    Adds ``included``: every selected entity of each matching item, tagged
    with ``entity_type`` and ``form_field_id``, followed by the item itself.
    Adds ``all_<selected type>``: every selected entity of that type across
    the matching items, tagged with ``field_id``.
    """
    enriched = dict(incident)

    if not included or "id" not in incident:
        return enriched

    incident_id = str(incident["id"])

    expanded: List[Dict[str, Any]] = []
    for item, attributes in _matching(incident_id, included):
        form_field_id = attributes.get("form_field_id")
        if not isinstance(form_field_id, str):
            form_field_id = ""

        for entity_type in SELECTED_ENTITY_TYPES:
            for entity in _selected(attributes, entity_type):
                expanded_entity = dict(entity, entity_type=entity_type)
                if form_field_id:
                    expanded_entity["form_field_id"] = form_field_id
                expanded.append(expanded_entity)

        item_copy = dict(item)
        if form_field_id:
            item_copy["form_field_id"] = form_field_id
        expanded.append(item_copy)

    if expanded:
        enriched["included"] = expanded

    for entity_type in SELECTED_ENTITY_TYPES:
        entities = []
        for _, attributes in _matching(incident_id, included):
            form_field_id = attributes.get("form_field_id")
            for entity in _selected(attributes, entity_type):
                entity = dict(entity)
                if isinstance(form_field_id, str) and form_field_id:
                    entity["field_id"] = form_field_id
                entities.append(entity)
        if entities:
            enriched[f"all_{entity_type}"] = entities

    return enriched


def enrich_all_incident_data(
    incidents: List[Dict[str, Any]],
    included: Optional[List[Dict[str, Any]]],
) -> List[Dict[str, Any]]:
    return [enrich_incident_data(incident, included) for incident in incidents]
