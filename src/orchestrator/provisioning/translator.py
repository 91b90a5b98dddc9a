"""Convert schema definitions into Notion API property payloads.

Relation properties are never part of database creation: both endpoints
must exist first, so they are added afterwards with a schema patch built
by to_relation_patch().
"""

from typing import Any

from src.errors.domain import InvalidRelationError
from src.schema.models import (
    DatabaseDefinition,
    PropertyDefinition,
    PropertyType,
    SelectOption,
)

DEFAULT_OPTION_COLOR = "default"

# Property types whose creation payload is an empty config object.
_EMPTY_CONFIG_TYPES = {
    PropertyType.title,
    PropertyType.rich_text,
    PropertyType.date,
    PropertyType.people,
    PropertyType.url,
    PropertyType.email,
    PropertyType.phone_number,
}


def _options_payload(options: list[SelectOption] | None) -> list[dict[str, str]]:
    """Pass select options through, filling in the default color."""
    return [
        {"name": opt.name, "color": opt.color or DEFAULT_OPTION_COLOR}
        for opt in options or []
    ]


def to_creation_payload(prop: PropertyDefinition) -> dict[str, Any] | None:
    """Build the creation payload for one property.

    Args:
        prop: Property definition.

    Returns:
        Notion property object, or None for relation properties.
    """
    base: dict[str, Any] = {"name": prop.name}

    if prop.type in _EMPTY_CONFIG_TYPES:
        return {**base, prop.type.value: {}}
    if prop.type == PropertyType.number:
        return {**base, "number": {"format": "number"}}
    if prop.type in (PropertyType.select, PropertyType.multi_select):
        return {**base, prop.type.value: {"options": _options_payload(prop.options)}}
    return None


def database_properties_payload(database: DatabaseDefinition) -> dict[str, Any]:
    """Build the name-keyed property map for creating a database.

    Args:
        database: Database definition.

    Returns:
        Mapping of property name to Notion property object, relations excluded.
    """
    properties: dict[str, Any] = {}
    for prop in database.properties:
        payload = to_creation_payload(prop)
        if payload is not None:
            properties[prop.name] = payload
    return properties


def to_relation_patch(
    prop: PropertyDefinition,
    target_runtime_id: str,
    target_field: str = "database_id",
) -> dict[str, Any]:
    """Build the schema patch that adds a two-way relation.

    Args:
        prop: A relation property with its RelationConfig.
        target_runtime_id: Runtime id of the already-created target.
        target_field: "database_id", or "data_source_id" on API versions
            with data sources.

    Returns:
        Mapping of property name to a dual-property relation object.

    Raises:
        InvalidRelationError: If prop is not a relation or has no config.
    """
    if prop.type != PropertyType.relation:
        raise InvalidRelationError(prop.name, f"type is {prop.type.value}, not relation")
    if prop.relation is None:
        raise InvalidRelationError(prop.name, "relation config is missing")

    return {
        prop.name: {
            "type": "relation",
            "relation": {
                target_field: target_runtime_id,
                "type": "dual_property",
                "dual_property": {
                    "synced_property_name": prop.relation.synced_property_name,
                },
            },
        }
    }
