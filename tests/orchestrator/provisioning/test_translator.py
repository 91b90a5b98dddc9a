"""Tests for schema-to-Notion property translation."""

import pytest

from src.errors import InvalidRelationError
from src.orchestrator.provisioning import (
    database_properties_payload,
    to_creation_payload,
    to_relation_patch,
)
from src.schema import DatabaseDefinition, PropertyDefinition


def _prop(**kwargs) -> PropertyDefinition:
    return PropertyDefinition.model_validate(kwargs)


class TestToCreationPayload:
    """Tests for single-property payloads."""

    @pytest.mark.parametrize(
        "prop_type",
        ["title", "rich_text", "date", "people", "url", "email", "phone_number"],
    )
    def test_empty_config_types(self, prop_type):
        """Simple types carry an empty config object keyed by type."""
        assert to_creation_payload(_prop(name="P", type=prop_type)) == {
            "name": "P",
            prop_type: {},
        }

    def test_number_uses_plain_format(self):
        """Numbers are created with the plain number format."""
        assert to_creation_payload(_prop(name="Value", type="number")) == {
            "name": "Value",
            "number": {"format": "number"},
        }

    def test_select_options_get_default_color(self):
        """Missing option colors fall back to 'default'."""
        payload = to_creation_payload(_prop(
            name="Stage",
            type="select",
            options=[{"name": "Lead", "color": "blue"}, {"name": "Won"}],
        ))
        assert payload == {
            "name": "Stage",
            "select": {"options": [
                {"name": "Lead", "color": "blue"},
                {"name": "Won", "color": "default"},
            ]},
        }

    def test_multi_select_without_options(self):
        """An option-less multi-select gets an empty option list."""
        assert to_creation_payload(_prop(name="Tags", type="multi_select")) == {
            "name": "Tags",
            "multi_select": {"options": []},
        }

    def test_relation_is_deferred(self):
        """Relations are never part of database creation."""
        prop = _prop(
            name="Contacts",
            type="relation",
            relation={"targetDatabaseKey": "contacts", "syncedPropertyName": "Company"},
        )
        assert to_creation_payload(prop) is None


class TestDatabasePropertiesPayload:
    """Tests for whole-database property maps."""

    def test_excludes_relations(self, starter_schema):
        """Accounts keeps title and text properties only."""
        payload = database_properties_payload(starter_schema.databases[0])
        assert list(payload) == ["Company Name", "Address", "Notes"]
        assert payload["Company Name"] == {"name": "Company Name", "title": {}}

    def test_empty_database(self):
        """No properties gives an empty map."""
        assert database_properties_payload(DatabaseDefinition(key="a", name="A")) == {}


class TestToRelationPatch:
    """Tests for relation patches."""

    def test_dual_property_patch(self):
        """The patch creates a two-way relation to the target's runtime id."""
        prop = _prop(
            name="Contacts",
            type="relation",
            relation={"targetDatabaseKey": "contacts", "syncedPropertyName": "Company"},
        )
        assert to_relation_patch(prop, "ds-2") == {
            "Contacts": {
                "type": "relation",
                "relation": {
                    "database_id": "ds-2",
                    "type": "dual_property",
                    "dual_property": {"synced_property_name": "Company"},
                },
            }
        }

    def test_data_source_target(self):
        """Newer API versions address the target by data source id."""
        prop = _prop(
            name="Contacts",
            type="relation",
            relation={"targetDatabaseKey": "contacts", "syncedPropertyName": "Company"},
        )
        relation = to_relation_patch(prop, "ds-2", "data_source_id")["Contacts"]["relation"]
        assert relation["data_source_id"] == "ds-2"
        assert "database_id" not in relation

    def test_non_relation_rejected(self):
        """Asking for a patch on a plain property is a programmer error."""
        with pytest.raises(InvalidRelationError, match="not relation"):
            to_relation_patch(_prop(name="Email", type="email"), "ds-1")

    def test_missing_config_rejected(self):
        """A relation without config cannot be patched."""
        with pytest.raises(InvalidRelationError, match="relation config is missing"):
            to_relation_patch(_prop(name="Link", type="relation"), "ds-1")
