"""Tests for property schemas, property types and properties."""

import pytest

from threatsmanager.entities import EntityType
from threatsmanager.exceptions import ReadOnlyPropertyError
from threatsmanager.properties import PropertyKind


class TestPropertySchema:
    def test_add_property_type_rejects_duplicate_name(self, security_schema):
        assert security_schema.add_property_type("Owner") is None
        assert len(security_schema.property_types) == 2

    def test_property_types_ordered_by_priority(self, security_schema):
        owner = security_schema.get_property_type_by_name("Owner")
        owner.priority = -1
        assert [x.name for x in security_schema.property_types] == ["Owner", "Criticality"]

    def test_property_type_knows_its_schema(self, security_schema):
        property_type = security_schema.get_property_type_by_name("Criticality")
        assert property_type.schema is security_schema
        assert property_type.kind == PropertyKind.LIST
        assert property_type.values == ["Low", "High"]

    def test_remove_property_type(self, security_schema):
        owner = security_schema.get_property_type_by_name("Owner")
        assert security_schema.remove_property_type(owner.id)
        assert not security_schema.remove_property_type(owner.id)
        assert security_schema.get_property_type(owner.id) is None

    def test_merge_property_types_adds_missing_names(self, model, security_schema):
        other = model.add_schema("Other", security_schema.namespace)
        other.add_property_type("Owner")
        other.add_property_type("Data Classification")

        added = security_schema.merge_property_types(other)

        assert added == 1
        merged = security_schema.get_property_type_by_name("Data Classification")
        assert merged is not None
        assert merged.schema_id == security_schema.id
        assert merged.id != other.get_property_type_by_name("Data Classification").id

    def test_str(self, security_schema):
        assert str(security_schema) == "Security (https://example.com/threatsmanager/test)"


class TestProperties:
    def test_one_property_per_type(self, model, security_schema):
        process = model.add_entity(EntityType.PROCESS, "API")
        owner = security_schema.get_property_type_by_name("Owner")

        assert process.has_property(owner)
        assert process.add_property(owner, "Bob") is None

    def test_value_change_is_announced_once(self, model, security_schema):
        process = model.add_entity(EntityType.PROCESS, "API")
        prop = process.get_property(security_schema.get_property_type_by_name("Owner"))
        changes = []
        process.property_value_changed.subscribe(lambda container, p: changes.append(p.value))

        prop.value = "Bob"
        prop.value = "Bob"

        assert changes == ["Bob"]

    def test_read_only_property_rejects_writes(self, model, security_schema):
        process = model.add_entity(EntityType.PROCESS, "API")
        prop = process.get_property(security_schema.get_property_type_by_name("Owner"))
        prop.value = "Bob"
        prop.read_only = True

        with pytest.raises(ReadOnlyPropertyError, match="Owner"):
            prop.value = "Eve"
        assert prop.value == "Bob"

    def test_remove_property(self, model, security_schema):
        process = model.add_entity(EntityType.PROCESS, "API")
        owner = security_schema.get_property_type_by_name("Owner")
        removed = []
        process.property_removed.subscribe(lambda container, p: removed.append(p.property_type_id))

        assert process.remove_property(owner)
        assert not process.remove_property(owner.id)
        assert removed == [owner.id]

    def test_find_property(self, model, security_schema):
        process = model.add_entity(EntityType.PROCESS, "API")
        prop = process.get_property(security_schema.get_property_type_by_name("Owner"))
        assert model.find_property(prop.id) is prop

    def test_merge_properties_keeps_existing_values(self, model, security_schema):
        first = model.add_entity(EntityType.PROCESS, "First")
        second = model.add_entity(EntityType.DATA_STORE, "Second")
        owner = security_schema.get_property_type_by_name("Owner")
        first.get_property(owner).value = "Alice"
        second.get_property(owner).value = "Bob"

        added = first.merge_properties(second)

        assert added == 0
        assert first.get_property(owner).value == "Alice"
