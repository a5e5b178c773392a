"""Tests for merging catalogs and schemas between models."""

import logging

import pytest

from threatsmanager.catalogs import initialize_standard_catalogs
from threatsmanager.duplication import DuplicationDefinition
from threatsmanager.entities import EntityType
from threatsmanager.model import ThreatModel


@pytest.fixture
def target():
    result = ThreatModel("Target")
    initialize_standard_catalogs(result)
    result.reset_dirty()
    yield result
    result.dispose()


class TestMerge:
    def test_merge_catalogs_into_empty_model(self, graph, target):
        assert target.merge(graph.model, DuplicationDefinition.everything())

        assert [x.name for x in target.threat_types] == ["Spoofing", "Tampering"]
        assert {x.name for x in target.mitigations} == {"Multi-factor Authentication", "Audit Logging"}
        assert [x.name for x in target.threat_actors] == ["Script Kiddie"]
        assert [x.name for x in target.entity_templates] == ["Web Server"]
        assert target.get_schema("Security", graph.schema.namespace) is not None
        assert target.entities == []
        assert target.is_dirty

    def test_merged_template_keeps_property_values(self, graph, target):
        criticality = graph.schema.get_property_type_by_name("Criticality")
        graph.template.get_property(criticality).value = "High"

        target.merge(graph.model, DuplicationDefinition.everything())

        template = target.entity_templates[0]
        assert template.get_property(criticality.id).value == "High"

    def test_threat_type_matched_by_name(self, graph, target):
        existing = target.add_threat_type("Spoofing", target.get_severity(50))

        target.merge(graph.model, DuplicationDefinition.everything())

        assert [x.id for x in target.threat_types if x.name == "Spoofing"] == [existing.id]
        assert [str(x) for x in existing.mitigations] == ["Multi-factor Authentication"]

    def test_links_follow_mitigations_matched_by_name(self, graph, target):
        local_mfa = target.add_mitigation("Multi-factor Authentication")

        target.merge(graph.model, DuplicationDefinition.everything())

        spoofing = target.get_threat_type(graph.spoofing.id)
        assert [x.mitigation_id for x in spoofing.mitigations] == [local_mfa.id]
        assert len([x for x in target.mitigations if x.name == "Multi-factor Authentication"]) == 1

    def test_schema_types_are_merged_and_applied(self, graph, target):
        local = target.add_schema("Security", graph.schema.namespace)
        local.applies_to = graph.schema.applies_to
        local.add_property_type("Owner")
        process = target.add_entity(EntityType.PROCESS, "Local Process")

        target.merge(graph.model, DuplicationDefinition(property_schemas={graph.schema.id}))

        assert sorted(x.name for x in local.property_types) == ["Criticality", "Owner"]
        assert sorted(x.property_type.name for x in process.properties) == ["Criticality", "Owner"]

    def test_strengths_use_strength_selection(self, graph):
        empty = ThreatModel("Empty")
        try:
            assert empty.merge(graph.model, DuplicationDefinition(all_strengths=True))
            assert [x.id for x in empty.strengths] == [x.id for x in graph.model.strengths]
            assert empty.severities == []
        finally:
            empty.dispose()

    def test_invalid_selection_changes_nothing(self, graph, target, caplog):
        with caplog.at_level(logging.WARNING, logger="threatsmanager.merge"):
            merged = target.merge(graph.model, DuplicationDefinition(all_threat_types=True))

        assert not merged
        assert target.threat_types == []
        assert not target.is_dirty
        assert "rejected" in caplog.text

    def test_merging_a_schema_twice_adds_nothing(self, graph, target):
        definition = DuplicationDefinition(property_schemas={graph.schema.id})
        target.merge(graph.model, definition)
        merged = target.get_schema(graph.schema.id)
        count = len(merged.property_types)

        assert target.merge(graph.model, definition)

        assert len(merged.property_types) == count == len(graph.schema.property_types)
        assert len(target.schemas) == 1

    def test_renamed_schema_merges_into_the_same_schema(self, graph, target):
        definition = DuplicationDefinition(property_schemas={graph.schema.id})
        target.merge(graph.model, definition)
        graph.schema.name = "Security v2"
        region = graph.schema.add_property_type("Region")

        assert target.merge(graph.model, definition)

        assert len(target.schemas) == 1
        merged = target.get_schema(graph.schema.id)
        assert merged.name == "Security"
        assert target.get_property_type(region.id) is merged.get_property_type_by_name("Region")
        assert sorted(x.name for x in merged.property_types) == ["Criticality", "Owner", "Region"]
