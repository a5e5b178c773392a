"""Tests for selection validation and model duplication."""

import pytest

from threatsmanager.duplication import DuplicationDefinition
from threatsmanager.exceptions import DuplicationValidationError
from threatsmanager.identity import ThreatModelManager


class TestDuplicationDefinition:
    def test_everything_selects_all_kinds(self):
        definition = DuplicationDefinition.everything()
        assert definition.all_entities and definition.all_severities and definition.all_property_schemas
        assert definition.contributors and definition.assumptions and definition.dependencies

    def test_camel_case_aliases(self, graph):
        definition = DuplicationDefinition.model_validate({
            "allSeverities": True,
            "mitigations": [str(graph.mfa.id)],
        })
        assert definition.all_severities
        assert definition.mitigations == {graph.mfa.id}

    def test_field_names_accepted(self):
        definition = DuplicationDefinition(all_strengths=True, strengths={50})
        assert definition.all_strengths
        assert definition.strengths == {50}


class TestValidation:
    def test_everything_is_valid(self, graph):
        assert graph.model.validate_duplication(DuplicationDefinition.everything()) == []

    def test_missing_severity(self, model):
        threat_type = model.add_threat_type("Spoofing", model.get_severity(75))
        definition = DuplicationDefinition(threat_types={threat_type.id})

        reasons = model.validate_duplication(definition)

        assert reasons == ["Threat Type 'Spoofing': severity 'High' (75) has not been selected"]

    def test_entities_without_their_group_and_template(self, graph):
        definition = DuplicationDefinition(
            all_severities=True, all_strengths=True, all_property_schemas=True, all_entities=True,
        )

        reasons = graph.model.validate_duplication(definition)

        assert any("group 'Internet Boundary'" in x for x in reasons)
        assert any("template 'Web Server'" in x for x in reasons)
        assert any("threat type 'Spoofing'" in x for x in reasons)
        assert any("actor 'Script Kiddie'" in x for x in reasons)
        assert any("mitigation 'Multi-factor Authentication'" in x for x in reasons)

    def test_properties_need_their_schema(self, graph):
        definition = DuplicationDefinition(entities={graph.database.id}, all_severities=True,
                                           all_threat_types=True)

        reasons = graph.model.validate_duplication(definition)

        assert any("property type 'Criticality'" in x for x in reasons)
        assert any("property type 'Owner'" in x for x in reasons)

    def test_flow_endpoints(self, graph):
        definition = DuplicationDefinition(entities={graph.user.id}, data_flows={graph.request.id})

        reasons = graph.model.validate_duplication(definition)

        assert any(x.startswith("Flow 'Request': target 'Web App'") for x in reasons)
        assert not any("source" in x for x in reasons)


class TestDuplicate:
    def test_invalid_selection_raises(self, graph):
        definition = DuplicationDefinition(all_entities=True)
        with pytest.raises(DuplicationValidationError) as exc_info:
            graph.model.duplicate("Rejected Copy", definition)

        assert exc_info.value.reasons
        assert "Invalid duplication definition" in str(exc_info.value)
        assert not graph.model.is_dirty
        assert not any(x.name == "Rejected Copy" for x in ThreatModelManager.models())
        assert [x.name for x in graph.model.entities] == ["User", "Web App", "Database"]

    def test_duplicate_everything(self, graph):
        source = graph.model
        copy = source.duplicate("Copy", DuplicationDefinition.everything())
        try:
            assert copy.id != source.id
            assert copy.name == "Copy"
            assert not copy.is_dirty
            assert [x.id for x in copy.entities] == [x.id for x in source.entities]
            assert [x.id for x in copy.data_flows] == [x.id for x in source.data_flows]
            assert copy.contributors == ["Alice"]
            assert copy.assumptions == ["The network is hostile"]

            web = copy.get_entity(graph.web.id)
            assert web is not graph.web
            assert web.model is copy
            assert web.parent_id == graph.boundary.id
            criticality = copy.get_property_type(graph.schema.get_property_type_by_name("Criticality").id)
            assert web.get_property(criticality).value == "High"

            threat_event = web.get_threat_event(graph.web_spoofing.id)
            assert threat_event.get_scenario(graph.scenario.id).actor.model is copy
            assert threat_event.get_mitigation(graph.mfa.id).status == graph.link.status

            diagram = copy.get_diagram(graph.diagram.id)
            assert len(diagram.shapes) == len(graph.diagram.shapes)
            assert copy.total_threat_events == source.total_threat_events
        finally:
            copy.dispose()

    def test_copy_is_independent(self, graph):
        copy = graph.model.duplicate("Copy", DuplicationDefinition.everything())
        try:
            copy.get_entity(graph.web.id).name = "Changed"
            assert graph.web.name == "Web App"
            assert copy.is_dirty
            assert not graph.model.is_dirty
        finally:
            copy.dispose()

    def test_partial_selection(self, graph):
        definition = DuplicationDefinition(all_severities=True, all_strengths=True, all_mitigations=True,
                                           threat_types={graph.spoofing.id})
        copy = graph.model.duplicate("Catalog", definition)
        try:
            assert copy.entities == []
            assert [x.name for x in copy.threat_types] == ["Spoofing"]
            assert len(copy.get_threat_type(graph.spoofing.id).mitigations) == 1
            assert copy.contributors == []
        finally:
            copy.dispose()

    def test_every_kind_is_copied(self, graph):
        source = graph.model
        copy = source.duplicate("Copy", DuplicationDefinition.everything())
        try:
            for kind in ("severities", "strengths", "schemas", "properties", "threat_actors", "mitigations",
                         "threat_types", "groups", "entity_templates", "entities", "data_flows", "diagrams",
                         "contributors", "assumptions", "dependencies"):
                assert len(getattr(copy, kind)) == len(getattr(source, kind)), kind
            assert [len(x.property_types) for x in copy.schemas] == [len(x.property_types) for x in source.schemas]
            assert len(copy.get_threat_event_mitigations()) == len(source.get_threat_event_mitigations())
        finally:
            copy.dispose()

    def test_property_change_on_copy_leaves_source_unchanged(self, graph):
        criticality = graph.schema.get_property_type_by_name("Criticality")
        copy = graph.model.duplicate("Copy", DuplicationDefinition.everything())
        try:
            copy.get_entity(graph.web.id).get_property(criticality.id).value = "Low"
            copy.get_entity_template(graph.template.id).get_property(criticality.id).value = "High"

            assert graph.web.get_property(criticality).value == "High"
            assert graph.template.get_property(criticality).value is None
            assert not graph.model.is_dirty
            assert copy.is_dirty
        finally:
            copy.dispose()
