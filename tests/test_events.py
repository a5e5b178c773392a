"""Tests for the model-level change notification bus."""

from threatsmanager.entities import EntityType


class TestChildEvents:
    def test_child_created_for_top_level_and_nested_objects(self, graph):
        model = graph.model
        created = []
        model.child_created.subscribe(created.append)

        process = model.add_entity(EntityType.PROCESS, "Worker")
        threat_event = process.add_threat_event(graph.spoofing)
        scenario = threat_event.add_scenario(graph.actor, graph.high)
        link = threat_event.add_mitigation(graph.mfa, graph.strong)
        shape = graph.diagram.add_entity_shape(process)

        assert created == [process, threat_event, scenario, link, shape]

    def test_child_removed_for_nested_objects(self, graph):
        model = graph.model
        removed = []
        model.child_removed.subscribe(removed.append)

        graph.web_spoofing.remove_scenario(graph.scenario.id)
        graph.web.remove_threat_event(graph.web_spoofing.id)

        assert removed == [graph.scenario, graph.web_spoofing]

    def test_child_changed(self, graph):
        model = graph.model
        changes = []
        model.child_changed.subscribe(lambda item, field: changes.append((item, field)))

        graph.web.name = "Frontend"
        graph.scenario.motivation = "Fun"
        graph.link.status = "planned"
        graph.diagram.get_entity_shape(graph.web.id).position = (1, 2)

        assert [x[1] for x in changes] == ["name", "motivation", "status", "position"]
        assert changes[0][0] is graph.web
        assert model.is_dirty

    def test_child_property_events(self, graph):
        model = graph.model
        changed = []
        model.child_property_changed.subscribe(lambda item, property_type, prop: changed.append(
            (item, property_type.name, prop.value)))
        owner = graph.schema.get_property_type_by_name("Owner")

        graph.database.get_property(owner).value = "DBA team"

        assert changed == [(graph.database, "Owner", "DBA team")]

    def test_child_property_added_and_removed(self, graph):
        model = graph.model
        added, removed = [], []
        model.child_property_added.subscribe(lambda item, property_type, prop: added.append(item))
        model.child_property_removed.subscribe(lambda item, property_type, prop: removed.append(item))
        extra = model.add_schema("Extra", graph.schema.namespace).add_property_type("Note")

        graph.scenario.add_property(extra)
        graph.scenario.remove_property(extra)

        assert added == [graph.scenario]
        assert removed == [graph.scenario]


class TestUnregistration:
    def test_removed_entity_no_longer_reported(self, graph):
        model = graph.model
        web = graph.web
        changes = []
        model.child_changed.subscribe(lambda item, field: changes.append(item))

        model.remove_entity(web.id)
        web.name = "Detached"
        graph.web_spoofing.name = "Detached event"

        assert changes == []
        assert web.changed.handler_count == 0
        assert graph.web_spoofing.changed.handler_count == 0

    def test_dispose_unsubscribes_everything(self, graph):
        model = graph.model
        model.dispose()

        for item in (graph.web, graph.query, graph.web_spoofing, graph.scenario, graph.link, graph.schema,
                     graph.diagram, *graph.diagram.shapes):
            assert item.changed.handler_count == 0
        assert graph.web.property_value_changed.handler_count == 0
