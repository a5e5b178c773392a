"""The threat model aggregate root."""

import logging
import uuid
from typing import Iterable, Optional, TypeVar, Union

from .diagrams import Diagram, ShapesContainer
from .duplication import DuplicationDefinition, duplicate_model, validate_definition
from .entities import ENTITY_CLASSES, DataFlow, Entity, EntityTemplate, EntityType, Group, TrustBoundary
from .identity import Identity, ThreatModelManager
from .merge import merge_models
from .observable import Event, dirty_tracking
from .properties import PropertiesContainer, Property
from .schema_engine import SchemasMixin
from .scope import Scope
from .threats import (
    ActorType, MitigationLinksContainer, MitigationStatus, Mitigation, SecurityControlType, Severity,
    Strength, ThreatActor, ThreatEvent, ThreatEventMitigation, ThreatEventsContainer, ThreatType,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _find(items: Iterable[T], item_id) -> Optional[T]:
    if item_id is None:
        return None
    return next((x for x in items if x.id == item_id), None)


def _children(item) -> list:
    """Objects directly owned by item that are registered with the model on their own."""
    result = []
    if isinstance(item, ThreatEventsContainer):
        result.extend(item.threat_events)
    if isinstance(item, ThreatEvent):
        result.extend(item.scenarios)
    if isinstance(item, MitigationLinksContainer):
        result.extend(item.mitigations)
    if isinstance(item, ShapesContainer):
        result.extend(item.shapes)
    return result


def _mitigation_level(container: MitigationLinksContainer) -> int:
    return sum(x.strength_id for x in container.mitigations)


class ThreatModel(SchemasMixin, PropertiesContainer, ThreatEventsContainer, Identity):
    """
    Root of the object graph.

    Owns every top-level collection, creates and removes objects through
    typed factories and republishes the changes of its children as
    model-level events: child_created, child_removed, child_changed and
    child_property_added/removed/changed.
    """

    type_label = 'Threat Model'
    type_initial = 'M'
    scope = Scope.THREAT_MODEL

    def __init__(self, name: str, *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._id = id or uuid.uuid4()
        self._name = name
        self._owner: Optional[str] = None
        self._contributors: list[str] = []
        self._assumptions: list[str] = []
        self._dependencies: list[str] = []
        self._schemas = []
        self._entities: list[Entity] = []
        self._data_flows: list[DataFlow] = []
        self._groups: list[Group] = []
        self._entity_templates: list[EntityTemplate] = []
        self._diagrams: list[Diagram] = []
        self._threat_types: list[ThreatType] = []
        self._mitigations: list[Mitigation] = []
        self._severities: list[Severity] = []
        self._strengths: list[Strength] = []
        self._threat_actors: list[ThreatActor] = []
        self._last_index: dict[str, int] = {}
        self._dirty = False

        self.child_created = Event('child_created')
        self.child_removed = Event('child_removed')
        self.child_changed = Event('child_changed')
        self.child_property_added = Event('child_property_added')
        self.child_property_removed = Event('child_property_removed')
        self.child_property_changed = Event('child_property_changed')
        self.contributor_added = Event('contributor_added')
        self.contributor_removed = Event('contributor_removed')
        self.contributor_changed = Event('contributor_changed')
        self.assumption_added = Event('assumption_added')
        self.assumption_removed = Event('assumption_removed')
        self.assumption_changed = Event('assumption_changed')
        self.dependency_added = Event('dependency_added')
        self.dependency_removed = Event('dependency_removed')
        self.dependency_changed = Event('dependency_changed')
        self.dirty_changed = Event('dirty_changed')

        ThreatModelManager.register(self)
        self._register_events(self)

    # Ownership and dirty state

    @property
    def model(self) -> 'ThreatModel':
        return self

    def _owner_model(self) -> 'ThreatModel':
        return self

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        if not dirty_tracking.suspended:
            self._set_dirty(True)

    def reset_dirty(self) -> None:
        self._set_dirty(False)

    def _set_dirty(self, value: bool) -> None:
        if value != self._dirty:
            self._dirty = value
            self.dirty_changed.fire(self, value)

    def dispose(self) -> None:
        """Detach every listener registered by this model and drop it from the registry."""
        for item in self._top_level_children():
            self._unregister_events(item)
        self._unregister_events(self)
        ThreatModelManager.unregister(self)

    # General information

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @owner.setter
    def owner(self, value: Optional[str]) -> None:
        if value != self._owner:
            self._owner = value
            self._notify_changed('owner')

    @property
    def contributors(self) -> list[str]:
        return list(self._contributors)

    def add_contributor(self, name: str) -> bool:
        return self._add_text(self._contributors, name, self.contributor_added)

    def remove_contributor(self, name: str) -> bool:
        return self._remove_text(self._contributors, name, self.contributor_removed)

    def change_contributor(self, old_name: str, new_name: str) -> bool:
        return self._change_text(self._contributors, old_name, new_name, self.contributor_changed)

    @property
    def assumptions(self) -> list[str]:
        return list(self._assumptions)

    def add_assumption(self, text: str) -> bool:
        return self._add_text(self._assumptions, text, self.assumption_added)

    def remove_assumption(self, text: str) -> bool:
        return self._remove_text(self._assumptions, text, self.assumption_removed)

    def change_assumption(self, old_text: str, new_text: str) -> bool:
        return self._change_text(self._assumptions, old_text, new_text, self.assumption_changed)

    @property
    def dependencies(self) -> list[str]:
        return list(self._dependencies)

    def add_dependency(self, text: str) -> bool:
        return self._add_text(self._dependencies, text, self.dependency_added)

    def remove_dependency(self, text: str) -> bool:
        return self._remove_text(self._dependencies, text, self.dependency_removed)

    def change_dependency(self, old_text: str, new_text: str) -> bool:
        return self._change_text(self._dependencies, old_text, new_text, self.dependency_changed)

    def _add_text(self, items: list[str], text: str, event: Event) -> bool:
        if text in items:
            return False
        items.append(text)
        self.mark_dirty()
        event.fire(text)
        return True

    def _remove_text(self, items: list[str], text: str, event: Event) -> bool:
        if text not in items:
            return False
        items.remove(text)
        self.mark_dirty()
        event.fire(text)
        return True

    def _change_text(self, items: list[str], old: str, new: str, event: Event) -> bool:
        if old not in items or new in items:
            return False
        items[items.index(old)] = new
        self.mark_dirty()
        event.fire(old, new)
        return True

    # Collections

    @property
    def entities(self) -> list[Entity]:
        return list(self._entities)

    @property
    def data_flows(self) -> list[DataFlow]:
        return list(self._data_flows)

    @property
    def groups(self) -> list[Group]:
        return list(self._groups)

    @property
    def entity_templates(self) -> list[EntityTemplate]:
        return list(self._entity_templates)

    @property
    def diagrams(self) -> list[Diagram]:
        return list(self._diagrams)

    @property
    def threat_types(self) -> list[ThreatType]:
        return list(self._threat_types)

    @property
    def mitigations(self) -> list[Mitigation]:
        return list(self._mitigations)

    @property
    def severities(self) -> list[Severity]:
        return sorted(self._severities, key=lambda x: x.id)

    @property
    def strengths(self) -> list[Strength]:
        return sorted(self._strengths, key=lambda x: x.id)

    @property
    def threat_actors(self) -> list[ThreatActor]:
        return list(self._threat_actors)

    def get_entity(self, entity_id: uuid.UUID) -> Optional[Entity]:
        return _find(self._entities, entity_id)

    def get_data_flow(self, data_flow_id: uuid.UUID) -> Optional[DataFlow]:
        return _find(self._data_flows, data_flow_id)

    def get_group(self, group_id: uuid.UUID) -> Optional[Group]:
        return _find(self._groups, group_id)

    def get_entity_template(self, template_id: uuid.UUID) -> Optional[EntityTemplate]:
        return _find(self._entity_templates, template_id)

    def get_diagram(self, diagram_id: uuid.UUID) -> Optional[Diagram]:
        return _find(self._diagrams, diagram_id)

    def get_threat_type(self, threat_type_id: uuid.UUID) -> Optional[ThreatType]:
        return _find(self._threat_types, threat_type_id)

    def get_mitigation(self, mitigation_id: uuid.UUID) -> Optional[Mitigation]:
        return _find(self._mitigations, mitigation_id)

    def get_severity(self, severity_id: int) -> Optional[Severity]:
        return _find(self._severities, severity_id)

    def get_strength(self, strength_id: int) -> Optional[Strength]:
        return _find(self._strengths, strength_id)

    def get_threat_actor(self, actor_id: uuid.UUID) -> Optional[ThreatActor]:
        return _find(self._threat_actors, actor_id)

    # Identity lookup

    def get_identity(self, identity_id: uuid.UUID) -> Optional[Identity]:
        if identity_id is None:
            return None
        if identity_id == self._id:
            return self
        for lookup in (self.get_entity, self.get_data_flow, self.get_group, self.get_diagram,
                       self.get_schema, self.get_threat_type, self.get_mitigation):
            result = lookup(identity_id)
            if result is not None:
                return result
        for container in (*self._entities, *self._data_flows, self):
            result = container.get_threat_event(identity_id)
            if result is not None:
                return result
        result = self.get_threat_actor(identity_id) or self.get_entity_template(identity_id) \
            or self.get_property_type(identity_id)
        if result is not None:
            return result
        for threat_event in self.get_threat_events():
            result = threat_event.get_scenario(identity_id)
            if result is not None:
                return result
        return None

    @staticmethod
    def get_identity_type_name(identity: Identity) -> str:
        return type(identity).type_label

    @staticmethod
    def get_identity_type_initial(identity: Identity) -> Optional[str]:
        return type(identity).type_initial

    def _next_name(self, label: str) -> str:
        index = self._last_index.get(label, 0) + 1
        self._last_index[label] = index
        return f'{label} {index}'

    # Factories

    def add_entity(self, entity_type: EntityType, name: Optional[str] = None,
                   template: Optional[EntityTemplate] = None) -> Entity:
        cls = ENTITY_CLASSES[EntityType(entity_type)]
        result = cls(self, name or self._next_name(cls.type_label))
        if template is not None:
            result._template_id = template.id
        self.attach_entity(result)
        self.auto_apply_schemas(result)
        return result

    def add_data_flow(self, name: Optional[str], source_id: uuid.UUID, target_id: uuid.UUID) -> Optional[DataFlow]:
        if self.get_entity(source_id) is None or self.get_entity(target_id) is None:
            logger.debug("Flow %s not created: source or target is not an entity of the model", name)
            return None
        result = DataFlow(self, name or self._next_name(DataFlow.type_label), source_id, target_id)
        self.attach_data_flow(result)
        self.auto_apply_schemas(result)
        return result

    def add_trust_boundary(self, name: Optional[str] = None) -> TrustBoundary:
        result = TrustBoundary(self, name or self._next_name(TrustBoundary.type_label))
        self.attach_group(result)
        self.auto_apply_schemas(result)
        return result

    def add_entity_template(self, name: str, entity_type: EntityType) -> EntityTemplate:
        result = EntityTemplate(self, name, entity_type)
        self.attach_entity_template(result)
        self.auto_apply_schemas(result)
        return result

    def add_diagram(self, name: Optional[str] = None) -> Diagram:
        result = Diagram(self, name or self._next_name(Diagram.type_label))
        self.attach_diagram(result)
        self.auto_apply_schemas(result)
        return result

    def add_threat_type(self, name: str, severity: Union[Severity, int]) -> ThreatType:
        severity_id = severity.id if isinstance(severity, Severity) else severity
        result = ThreatType(self, name, severity_id)
        self.attach_threat_type(result)
        self.auto_apply_schemas(result)
        return result

    def add_mitigation(self, name: Optional[str] = None,
                       control_type: SecurityControlType = SecurityControlType.UNKNOWN) -> Mitigation:
        result = Mitigation(self, name or self._next_name(Mitigation.type_label), control_type)
        self.attach_mitigation(result)
        self.auto_apply_schemas(result)
        return result

    def add_severity(self, severity_id: int, name: str) -> Optional[Severity]:
        if self.get_severity(severity_id) is not None:
            return None
        result = Severity(self, severity_id, name)
        self.attach_severity(result)
        self.auto_apply_schemas(result)
        return result

    def add_strength(self, strength_id: int, name: str) -> Optional[Strength]:
        if self.get_strength(strength_id) is not None:
            return None
        result = Strength(self, strength_id, name)
        self.attach_strength(result)
        return result

    def add_threat_actor(self, name: str, actor_type: ActorType = ActorType.UNKNOWN) -> ThreatActor:
        result = ThreatActor(self, name, actor_type)
        self.attach_threat_actor(result)
        self.auto_apply_schemas(result)
        return result

    # Attach operations, used by clones and loads: no schema is applied

    def _attach(self, items: list, item) -> bool:
        if _find(items, item.id) is not None:
            logger.debug("%s %s is already part of model %s", type(item).__name__, item.id, self._id)
            return False
        items.append(item)
        self._register_events(item)
        self.mark_dirty()
        self.child_created.fire(item)
        return True

    def attach_entity(self, entity: Entity) -> bool:
        return self._attach(self._entities, entity)

    def attach_data_flow(self, data_flow: DataFlow) -> bool:
        return self._attach(self._data_flows, data_flow)

    def attach_group(self, group: Group) -> bool:
        return self._attach(self._groups, group)

    def attach_entity_template(self, template: EntityTemplate) -> bool:
        return self._attach(self._entity_templates, template)

    def attach_diagram(self, diagram: Diagram) -> bool:
        return self._attach(self._diagrams, diagram)

    def attach_threat_type(self, threat_type: ThreatType) -> bool:
        return self._attach(self._threat_types, threat_type)

    def attach_mitigation(self, mitigation: Mitigation) -> bool:
        return self._attach(self._mitigations, mitigation)

    def attach_severity(self, severity: Severity) -> bool:
        return self._attach(self._severities, severity)

    def attach_strength(self, strength: Strength) -> bool:
        return self._attach(self._strengths, strength)

    def attach_threat_actor(self, actor: ThreatActor) -> bool:
        return self._attach(self._threat_actors, actor)

    # Removal, with cascades

    def _detach(self, items: list, item) -> bool:
        if item is None:
            return False
        items.remove(item)
        self._unregister_events(item)
        self.mark_dirty()
        self.child_removed.fire(item)
        return True

    def remove_entity(self, entity_id: uuid.UUID) -> bool:
        entity = self.get_entity(entity_id)
        if entity is None:
            return False
        for flow in [x for x in self._data_flows if entity_id in (x.source_id, x.target_id)]:
            self.remove_data_flow(flow.id)
        for diagram in self._diagrams:
            diagram.remove_entity_shape(entity_id)
        return self._detach(self._entities, entity)

    def remove_data_flow(self, data_flow_id: uuid.UUID) -> bool:
        data_flow = self.get_data_flow(data_flow_id)
        if data_flow is None:
            return False
        for diagram in self._diagrams:
            diagram.remove_link(data_flow_id)
        return self._detach(self._data_flows, data_flow)

    def remove_group(self, group_id: uuid.UUID) -> bool:
        group = self.get_group(group_id)
        if group is None:
            return False
        for entity in self._entities:
            if entity.parent_id == group_id:
                entity.set_parent(None)
        for diagram in self._diagrams:
            diagram.remove_group_shape(group_id)
        return self._detach(self._groups, group)

    def remove_entity_template(self, template_id: uuid.UUID) -> bool:
        template = self.get_entity_template(template_id)
        if template is None:
            return False
        for entity in self._entities:
            if entity.template_id == template_id:
                entity.reset_template()
        return self._detach(self._entity_templates, template)

    def remove_diagram(self, diagram_id: uuid.UUID) -> bool:
        return self._detach(self._diagrams, self.get_diagram(diagram_id))

    def remove_mitigation(self, mitigation_id: uuid.UUID) -> bool:
        mitigation = self.get_mitigation(mitigation_id)
        if mitigation is None:
            return False
        for container in (*self._threat_types, *self.get_threat_events()):
            container.remove_mitigation(mitigation_id)
        return self._detach(self._mitigations, mitigation)

    def remove_threat_actor(self, actor_id: uuid.UUID) -> bool:
        actor = self.get_threat_actor(actor_id)
        if actor is None:
            return False
        for threat_event in self.get_threat_events():
            for scenario in threat_event.scenarios:
                if scenario.actor_id == actor_id:
                    threat_event.remove_scenario(scenario.id)
        return self._detach(self._threat_actors, actor)

    def remove_threat_type(self, threat_type_id: uuid.UUID, force: bool = False) -> bool:
        threat_type = self.get_threat_type(threat_type_id)
        if threat_type is None:
            return False
        threat_events = self.get_threat_events(threat_type)
        if threat_events and not force:
            logger.info("Threat type %s is used by %d threat events", threat_type, len(threat_events))
            return False
        for threat_event in threat_events:
            parent = threat_event.parent
            if isinstance(parent, ThreatEventsContainer):
                parent.remove_threat_event(threat_event.id)
        return self._detach(self._threat_types, threat_type)

    def is_severity_used(self, severity_id: int) -> bool:
        if any(x.severity_id == severity_id for x in self._threat_types):
            return True
        return any(x.severity_id == severity_id or any(y.severity_id == severity_id for y in x.scenarios)
                   for x in self.get_threat_events())

    def remove_severity(self, severity_id: int) -> bool:
        if self.is_severity_used(severity_id):
            return False
        return self._detach(self._severities, self.get_severity(severity_id))

    def is_strength_used(self, strength_id: int) -> bool:
        return any(link.strength_id == strength_id
                   for container in (*self._threat_types, *self.get_threat_events())
                   for link in container.mitigations)

    def remove_strength(self, strength_id: int) -> bool:
        if self.is_strength_used(strength_id):
            return False
        return self._detach(self._strengths, self.get_strength(strength_id))

    # Change notification bus

    def _top_level_children(self) -> list:
        return [*self._schemas, *self._entities, *self._data_flows, *self._groups, *self._entity_templates,
                *self._diagrams, *self._threat_types, *self._mitigations, *self._severities,
                *self._strengths, *self._threat_actors]

    def _register_events(self, item) -> None:
        item.changed.subscribe(self._on_child_changed)
        if isinstance(item, PropertiesContainer):
            item.property_added.subscribe(self._on_property_added)
            item.property_removed.subscribe(self._on_property_removed)
            item.property_value_changed.subscribe(self._on_property_value_changed)
        if isinstance(item, ThreatEventsContainer):
            item.threat_event_added.subscribe(self._on_nested_added)
            item.threat_event_removed.subscribe(self._on_nested_removed)
        if isinstance(item, ThreatEvent):
            item.scenario_added.subscribe(self._on_nested_added)
            item.scenario_removed.subscribe(self._on_nested_removed)
        if isinstance(item, MitigationLinksContainer):
            item.mitigation_added.subscribe(self._on_nested_added)
            item.mitigation_removed.subscribe(self._on_nested_removed)
        if isinstance(item, ShapesContainer):
            item.shape_added.subscribe(self._on_nested_added)
            item.shape_removed.subscribe(self._on_nested_removed)
        for child in _children(item):
            self._register_events(child)

    def _unregister_events(self, item) -> None:
        for child in _children(item):
            self._unregister_events(child)
        item.changed.unsubscribe(self._on_child_changed)
        if isinstance(item, PropertiesContainer):
            item.property_added.unsubscribe(self._on_property_added)
            item.property_removed.unsubscribe(self._on_property_removed)
            item.property_value_changed.unsubscribe(self._on_property_value_changed)
        if isinstance(item, ThreatEventsContainer):
            item.threat_event_added.unsubscribe(self._on_nested_added)
            item.threat_event_removed.unsubscribe(self._on_nested_removed)
        if isinstance(item, ThreatEvent):
            item.scenario_added.unsubscribe(self._on_nested_added)
            item.scenario_removed.unsubscribe(self._on_nested_removed)
        if isinstance(item, MitigationLinksContainer):
            item.mitigation_added.unsubscribe(self._on_nested_added)
            item.mitigation_removed.unsubscribe(self._on_nested_removed)
        if isinstance(item, ShapesContainer):
            item.shape_added.unsubscribe(self._on_nested_added)
            item.shape_removed.unsubscribe(self._on_nested_removed)

    def _on_child_changed(self, item, field: str) -> None:
        self.child_changed.fire(item, field)

    def _on_property_added(self, container, prop: Property) -> None:
        self.child_property_added.fire(container, prop.property_type, prop)

    def _on_property_removed(self, container, prop: Property) -> None:
        self.child_property_removed.fire(container, prop.property_type, prop)

    def _on_property_value_changed(self, container, prop: Property) -> None:
        self.child_property_changed.fire(container, prop.property_type, prop)

    def _on_nested_added(self, container, child) -> None:
        self._register_events(child)
        self.child_created.fire(child)

    def _on_nested_removed(self, container, child) -> None:
        self._unregister_events(child)
        self.child_removed.fire(child)

    # Statistics

    def get_threat_events(self, threat_type: Optional[ThreatType] = None) -> list[ThreatEvent]:
        result = []
        for container in (self, *self._entities, *self._data_flows):
            result.extend(x for x in container.threat_events
                          if threat_type is None or x.threat_type_id == threat_type.id)
        return result

    def get_threat_event_mitigations(self, mitigation: Optional[Mitigation] = None) -> list[ThreatEventMitigation]:
        return [link for threat_event in self.get_threat_events() for link in threat_event.mitigations
                if mitigation is None or link.mitigation_id == mitigation.id]

    def get_unique_mitigations(self) -> list[Mitigation]:
        result = []
        for link in self.get_threat_event_mitigations():
            mitigation = link.mitigation
            if mitigation is not None and mitigation not in result:
                result.append(mitigation)
        return result

    @property
    def unique_mitigations(self) -> int:
        return len(self.get_unique_mitigations())

    @property
    def assigned_threat_types(self) -> int:
        return len({x.threat_type_id for x in self.get_threat_events()})

    @property
    def total_threat_events(self) -> int:
        return len(self.get_threat_events())

    @property
    def fully_mitigated_threat_events(self) -> int:
        return len([x for x in self.get_threat_events() if _mitigation_level(x) >= 100])

    @property
    def partially_mitigated_threat_events(self) -> int:
        return len([x for x in self.get_threat_events() if 0 < _mitigation_level(x) < 100])

    @property
    def not_mitigated_threat_events(self) -> int:
        return len([x for x in self.get_threat_events() if _mitigation_level(x) == 0])

    @property
    def fully_mitigated_threat_types(self) -> int:
        return len([x for x in self._threat_types if _mitigation_level(x) >= 100])

    @property
    def partially_mitigated_threat_types(self) -> int:
        return len([x for x in self._threat_types if 0 < _mitigation_level(x) < 100])

    @property
    def not_mitigated_threat_types(self) -> int:
        return len([x for x in self._threat_types if _mitigation_level(x) == 0])

    def count_threat_events(self, severity_id: int) -> int:
        return len([x for x in self.get_threat_events()
                    if x.severity_id == severity_id and x.severity is not None])

    def count_threat_events_by_type(self, severity_id: int) -> int:
        """Number of threat types whose most severe threat event has the given severity."""
        count = 0
        for threat_type in self._threat_types:
            top = threat_type.get_top_severity()
            if top is not None and top.id == severity_id:
                count += 1
        return count

    def count_mitigations_by_status(self, status: MitigationStatus) -> int:
        return len([x for x in self.get_threat_event_mitigations() if x.status == MitigationStatus(status)])

    def find_property(self, property_id: uuid.UUID) -> Optional[Property]:
        for container in self.iter_properties_containers():
            for prop in container.properties:
                if prop.id == property_id:
                    return prop
        return None

    # Duplication and merge

    def validate_duplication(self, definition: DuplicationDefinition) -> list[str]:
        return validate_definition(self, definition)

    def duplicate(self, name: str, definition: DuplicationDefinition) -> 'ThreatModel':
        return duplicate_model(self, name, definition)

    def merge(self, source: 'ThreatModel', definition: DuplicationDefinition) -> bool:
        return merge_models(self, source, definition)
