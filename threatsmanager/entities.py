"""Entities, entity templates, data flows and groups of a threat model."""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .identity import Identity, ModelChild, Reference
from .properties import PropertiesContainer
from .scope import Scope
from .threats import ThreatEventsContainer

if TYPE_CHECKING:
    from .model import ThreatModel


class EntityType(str, Enum):
    EXTERNAL_INTERACTOR = 'external_interactor'
    PROCESS = 'process'
    DATA_STORE = 'data_store'

    @property
    def scope(self) -> Scope:
        return ENTITY_SCOPES[self]


ENTITY_SCOPES = {
    EntityType.EXTERNAL_INTERACTOR: Scope.EXTERNAL_INTERACTOR,
    EntityType.PROCESS: Scope.PROCESS,
    EntityType.DATA_STORE: Scope.DATA_STORE,
}


class FlowType(str, Enum):
    READ = 'read'
    WRITE = 'write'
    READ_WRITE_COMMAND = 'read_write_command'


class Entity(ModelChild, PropertiesContainer, ThreatEventsContainer, Identity):
    """Node of the data flow graph. Concrete kinds are the subclasses below."""

    type_label = 'Entity'
    entity_type: EntityType

    def __init__(self, model: 'ThreatModel', name: str, *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._parent_id: Optional[uuid.UUID] = None
        self._template_id: Optional[uuid.UUID] = None

    @property
    def parent_id(self) -> Optional[uuid.UUID]:
        return self._parent_id

    @property
    def parent(self) -> Optional['Group']:
        model = self.model
        return model.get_group(self._parent_id) if model and self._parent_id else None

    def set_parent(self, group: Optional['Group']) -> None:
        parent_id = group.id if group is not None else None
        if parent_id != self._parent_id:
            self._parent_id = parent_id
            self._notify_changed('parent')

    @property
    def template_id(self) -> Optional[uuid.UUID]:
        return self._template_id

    @property
    def template(self) -> Optional['EntityTemplate']:
        model = self.model
        return model.get_entity_template(self._template_id) if model and self._template_id else None

    def reset_template(self) -> None:
        if self._template_id is not None:
            self._template_id = None
            self._notify_changed('template')

    def references(self) -> list[Reference]:
        result = []
        if self._parent_id is not None:
            result.append(Reference('group', 'identity', self._parent_id))
        if self._template_id is not None:
            result.append(Reference('template', 'identity', self._template_id))
        return result

    def clone(self, model: 'ThreatModel') -> 'Entity':
        result = type(self)(model, self._name, id=self._id)
        result._description = self._description
        result._parent_id = self._parent_id
        result._template_id = self._template_id
        model.attach_entity(result)
        self.clone_properties(result)
        self.clone_threat_events(result)
        return result


class ExternalInteractor(Entity):
    type_label = 'External Interactor'
    type_initial = 'E'
    entity_type = EntityType.EXTERNAL_INTERACTOR
    scope = Scope.EXTERNAL_INTERACTOR


class Process(Entity):
    type_label = 'Process'
    type_initial = 'P'
    entity_type = EntityType.PROCESS
    scope = Scope.PROCESS


class DataStore(Entity):
    type_label = 'Data Store'
    type_initial = 'S'
    entity_type = EntityType.DATA_STORE
    scope = Scope.DATA_STORE


ENTITY_CLASSES: dict[EntityType, type[Entity]] = {
    EntityType.EXTERNAL_INTERACTOR: ExternalInteractor,
    EntityType.PROCESS: Process,
    EntityType.DATA_STORE: DataStore,
}


class EntityTemplate(ModelChild, PropertiesContainer, Identity):
    """
    Prototype of entities of one kind.

    Auto-applied schemas are those of the entity kind the template creates,
    so a template carries the same properties its entities will receive.
    """

    type_label = 'Entity Template'

    def __init__(self, model: 'ThreatModel', name: str, entity_type: EntityType,
                 *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._entity_type = EntityType(entity_type)

    @property
    def entity_type(self) -> EntityType:
        return self._entity_type

    @property
    def scope(self) -> Scope:
        return self._entity_type.scope

    def create_entity(self, name: str) -> Entity:
        model = self.model
        result = model.add_entity(self._entity_type, name, template=self)
        result.description = self._description
        self.clone_properties(result, keep_ids=False)
        return result

    def clone(self, model: 'ThreatModel') -> 'EntityTemplate':
        result = EntityTemplate(model, self._name, self._entity_type, id=self._id)
        result._description = self._description
        model.attach_entity_template(result)
        self.clone_properties(result)
        return result


class DataFlow(ModelChild, PropertiesContainer, ThreatEventsContainer, Identity):
    """Directed edge between two entities."""

    type_label = 'Flow'
    type_initial = 'F'
    scope = Scope.DATA_FLOW

    def __init__(self, model: 'ThreatModel', name: str, source_id: uuid.UUID, target_id: uuid.UUID,
                 *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._source_id = source_id
        self._target_id = target_id
        self._flow_type = FlowType.READ_WRITE_COMMAND

    @property
    def source_id(self) -> uuid.UUID:
        return self._source_id

    @property
    def source(self) -> Optional[Entity]:
        model = self.model
        return model.get_entity(self._source_id) if model else None

    @property
    def target_id(self) -> uuid.UUID:
        return self._target_id

    @property
    def target(self) -> Optional[Entity]:
        model = self.model
        return model.get_entity(self._target_id) if model else None

    @property
    def flow_type(self) -> FlowType:
        return self._flow_type

    @flow_type.setter
    def flow_type(self, value: FlowType) -> None:
        value = FlowType(value)
        if value != self._flow_type:
            self._flow_type = value
            self._notify_changed('flow_type')

    def references(self) -> list[Reference]:
        return [Reference('source', 'identity', self._source_id),
                Reference('target', 'identity', self._target_id)]

    def clone(self, model: 'ThreatModel') -> 'DataFlow':
        result = DataFlow(model, self._name, self._source_id, self._target_id, id=self._id)
        result._description = self._description
        result._flow_type = self._flow_type
        model.attach_data_flow(result)
        self.clone_properties(result)
        self.clone_threat_events(result)
        return result


class Group(ModelChild, PropertiesContainer, Identity):
    """Presentation grouping of entities; TrustBoundary is the only concrete kind."""

    type_label = 'Group'

    def __init__(self, model: 'ThreatModel', name: str, *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name

    @property
    def entities(self) -> list[Entity]:
        model = self.model
        return [x for x in model.entities if x.parent_id == self._id] if model else []

    def clone(self, model: 'ThreatModel') -> 'Group':
        result = type(self)(model, self._name, id=self._id)
        result._description = self._description
        model.attach_group(result)
        self.clone_properties(result)
        return result


class TrustBoundary(Group):
    type_label = 'Trust Boundary'
    type_initial = 'B'
    scope = Scope.TRUST_BOUNDARY
