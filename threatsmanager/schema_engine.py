"""Property schema management and reconciliation of properties against schemas."""

import logging
import uuid
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional, Union

from .entities import EntityType, TrustBoundary
from .properties import PropertiesContainer, Property, PropertySchema, PropertyType
from .scope import Scope

if TYPE_CHECKING:
    from .model import ThreatModel

logger = logging.getLogger(__name__)


def _entities_of_kind(entity_type: EntityType) -> Callable[['ThreatModel'], Iterable[PropertiesContainer]]:
    def accessor(model: 'ThreatModel') -> Iterable[PropertiesContainer]:
        yield from (x for x in model.entities if x.entity_type == entity_type)
        yield from (x for x in model.entity_templates if x.entity_type == entity_type)
    return accessor


def _scenarios(model: 'ThreatModel') -> Iterator[PropertiesContainer]:
    for threat_event in model.get_threat_events():
        yield from threat_event.scenarios


def _threat_type_mitigations(model: 'ThreatModel') -> Iterator[PropertiesContainer]:
    for threat_type in model.threat_types:
        yield from threat_type.mitigations


def _shapes(attribute: str) -> Callable[['ThreatModel'], Iterator[PropertiesContainer]]:
    def accessor(model: 'ThreatModel') -> Iterator[PropertiesContainer]:
        for diagram in model.diagrams:
            yield from getattr(diagram, attribute)
    return accessor


# One accessor per single-bit scope; scopes without containers are absent.
SCOPE_ACCESSORS: dict[Scope, Callable[['ThreatModel'], Iterable[PropertiesContainer]]] = {
    Scope.EXTERNAL_INTERACTOR: _entities_of_kind(EntityType.EXTERNAL_INTERACTOR),
    Scope.PROCESS: _entities_of_kind(EntityType.PROCESS),
    Scope.DATA_STORE: _entities_of_kind(EntityType.DATA_STORE),
    Scope.ENTITY_TEMPLATE: lambda model: model.entity_templates,
    Scope.DATA_FLOW: lambda model: model.data_flows,
    Scope.TRUST_BOUNDARY: lambda model: [x for x in model.groups if isinstance(x, TrustBoundary)],
    Scope.LOGICAL_GROUP: lambda model: [],
    Scope.THREAT_TYPE: lambda model: model.threat_types,
    Scope.THREAT_EVENT: lambda model: model.get_threat_events(),
    Scope.THREAT_EVENT_SCENARIO: _scenarios,
    Scope.THREAT_EVENT_MITIGATION: lambda model: model.get_threat_event_mitigations(),
    Scope.MITIGATION: lambda model: model.mitigations,
    Scope.THREAT_TYPE_MITIGATION: _threat_type_mitigations,
    Scope.THREAT_ACTOR: lambda model: model.threat_actors,
    Scope.SEVERITY: lambda model: model.severities,
    Scope.DIAGRAM: lambda model: model.diagrams,
    Scope.ENTITY_SHAPE: _shapes('entity_shapes'),
    Scope.GROUP_SHAPE: _shapes('group_shapes'),
    Scope.LINK: _shapes('links'),
    Scope.THREAT_MODEL: lambda model: [model],
}


def _schema_id_of(prop: Property) -> Optional[uuid.UUID]:
    property_type = prop.property_type
    return property_type.schema_id if property_type is not None else None


def apply(schema: PropertySchema, container: PropertiesContainer) -> None:
    """
    Reconcile the properties of a container with a schema.

    Types of the schema missing from the container are added with an empty
    value; properties whose type belongs to the schema but is no longer part
    of it are removed. Properties of other schemas are left untouched, so
    applying a schema twice changes nothing the second time.
    """
    for property_type in schema.property_types:
        if not container.has_property(property_type):
            container.add_property(property_type)
    for prop in container.properties:
        if _schema_id_of(prop) == schema.id and schema.get_property_type(prop.property_type_id) is None:
            container.remove_property(prop.property_type_id)


class SchemasMixin:
    """Schema operations of the threat model."""

    _schemas: list[PropertySchema]

    @property
    def schemas(self) -> list[PropertySchema]:
        return sorted(self._schemas, key=lambda x: x.priority)

    def get_schema(self, key: Union[uuid.UUID, str], namespace: Optional[str] = None) -> Optional[PropertySchema]:
        """Find a schema by identifier, or by name and namespace."""
        if isinstance(key, uuid.UUID):
            return next((x for x in self._schemas if x.id == key), None)
        return next((x for x in self._schemas if x.name == key and x.namespace == namespace), None)

    def add_schema(self, name: str, namespace: str) -> Optional[PropertySchema]:
        if self.get_schema(name, namespace) is not None:
            logger.debug("Schema %s (%s) already exists", name, namespace)
            return None
        result = PropertySchema(self, name, namespace)
        self.attach_schema(result)
        return result

    def attach_schema(self, schema: PropertySchema) -> bool:
        if self.get_schema(schema.id) is not None:
            return False
        self._schemas.append(schema)
        self._register_events(schema)
        self.mark_dirty()
        self.child_created.fire(schema)
        return True

    def get_property_type(self, property_type_id: uuid.UUID) -> Optional[PropertyType]:
        for schema in self._schemas:
            result = schema.get_property_type(property_type_id)
            if result is not None:
                return result
        return None

    def resolve_property_type(self, property_type: Union[PropertyType, uuid.UUID]) -> Optional[PropertyType]:
        """Find the local counterpart of a property type, possibly owned by another model."""
        if isinstance(property_type, uuid.UUID):
            return self.get_property_type(property_type)
        result = self.get_property_type(property_type.id)
        if result is None:
            source_schema = property_type.schema
            if source_schema is not None:
                schema = self.get_schema(source_schema.name, source_schema.namespace)
                if schema is not None:
                    result = schema.get_property_type_by_name(property_type.name)
        return result

    def apply_schema(self, schema_id: uuid.UUID) -> bool:
        schema = self.get_schema(schema_id)
        if schema is None:
            return False
        for flag, accessor in SCOPE_ACCESSORS.items():
            if flag in schema.applies_to:
                for container in list(accessor(self)):
                    apply(schema, container)
        logger.debug("Applied schema %s to scopes %s", schema, schema.applies_to)
        return True

    def auto_apply_schemas(self, container: PropertiesContainer) -> bool:
        scope = container.scope
        if scope == Scope.UNDEFINED:
            return False
        schemas = [x for x in self.schemas if x.auto_apply and scope in x.applies_to]
        for schema in schemas:
            apply(schema, container)
        return len(schemas) > 0

    def iter_properties_containers(self) -> Iterator[PropertiesContainer]:
        """Every properties container of the model, nested ones included."""
        yield self
        yield from self.entity_templates
        yield from self.entities
        yield from self.data_flows
        for threat_event in self.get_threat_events():
            yield threat_event
            yield from threat_event.scenarios
            yield from threat_event.mitigations
        yield from self.groups
        for diagram in self.diagrams:
            yield diagram
            yield from diagram.shapes
        yield from self.severities
        yield from self.strengths
        yield from self.mitigations
        yield from self.threat_actors
        for threat_type in self.threat_types:
            yield threat_type
            yield from threat_type.mitigations

    def is_schema_used(self, schema: PropertySchema) -> bool:
        return any(_schema_id_of(prop) == schema.id
                   for container in self.iter_properties_containers()
                   for prop in container.properties)

    def _remove_related(self, schema: PropertySchema) -> int:
        removed = 0
        for container in list(self.iter_properties_containers()):
            for prop in container.properties:
                if _schema_id_of(prop) == schema.id and container.remove_property(prop.property_type_id):
                    removed += 1
        return removed

    def remove_schema(self, key: Union[uuid.UUID, str], namespace: Optional[str] = None,
                      force: bool = False) -> bool:
        schema = self.get_schema(key, namespace)
        if schema is None:
            return False
        if not force and self.is_schema_used(schema):
            logger.info("Schema %s is in use and has not been removed", schema)
            return False
        removed = self._remove_related(schema)
        self._schemas.remove(schema)
        self._unregister_events(schema)
        self.mark_dirty()
        self.child_removed.fire(schema)
        logger.info("Removed schema %s and %d related properties", schema, removed)
        return True
