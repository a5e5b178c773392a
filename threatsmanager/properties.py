"""Property schemas, property types and the properties bound to model objects."""

import logging
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from .exceptions import ReadOnlyPropertyError
from .identity import Identity, ModelChild
from .observable import Event, Observable
from .scope import Scope

if TYPE_CHECKING:
    from .model import ThreatModel

logger = logging.getLogger(__name__)

PropertyTypeRef = Union['PropertyType', uuid.UUID]


class PropertyKind(str, Enum):
    """Kind of value a property type holds. Values are always stored as strings."""
    STRING = 'string'
    BOOLEAN = 'boolean'
    INTEGER = 'integer'
    DECIMAL = 'decimal'
    LIST = 'list'


class PropertyType(ModelChild, Identity):
    """Definition of an attribute, owned by exactly one schema."""

    type_label = 'Property Type'

    def __init__(self, model: 'ThreatModel', schema_id: uuid.UUID, name: str,
                 kind: PropertyKind = PropertyKind.STRING, *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._schema_id = schema_id
        self.kind = PropertyKind(kind)
        self.priority = 0
        self.visible = True
        self.values: list[str] = []

    @property
    def schema_id(self) -> uuid.UUID:
        return self._schema_id

    @property
    def schema(self) -> Optional['PropertySchema']:
        model = self.model
        return model.get_schema(self._schema_id) if model else None

    def clone(self, schema: 'PropertySchema') -> 'PropertyType':
        result = PropertyType(schema.model, schema.id, self._name, self.kind, id=self._id)
        result._description = self._description
        result.priority = self.priority
        result.visible = self.visible
        result.values = list(self.values)
        schema.add(result)
        return result


class PropertySchema(ModelChild, Identity):
    """A named, namespaced and ordered set of property types."""

    type_label = 'Property Schema'

    def __init__(self, model: 'ThreatModel', name: str, namespace: str, *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._namespace = namespace
        self._applies_to = Scope.UNDEFINED
        self._auto_apply = False
        self._priority = 50
        self.visible = True
        self.system = False
        self._property_types: list[PropertyType] = []

    @property
    def namespace(self) -> str:
        return self._namespace

    @namespace.setter
    def namespace(self, value: str) -> None:
        if value != self._namespace:
            self._namespace = value
            self._notify_changed('namespace')

    @property
    def applies_to(self) -> Scope:
        return self._applies_to

    @applies_to.setter
    def applies_to(self, value: Scope) -> None:
        value = Scope(value)
        if value != self._applies_to:
            self._applies_to = value
            self._notify_changed('applies_to')

    @property
    def auto_apply(self) -> bool:
        return self._auto_apply

    @auto_apply.setter
    def auto_apply(self, value: bool) -> None:
        if value != self._auto_apply:
            self._auto_apply = value
            self._notify_changed('auto_apply')

    @property
    def priority(self) -> int:
        return self._priority

    @priority.setter
    def priority(self, value: int) -> None:
        if value != self._priority:
            self._priority = value
            self._notify_changed('priority')

    @property
    def property_types(self) -> list[PropertyType]:
        return sorted(self._property_types, key=lambda x: x.priority)

    def get_property_type(self, property_type_id: uuid.UUID) -> Optional[PropertyType]:
        return next((x for x in self._property_types if x.id == property_type_id), None)

    def get_property_type_by_name(self, name: str) -> Optional[PropertyType]:
        return next((x for x in self._property_types if x.name == name), None)

    def add_property_type(self, name: str, kind: PropertyKind = PropertyKind.STRING) -> Optional[PropertyType]:
        if self.get_property_type_by_name(name) is not None:
            return None
        result = PropertyType(self.model, self._id, name, kind)
        result.priority = len(self._property_types)
        self.add(result)
        return result

    def add(self, property_type: PropertyType) -> None:
        self._property_types.append(property_type)
        self._notify_changed('property_types')

    def remove_property_type(self, property_type_id: uuid.UUID) -> bool:
        property_type = self.get_property_type(property_type_id)
        if property_type is None:
            return False
        self._property_types.remove(property_type)
        self._notify_changed('property_types')
        return True

    def merge_property_types(self, source: 'PropertySchema') -> int:
        """Add the types of source missing by name; existing types are left untouched."""
        added = 0
        for property_type in source.property_types:
            if self.get_property_type_by_name(property_type.name) is not None:
                continue
            model = self.model
            if model is not None and model.get_property_type(property_type.id) is not None:
                clone = PropertyType(model, self._id, property_type.name, property_type.kind)
                clone._description = property_type.description
                clone.priority = property_type.priority
                clone.visible = property_type.visible
                clone.values = list(property_type.values)
                self.add(clone)
            else:
                property_type.clone(self)
            added += 1
        return added

    def clone(self, model: 'ThreatModel') -> Optional['PropertySchema']:
        """Copy into model, keeping identifiers. None if model already holds a schema with this id."""
        result = PropertySchema(model, self._name, self._namespace, id=self._id)
        result._description = self._description
        result._applies_to = self._applies_to
        result._auto_apply = self._auto_apply
        result._priority = self._priority
        result.visible = self.visible
        result.system = self.system
        for property_type in self._property_types:
            property_type.clone(result)
        if not model.attach_schema(result):
            return None
        return result

    def __str__(self) -> str:
        return f'{self._name} ({self._namespace})'


class Property(ModelChild, Observable):
    """A value of a property type, bound to one container."""

    def __init__(self, model: 'ThreatModel', property_type: PropertyType, value: Optional[str] = None,
                 *, id: Optional[uuid.UUID] = None, read_only: bool = False):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._property_type_id = property_type.id
        self._property_type: Optional[PropertyType] = property_type
        self._value = value
        self._read_only = read_only

    @property
    def id(self) -> uuid.UUID:
        return self._id

    @property
    def property_type_id(self) -> uuid.UUID:
        return self._property_type_id

    @property
    def property_type(self) -> Optional[PropertyType]:
        if self._property_type is None:
            model = self.model
            if model is not None:
                self._property_type = model.get_property_type(self._property_type_id)
        return self._property_type

    @property
    def read_only(self) -> bool:
        return self._read_only

    @read_only.setter
    def read_only(self, value: bool) -> None:
        if value != self._read_only:
            self._read_only = value
            self._notify_changed('read_only')

    @property
    def value(self) -> Optional[str]:
        return self._value

    @value.setter
    def value(self, value: Optional[str]) -> None:
        if self._read_only:
            property_type = self.property_type
            raise ReadOnlyPropertyError(property_type.name if property_type else '<unknown>')
        if value != self._value:
            self._value = value
            self._notify_changed('value')

    def __str__(self) -> str:
        return self._value or ''

    def __repr__(self) -> str:
        property_type = self.property_type
        return f'<Property {property_type.name if property_type else self._property_type_id}={self._value!r}>'


def _type_id(property_type: PropertyTypeRef) -> uuid.UUID:
    return property_type.id if isinstance(property_type, PropertyType) else property_type


class PropertiesContainer:
    """Capability of holding at most one property per property type."""

    scope = Scope.UNDEFINED

    def __init__(self):
        super().__init__()
        self._properties: list[Property] = []
        self.property_added = Event('property_added')
        self.property_removed = Event('property_removed')
        self.property_value_changed = Event('property_value_changed')

    @property
    def properties(self) -> list[Property]:
        return list(self._properties)

    def has_property(self, property_type: PropertyTypeRef) -> bool:
        return self.get_property(property_type) is not None

    def get_property(self, property_type: PropertyTypeRef) -> Optional[Property]:
        type_id = _type_id(property_type)
        return next((x for x in self._properties if x.property_type_id == type_id), None)

    def add_property(self, property_type: PropertyType, value: Optional[str] = None) -> Optional[Property]:
        if self.has_property(property_type):
            return None
        result = Property(self._owner_model(), property_type, value)
        self.attach_property(result)
        return result

    def attach_property(self, prop: Property) -> bool:
        if self.has_property(prop.property_type_id):
            return False
        self._properties.append(prop)
        prop.changed.subscribe(self._on_property_changed)
        self._mark_dirty()
        self.property_added.fire(self, prop)
        return True

    def remove_property(self, property_type: PropertyTypeRef) -> bool:
        prop = self.get_property(property_type)
        if prop is None:
            return False
        self._properties.remove(prop)
        prop.changed.unsubscribe(self._on_property_changed)
        self._mark_dirty()
        self.property_removed.fire(self, prop)
        return True

    def _on_property_changed(self, prop: Property, field: str) -> None:
        if field == 'value':
            self.property_value_changed.fire(self, prop)

    def clone_properties(self, dest: 'PropertiesContainer', keep_ids: bool = True) -> None:
        """Copy every property whose type resolves in the destination's model."""
        model = dest._owner_model()
        if model is None:
            return
        for prop in self._properties:
            property_type = model.resolve_property_type(prop.property_type or prop.property_type_id)
            if property_type is None:
                logger.debug("Skipping property %s: type not available in model %s", prop.id, model.id)
                continue
            existing = dest.get_property(property_type)
            if existing is None:
                dest.attach_property(Property(model, property_type, prop.value,
                                              id=prop.id if keep_ids else None,
                                              read_only=prop.read_only))
            elif not existing.read_only and existing.value != prop.value:
                existing.value = prop.value

    def merge_properties(self, source: 'PropertiesContainer') -> int:
        """Union of properties keyed by property type; existing values are kept."""
        model = self._owner_model()
        added = 0
        if model is None:
            return added
        for prop in source.properties:
            property_type = model.resolve_property_type(prop.property_type or prop.property_type_id)
            if property_type is not None and not self.has_property(property_type):
                new_property = self.add_property(property_type, prop.value)
                if new_property is not None:
                    new_property._read_only = prop.read_only
                    added += 1
        return added
