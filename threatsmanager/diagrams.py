"""Diagrams and the shapes that place entities, groups and flows on them."""

import uuid
from typing import TYPE_CHECKING, Optional

from .identity import Identity, ModelChild, Reference
from .observable import Event, Observable
from .properties import PropertiesContainer
from .scope import Scope

if TYPE_CHECKING:
    from .entities import DataFlow, Entity, Group
    from .model import ThreatModel

Point = tuple[float, float]
Size = tuple[float, float]


class Shape(ModelChild, PropertiesContainer, Observable):
    """Placement of a domain object on a diagram, referenced by its identifier."""

    def __init__(self, model: 'ThreatModel', associated_id: uuid.UUID):
        super().__init__()
        self._bind_model(model)
        self._associated_id = associated_id

    @property
    def associated_id(self) -> uuid.UUID:
        return self._associated_id

    @property
    def identity(self) -> Optional[Identity]:
        model = self.model
        return model.get_identity(self._associated_id) if model else None

    def references(self) -> list[Reference]:
        return [Reference('associated object', 'identity', self._associated_id)]


class EntityShape(Shape):
    scope = Scope.ENTITY_SHAPE

    def __init__(self, model: 'ThreatModel', associated_id: uuid.UUID, position: Point = (0.0, 0.0)):
        super().__init__(model, associated_id)
        self._position = position

    @property
    def position(self) -> Point:
        return self._position

    @position.setter
    def position(self, value: Point) -> None:
        value = (float(value[0]), float(value[1]))
        if value != self._position:
            self._position = value
            self._notify_changed('position')

    def clone(self, diagram: 'Diagram') -> 'EntityShape':
        result = EntityShape(diagram.model, self._associated_id, self._position)
        diagram.attach_entity_shape(result)
        self.clone_properties(result)
        return result


class GroupShape(Shape):
    scope = Scope.GROUP_SHAPE

    def __init__(self, model: 'ThreatModel', associated_id: uuid.UUID, position: Point = (0.0, 0.0),
                 size: Size = (0.0, 0.0)):
        super().__init__(model, associated_id)
        self._position = position
        self._size = size

    @property
    def position(self) -> Point:
        return self._position

    @position.setter
    def position(self, value: Point) -> None:
        value = (float(value[0]), float(value[1]))
        if value != self._position:
            self._position = value
            self._notify_changed('position')

    @property
    def size(self) -> Size:
        return self._size

    @size.setter
    def size(self, value: Size) -> None:
        value = (float(value[0]), float(value[1]))
        if value != self._size:
            self._size = value
            self._notify_changed('size')

    def clone(self, diagram: 'Diagram') -> 'GroupShape':
        result = GroupShape(diagram.model, self._associated_id, self._position, self._size)
        diagram.attach_group_shape(result)
        self.clone_properties(result)
        return result


class Link(Shape):
    """Drawing of a data flow between two entity shapes."""

    scope = Scope.LINK

    def clone(self, diagram: 'Diagram') -> 'Link':
        result = Link(diagram.model, self._associated_id)
        diagram.attach_link(result)
        self.clone_properties(result)
        return result


class ShapesContainer:
    """Capability of holding entity shapes, group shapes and links, one per associated object."""

    def __init__(self):
        super().__init__()
        self._entity_shapes: list[EntityShape] = []
        self._group_shapes: list[GroupShape] = []
        self._links: list[Link] = []
        self.shape_added = Event('shape_added')
        self.shape_removed = Event('shape_removed')

    @property
    def entity_shapes(self) -> list[EntityShape]:
        return list(self._entity_shapes)

    @property
    def group_shapes(self) -> list[GroupShape]:
        return list(self._group_shapes)

    @property
    def links(self) -> list[Link]:
        return list(self._links)

    @property
    def shapes(self) -> list[Shape]:
        return [*self._entity_shapes, *self._group_shapes, *self._links]

    def get_entity_shape(self, associated_id: uuid.UUID) -> Optional[EntityShape]:
        return next((x for x in self._entity_shapes if x.associated_id == associated_id), None)

    def get_group_shape(self, associated_id: uuid.UUID) -> Optional[GroupShape]:
        return next((x for x in self._group_shapes if x.associated_id == associated_id), None)

    def get_link(self, associated_id: uuid.UUID) -> Optional[Link]:
        return next((x for x in self._links if x.associated_id == associated_id), None)

    def add_entity_shape(self, entity: 'Entity', position: Point = (0.0, 0.0)) -> Optional[EntityShape]:
        if self.get_entity_shape(entity.id) is not None:
            return None
        result = EntityShape(self.model, entity.id, position)
        self.attach_entity_shape(result)
        self.model.auto_apply_schemas(result)
        return result

    def add_group_shape(self, group: 'Group', position: Point = (0.0, 0.0),
                        size: Size = (0.0, 0.0)) -> Optional[GroupShape]:
        if self.get_group_shape(group.id) is not None:
            return None
        result = GroupShape(self.model, group.id, position, size)
        self.attach_group_shape(result)
        self.model.auto_apply_schemas(result)
        return result

    def add_link(self, data_flow: 'DataFlow') -> Optional[Link]:
        if self.get_link(data_flow.id) is not None:
            return None
        result = Link(self.model, data_flow.id)
        self.attach_link(result)
        self.model.auto_apply_schemas(result)
        return result

    def attach_entity_shape(self, shape: EntityShape) -> bool:
        return self._attach(self._entity_shapes, shape)

    def attach_group_shape(self, shape: GroupShape) -> bool:
        return self._attach(self._group_shapes, shape)

    def attach_link(self, link: Link) -> bool:
        return self._attach(self._links, link)

    def remove_entity_shape(self, associated_id: uuid.UUID) -> bool:
        return self._detach(self._entity_shapes, self.get_entity_shape(associated_id))

    def remove_group_shape(self, associated_id: uuid.UUID) -> bool:
        return self._detach(self._group_shapes, self.get_group_shape(associated_id))

    def remove_link(self, associated_id: uuid.UUID) -> bool:
        return self._detach(self._links, self.get_link(associated_id))

    def _attach(self, shapes: list, shape: Shape) -> bool:
        if any(x.associated_id == shape.associated_id for x in shapes):
            return False
        shapes.append(shape)
        self._mark_dirty()
        self.shape_added.fire(self, shape)
        return True

    def _detach(self, shapes: list, shape: Optional[Shape]) -> bool:
        if shape is None:
            return False
        shapes.remove(shape)
        self._mark_dirty()
        self.shape_removed.fire(self, shape)
        return True


class Diagram(ModelChild, PropertiesContainer, ShapesContainer, Identity):
    type_label = 'Diagram'
    type_initial = 'D'
    scope = Scope.DIAGRAM

    def __init__(self, model: 'ThreatModel', name: str, *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name

    def clone(self, model: 'ThreatModel') -> 'Diagram':
        result = Diagram(model, self._name, id=self._id)
        result._description = self._description
        model.attach_diagram(result)
        self.clone_properties(result)
        for shape in self.shapes:
            shape.clone(result)
        return result
