"""Selective duplication of a threat model into a new, independent model."""

import logging
import uuid
from typing import TYPE_CHECKING, Iterable, Iterator, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .diagrams import Shape, ShapesContainer
from .exceptions import DuplicationValidationError
from .identity import Identity, Reference
from .observable import dirty_tracking
from .properties import PropertiesContainer, Property
from .threats import MitigationLink, MitigationLinksContainer, ThreatEvent, ThreatEventsContainer

if TYPE_CHECKING:
    from .model import ThreatModel

logger = logging.getLogger(__name__)

T = TypeVar('T')


class DuplicationDefinition(BaseModel):
    """Selection of the objects to duplicate or merge, one flag or id set per kind."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    all_severities: bool = False
    severities: set[int] = Field(default_factory=set)
    all_strengths: bool = False
    strengths: set[int] = Field(default_factory=set)
    all_property_schemas: bool = False
    property_schemas: set[uuid.UUID] = Field(default_factory=set)
    all_properties: bool = False
    properties: set[uuid.UUID] = Field(default_factory=set)
    all_threat_actors: bool = False
    threat_actors: set[uuid.UUID] = Field(default_factory=set)
    all_mitigations: bool = False
    mitigations: set[uuid.UUID] = Field(default_factory=set)
    all_threat_types: bool = False
    threat_types: set[uuid.UUID] = Field(default_factory=set)
    all_groups: bool = False
    groups: set[uuid.UUID] = Field(default_factory=set)
    all_entity_templates: bool = False
    entity_templates: set[uuid.UUID] = Field(default_factory=set)
    all_entities: bool = False
    entities: set[uuid.UUID] = Field(default_factory=set)
    all_data_flows: bool = False
    data_flows: set[uuid.UUID] = Field(default_factory=set)
    all_diagrams: bool = False
    diagrams: set[uuid.UUID] = Field(default_factory=set)
    contributors: bool = False
    assumptions: bool = False
    dependencies: bool = False

    @classmethod
    def everything(cls) -> 'DuplicationDefinition':
        return cls(**{name: True for name, field in cls.model_fields.items() if field.annotation is bool})


def select(items: Iterable[T], all_items: bool, ids: set) -> list[T]:
    return [x for x in items if all_items or x.id in ids]


def _nested(item) -> Iterator:
    """Objects owned by item: threat events, scenarios, mitigation links and shapes, recursively."""
    children = []
    if isinstance(item, ThreatEventsContainer):
        children.extend(item.threat_events)
    if isinstance(item, ThreatEvent):
        children.extend(item.scenarios)
    if isinstance(item, MitigationLinksContainer):
        children.extend(item.mitigations)
    if isinstance(item, ShapesContainer):
        children.extend(item.shapes)
    for child in children:
        yield child
        yield from _nested(child)


class ClosureValidator:
    """
    Checks that a selection is closed over its cross-references.

    Kinds are visited in dependency order; the references of each selected
    object are checked against the identifiers known so far, then the ids of
    its kind become known. Every unresolved reference yields one reason.
    """

    def __init__(self, model: 'ThreatModel', definition: DuplicationDefinition):
        self.model = model
        self.definition = definition
        self.reasons: list[str] = []
        self.known: set[uuid.UUID] = set()
        self.known_severities = {x.id for x in select(model.severities, definition.all_severities,
                                                      definition.severities)}
        self.known_strengths = {x.id for x in select(model.strengths, definition.all_strengths,
                                                     definition.strengths)}

    def describe(self, item) -> str:
        if isinstance(item, Identity):
            return f"{self.model.get_identity_type_name(item)} '{item.name}'"
        if isinstance(item, MitigationLink):
            return f"mitigation link to '{item}'"
        if isinstance(item, Shape):
            identity = item.identity
            return f"shape of '{identity.name if identity else item.associated_id}'"
        return type(item).__name__

    def describe_target(self, reference: Reference) -> str:
        if reference.kind == 'severity':
            target = self.model.get_severity(reference.target)
        elif reference.kind == 'strength':
            target = self.model.get_strength(reference.target)
        else:
            target = self.model.get_identity(reference.target)
        return f"'{target.name}' ({reference.target})" if target is not None else str(reference.target)

    def is_known(self, reference: Reference) -> bool:
        if reference.kind == 'severity':
            return reference.target in self.known_severities
        if reference.kind == 'strength':
            return reference.target in self.known_strengths
        return reference.target in self.known

    def check_properties(self, owner: str, properties: Iterable[Property]) -> None:
        for prop in properties:
            property_type = self.model.get_property_type(prop.property_type_id)
            if property_type is not None and property_type.id not in self.known:
                self.reasons.append(f"{owner}: property type '{property_type.name}' "
                                    f"({property_type.id}) has not been selected")

    def check_object(self, item, owner: str) -> None:
        if isinstance(item, PropertiesContainer):
            self.check_properties(owner, item.properties)
        references = getattr(item, 'references', None)
        if references is not None:
            for reference in references():
                if not self.is_known(reference):
                    self.reasons.append(f"{owner}: {reference.role} {self.describe_target(reference)} "
                                        f"has not been selected")

    def check(self, items: Iterable) -> None:
        for item in items:
            owner = self.describe(item)
            self.check_object(item, owner)
            for child in _nested(item):
                self.check_object(child, f"{self.describe(child)} of {owner}")

    def learn(self, items: Iterable[Identity]) -> None:
        self.known.update(x.id for x in items)

    def run(self) -> list[str]:
        model = self.model
        d = self.definition

        for schema in select(model.schemas, d.all_property_schemas, d.property_schemas):
            self.known.add(schema.id)
            self.learn(schema.property_types)

        self.check_properties("Threat Model", select(model.properties, d.all_properties, d.properties))

        for items in (
            select(model.threat_actors, d.all_threat_actors, d.threat_actors),
            select(model.mitigations, d.all_mitigations, d.mitigations),
            select(model.threat_types, d.all_threat_types, d.threat_types),
            select(model.groups, d.all_groups, d.groups),
            select(model.entity_templates, d.all_entity_templates, d.entity_templates),
            select(model.entities, d.all_entities, d.entities),
            select(model.data_flows, d.all_data_flows, d.data_flows),
            select(model.diagrams, d.all_diagrams, d.diagrams),
        ):
            self.check(items)
            self.learn(items)

        return self.reasons


def validate_definition(model: 'ThreatModel', definition: DuplicationDefinition) -> list[str]:
    """Reasons why the selection is not closed over its references; empty when valid."""
    return ClosureValidator(model, definition).run()


def duplicate_model(source: 'ThreatModel', name: str, definition: DuplicationDefinition) -> 'ThreatModel':
    reasons = validate_definition(source, definition)
    if reasons:
        raise DuplicationValidationError(reasons)

    d = definition
    with dirty_tracking.paused():
        result = type(source)(name)
        if d.contributors:
            for contributor in source.contributors:
                result.add_contributor(contributor)
        if d.assumptions:
            for assumption in source.assumptions:
                result.add_assumption(assumption)
        if d.dependencies:
            for dependency in source.dependencies:
                result.add_dependency(dependency)

        for severity in select(source.severities, d.all_severities, d.severities):
            severity.clone(result)
        for strength in select(source.strengths, d.all_strengths, d.strengths):
            strength.clone(result)
        for schema in select(source.schemas, d.all_property_schemas, d.property_schemas):
            schema.clone(result)

        for prop in select(source.properties, d.all_properties, d.properties):
            property_type = result.get_property_type(prop.property_type_id)
            if property_type is not None:
                result.attach_property(Property(result, property_type, prop.value,
                                                id=prop.id, read_only=prop.read_only))

        for items in (
            select(source.threat_actors, d.all_threat_actors, d.threat_actors),
            select(source.mitigations, d.all_mitigations, d.mitigations),
            select(source.threat_types, d.all_threat_types, d.threat_types),
            select(source.groups, d.all_groups, d.groups),
            select(source.entity_templates, d.all_entity_templates, d.entity_templates),
            select(source.entities, d.all_entities, d.entities),
            select(source.data_flows, d.all_data_flows, d.data_flows),
            select(source.diagrams, d.all_diagrams, d.diagrams),
        ):
            for item in items:
                item.clone(result)

    logger.info("Duplicated model %s into %s (%s)", source.name, result.name, result.id)
    return result
