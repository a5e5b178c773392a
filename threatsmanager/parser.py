"""YAML loader, writer and reference checker for threat models."""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import yaml
from pydantic import ValidationError

from .config import get_settings
from .diagrams import Diagram, EntityShape, GroupShape, Link
from .documents import (
    DataFlowDocument, DiagramDocument, EntityDocument, EntityTemplateDocument, GroupDocument,
    MitigationDocument, MitigationLinkDocument, PropertyDocument, PropertyTypeDocument, ScenarioDocument,
    SchemaDocument, SeverityDocument, ShapeDocument, StrengthDocument, ThreatActorDocument,
    ThreatEventDocument, ThreatModelDocument, ThreatTypeDocument,
)
from .duplication import ClosureValidator, DuplicationDefinition
from .entities import ENTITY_CLASSES, DataFlow, EntityTemplate, TrustBoundary
from .exceptions import ThreatsManagerError
from .model import ThreatModel
from .observable import dirty_tracking
from .properties import PropertiesContainer, Property, PropertySchema, PropertyType
from .scope import Scope
from .threats import (
    Mitigation, MitigationStatus, Severity, Strength, ThreatActor, ThreatEvent, ThreatEventMitigation,
    ThreatEventScenario, ThreatEventsContainer, ThreatType, ThreatTypeMitigation,
)

logger = logging.getLogger(__name__)


class ThreatModelParseError(ThreatsManagerError):
    """Raised when a threat model document cannot be read or validated."""
    pass


class ThreatModelParser:
    """Parser for threat model documents. Accepts a file or a directory holding the model file."""

    def __init__(self, model_path: Path, file_name: Optional[str] = None):
        self.model_path = Path(model_path)
        self.file_name = file_name or get_settings().model_file_name
        self._validate_structure()

    @property
    def document_path(self) -> Path:
        if self.model_path.is_dir():
            return self.model_path / self.file_name
        return self.model_path

    def _validate_structure(self) -> None:
        if not self.model_path.exists():
            raise ThreatModelParseError(f"Threat model path does not exist: {self.model_path}")
        if self.model_path.is_dir() and not self.document_path.exists():
            raise ThreatModelParseError(f"Required file missing: {self.file_name}")

    def _load_yaml(self) -> dict:
        try:
            with open(self.document_path, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ThreatModelParseError(f"YAML parse error in {self.document_path.name}: {e}")
        if not content:
            raise ThreatModelParseError(f"{self.document_path.name} is empty or invalid")
        if not isinstance(content, dict):
            raise ThreatModelParseError(f"{self.document_path.name} must contain a mapping at top level")
        return content

    def parse_document(self) -> ThreatModelDocument:
        data = self._load_yaml()
        try:
            return ThreatModelDocument(**data)
        except ValidationError as e:
            raise ThreatModelParseError(f"Threat model validation error: {e}")

    def parse(self) -> ThreatModel:
        model = from_document(self.parse_document())
        for reason in check_references(model):
            logger.warning("%s: %s", self.document_path.name, reason)
        return model


def load_threat_model(model_path: Union[str, Path]) -> ThreatModel:
    """Load a threat model from a document or a model folder."""
    parser = ThreatModelParser(Path(model_path))
    return parser.parse()


def save_threat_model(model: ThreatModel, model_path: Union[str, Path]) -> Path:
    """Write the model as YAML and clear its dirty flag. Returns the file written."""
    path = Path(model_path)
    if path.is_dir():
        path = path / get_settings().model_file_name
    data = to_document(model).model_dump(mode='json', exclude_none=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    model.reset_dirty()
    logger.info("Saved threat model %s to %s", model.name, path)
    return path


def discover_threat_models(base_path: Union[str, Path], recursive: bool = True) -> list[Path]:
    """Find the model documents under a base directory, sorted by path."""
    base = Path(base_path).resolve()
    if not base.exists():
        return []
    file_name = get_settings().model_file_name
    if recursive:
        return sorted(base.rglob(file_name))
    return sorted(x / file_name for x in base.iterdir() if x.is_dir() and (x / file_name).exists())


def check_references(model: ThreatModel) -> list[str]:
    """Dangling cross-references of a model; empty when every reference resolves."""
    validator = ClosureValidator(model, DuplicationDefinition.everything())
    validator.run()
    validator.check(model.threat_events)
    return validator.reasons


# Document -> object graph

def _load_properties(model: ThreatModel, container: PropertiesContainer,
                     documents: Iterable[PropertyDocument]) -> None:
    for doc in documents:
        property_type = model.get_property_type(doc.propertyTypeId)
        if property_type is None:
            logger.warning("Property %s dropped: unknown property type %s", doc.id, doc.propertyTypeId)
            continue
        container.attach_property(Property(model, property_type, doc.value, id=doc.id,
                                           read_only=bool(doc.readOnly)))


def _load_schema(model: ThreatModel, doc: SchemaDocument) -> None:
    schema = PropertySchema(model, doc.name, doc.namespace, id=doc.id)
    schema._description = doc.description
    schema._applies_to = Scope(doc.appliesTo)
    schema._auto_apply = doc.autoApply
    schema._priority = doc.priority
    schema.visible = doc.visible
    schema.system = doc.system
    for type_doc in doc.propertyTypes:
        property_type = PropertyType(model, schema.id, type_doc.name, type_doc.kind, id=type_doc.id)
        property_type._description = type_doc.description
        property_type.priority = type_doc.priority
        property_type.visible = type_doc.visible
        property_type.values = list(type_doc.values)
        schema.add(property_type)
    model.attach_schema(schema)


def _load_threat_events(model: ThreatModel, container: ThreatEventsContainer,
                        documents: Iterable[ThreatEventDocument]) -> None:
    for doc in documents:
        threat_event = ThreatEvent(model, doc.threatTypeId, container.id, doc.severityId, doc.name, id=doc.id)
        threat_event._description = doc.description
        if not container.attach_threat_event(threat_event):
            logger.warning("Threat event %s dropped: %s already has one for threat type %s",
                           doc.id, container, doc.threatTypeId)
            continue
        _load_properties(model, threat_event, doc.properties)
        for scenario_doc in doc.scenarios:
            scenario = ThreatEventScenario(model, threat_event.id, scenario_doc.actorId, scenario_doc.severityId,
                                           scenario_doc.name, id=scenario_doc.id)
            scenario._description = scenario_doc.description
            scenario._motivation = scenario_doc.motivation
            threat_event.attach_scenario(scenario)
            _load_properties(model, scenario, scenario_doc.properties)
        for link_doc in doc.mitigations:
            link = ThreatEventMitigation(model, threat_event.id, link_doc.mitigationId, link_doc.strengthId,
                                         link_doc.status or MitigationStatus.UNDEFINED)
            link._directives = link_doc.directives
            threat_event.attach_mitigation(link)
            _load_properties(model, link, link_doc.properties)


def _load_shapes(model: ThreatModel, diagram: Diagram, doc: DiagramDocument) -> None:
    for shape_doc in doc.entityShapes:
        shape = EntityShape(model, shape_doc.associatedId, shape_doc.position or (0.0, 0.0))
        diagram.attach_entity_shape(shape)
        _load_properties(model, shape, shape_doc.properties)
    for shape_doc in doc.groupShapes:
        shape = GroupShape(model, shape_doc.associatedId, shape_doc.position or (0.0, 0.0),
                           shape_doc.size or (0.0, 0.0))
        diagram.attach_group_shape(shape)
        _load_properties(model, shape, shape_doc.properties)
    for shape_doc in doc.links:
        link = Link(model, shape_doc.associatedId)
        diagram.attach_link(link)
        _load_properties(model, link, shape_doc.properties)


def from_document(doc: ThreatModelDocument) -> ThreatModel:
    """Build the object graph of a document, preserving every identifier. The result is not dirty."""
    with dirty_tracking.paused():
        model = ThreatModel(doc.name, id=doc.id)
        model._description = doc.description
        model._owner = doc.owner
        for contributor in doc.contributors:
            model.add_contributor(contributor)
        for assumption in doc.assumptions:
            model.add_assumption(assumption)
        for dependency in doc.dependencies:
            model.add_dependency(dependency)

        for schema_doc in doc.schemas:
            _load_schema(model, schema_doc)
        _load_properties(model, model, doc.properties)

        for severity_doc in doc.severities:
            severity = Severity(model, severity_doc.id, severity_doc.name)
            severity._description = severity_doc.description
            severity.text_color = severity_doc.textColor or severity.text_color
            severity.back_color = severity_doc.backColor or severity.back_color
            severity.visible = severity_doc.visible
            model.attach_severity(severity)
            _load_properties(model, severity, severity_doc.properties)
        for strength_doc in doc.strengths:
            strength = Strength(model, strength_doc.id, strength_doc.name)
            strength._description = strength_doc.description
            strength.visible = strength_doc.visible
            model.attach_strength(strength)
            _load_properties(model, strength, strength_doc.properties)
        for actor_doc in doc.actors:
            actor = ThreatActor(model, actor_doc.name, actor_doc.actorType, id=actor_doc.id)
            actor._description = actor_doc.description
            model.attach_threat_actor(actor)
            _load_properties(model, actor, actor_doc.properties)
        for mitigation_doc in doc.mitigations:
            mitigation = Mitigation(model, mitigation_doc.name, mitigation_doc.controlType, id=mitigation_doc.id)
            mitigation._description = mitigation_doc.description
            model.attach_mitigation(mitigation)
            _load_properties(model, mitigation, mitigation_doc.properties)
        for type_doc in doc.threatTypes:
            threat_type = ThreatType(model, type_doc.name, type_doc.severityId, id=type_doc.id)
            threat_type._description = type_doc.description
            model.attach_threat_type(threat_type)
            _load_properties(model, threat_type, type_doc.properties)
            for link_doc in type_doc.mitigations:
                link = ThreatTypeMitigation(model, threat_type.id, link_doc.mitigationId, link_doc.strengthId)
                threat_type.attach_mitigation(link)
                _load_properties(model, link, link_doc.properties)

        for group_doc in doc.groups:
            group = TrustBoundary(model, group_doc.name, id=group_doc.id)
            group._description = group_doc.description
            model.attach_group(group)
            _load_properties(model, group, group_doc.properties)
        for template_doc in doc.entityTemplates:
            template = EntityTemplate(model, template_doc.name, template_doc.entityType, id=template_doc.id)
            template._description = template_doc.description
            model.attach_entity_template(template)
            _load_properties(model, template, template_doc.properties)
        for entity_doc in doc.entities:
            entity = ENTITY_CLASSES[entity_doc.type](model, entity_doc.name, id=entity_doc.id)
            entity._description = entity_doc.description
            entity._parent_id = entity_doc.parentId
            entity._template_id = entity_doc.templateId
            model.attach_entity(entity)
            _load_properties(model, entity, entity_doc.properties)
            _load_threat_events(model, entity, entity_doc.threatEvents)
        for flow_doc in doc.dataFlows:
            flow = DataFlow(model, flow_doc.name, flow_doc.sourceId, flow_doc.targetId, id=flow_doc.id)
            flow._description = flow_doc.description
            flow._flow_type = flow_doc.flowType
            model.attach_data_flow(flow)
            _load_properties(model, flow, flow_doc.properties)
            _load_threat_events(model, flow, flow_doc.threatEvents)
        for diagram_doc in doc.diagrams:
            diagram = Diagram(model, diagram_doc.name, id=diagram_doc.id)
            diagram._description = diagram_doc.description
            model.attach_diagram(diagram)
            _load_properties(model, diagram, diagram_doc.properties)
            _load_shapes(model, diagram, diagram_doc)

        _load_threat_events(model, model, doc.threatEvents)

    model.reset_dirty()
    logger.debug("Loaded threat model %s (%s)", model.name, model.id)
    return model


# Object graph -> document

def _properties(container: PropertiesContainer) -> list[PropertyDocument]:
    return [PropertyDocument(id=x.id, propertyTypeId=x.property_type_id, value=x.value,
                             readOnly=True if x.read_only else None)
            for x in container.properties]


def _mitigation_link(link) -> MitigationLinkDocument:
    if isinstance(link, ThreatEventMitigation):
        return MitigationLinkDocument(mitigationId=link.mitigation_id, strengthId=link.strength_id,
                                      status=link.status, directives=link.directives,
                                      properties=_properties(link))
    return MitigationLinkDocument(mitigationId=link.mitigation_id, strengthId=link.strength_id,
                                  properties=_properties(link))


def _threat_events(container: ThreatEventsContainer) -> list[ThreatEventDocument]:
    return [
        ThreatEventDocument(
            id=x.id, name=x.name, description=x.description, threatTypeId=x.threat_type_id,
            severityId=x.severity_id, properties=_properties(x),
            scenarios=[ScenarioDocument(id=s.id, name=s.name, description=s.description, actorId=s.actor_id,
                                        severityId=s.severity_id, motivation=s.motivation,
                                        properties=_properties(s))
                       for s in x.scenarios],
            mitigations=[_mitigation_link(m) for m in x.mitigations],
        )
        for x in container.threat_events
    ]


def _diagram(diagram: Diagram) -> DiagramDocument:
    return DiagramDocument(
        id=diagram.id, name=diagram.name, description=diagram.description, properties=_properties(diagram),
        entityShapes=[ShapeDocument(associatedId=x.associated_id, position=x.position, properties=_properties(x))
                      for x in diagram.entity_shapes],
        groupShapes=[ShapeDocument(associatedId=x.associated_id, position=x.position, size=x.size,
                                   properties=_properties(x))
                     for x in diagram.group_shapes],
        links=[ShapeDocument(associatedId=x.associated_id, properties=_properties(x)) for x in diagram.links],
    )


def to_document(model: ThreatModel) -> ThreatModelDocument:
    """Document of a model; objects carry their own ids and reference others by id only."""
    return ThreatModelDocument(
        id=model.id,
        name=model.name,
        description=model.description,
        owner=model.owner,
        contributors=model.contributors,
        assumptions=model.assumptions,
        dependencies=model.dependencies,
        schemas=[
            SchemaDocument(
                id=x.id, name=x.name, namespace=x.namespace, description=x.description,
                appliesTo=int(x.applies_to), autoApply=x.auto_apply, priority=x.priority,
                visible=x.visible, system=x.system,
                propertyTypes=[PropertyTypeDocument(id=t.id, name=t.name, description=t.description,
                                                    kind=t.kind, priority=t.priority, visible=t.visible,
                                                    values=t.values)
                               for t in x.property_types],
            )
            for x in model.schemas
        ],
        properties=_properties(model),
        threatEvents=_threat_events(model),
        entities=[
            EntityDocument(id=x.id, name=x.name, description=x.description, type=x.entity_type,
                           parentId=x.parent_id, templateId=x.template_id, properties=_properties(x),
                           threatEvents=_threat_events(x))
            for x in model.entities
        ],
        dataFlows=[
            DataFlowDocument(id=x.id, name=x.name, description=x.description, sourceId=x.source_id,
                             targetId=x.target_id, flowType=x.flow_type, properties=_properties(x),
                             threatEvents=_threat_events(x))
            for x in model.data_flows
        ],
        groups=[GroupDocument(id=x.id, name=x.name, description=x.description, properties=_properties(x))
                for x in model.groups],
        entityTemplates=[
            EntityTemplateDocument(id=x.id, name=x.name, description=x.description, entityType=x.entity_type,
                                   properties=_properties(x))
            for x in model.entity_templates
        ],
        diagrams=[_diagram(x) for x in model.diagrams],
        threatTypes=[
            ThreatTypeDocument(id=x.id, name=x.name, description=x.description, severityId=x.severity_id,
                               properties=_properties(x), mitigations=[_mitigation_link(m) for m in x.mitigations])
            for x in model.threat_types
        ],
        mitigations=[MitigationDocument(id=x.id, name=x.name, description=x.description,
                                        controlType=x.control_type, properties=_properties(x))
                     for x in model.mitigations],
        severities=[SeverityDocument(id=x.id, name=x.name, description=x.description, textColor=x.text_color,
                                     backColor=x.back_color, visible=x.visible, properties=_properties(x))
                    for x in model.severities],
        strengths=[StrengthDocument(id=x.id, name=x.name, description=x.description, visible=x.visible,
                                    properties=_properties(x))
                   for x in model.strengths],
        actors=[ThreatActorDocument(id=x.id, name=x.name, description=x.description, actorType=x.actor_type,
                                    properties=_properties(x))
                for x in model.threat_actors],
    )
