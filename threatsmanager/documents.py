"""Pydantic models of the persisted threat model document."""

import uuid
from typing import Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator

from .entities import EntityType, FlowType
from .properties import PropertyKind
from .scope import parse_scope, scope_names
from .threats import ActorType, MitigationStatus, SecurityControlType


class PropertyDocument(BaseModel):
    """A property value; the type is referenced, never embedded."""
    id: uuid.UUID
    propertyTypeId: uuid.UUID
    value: Optional[str] = None
    readOnly: Optional[bool] = None


class PropertyTypeDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    kind: PropertyKind = PropertyKind.STRING
    priority: int = 0
    visible: bool = True
    values: list[str] = Field(default_factory=list)


class SchemaDocument(BaseModel):
    """A property schema with its property types."""
    id: uuid.UUID
    name: str
    namespace: str
    description: Optional[str] = None
    appliesTo: int = 0
    autoApply: bool = False
    priority: int = 50
    visible: bool = True
    system: bool = False
    propertyTypes: list[PropertyTypeDocument] = Field(default_factory=list)

    @field_validator('appliesTo', mode='before')
    @classmethod
    def validate_applies_to(cls, v: Union[int, str, list]) -> int:
        if isinstance(v, str):
            return int(parse_scope(v))
        if isinstance(v, list):
            return int(parse_scope('|'.join(v)))
        return v

    @field_serializer('appliesTo')
    def serialize_applies_to(self, v: int) -> str:
        return scope_names(v)

    @field_validator('name', 'namespace')
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Schema name and namespace cannot be empty')
        return v.strip()


class MitigationLinkDocument(BaseModel):
    mitigationId: uuid.UUID
    strengthId: int
    status: Optional[MitigationStatus] = None
    directives: Optional[str] = None
    properties: list[PropertyDocument] = Field(default_factory=list)


class ScenarioDocument(BaseModel):
    id: uuid.UUID
    name: str = ''
    description: Optional[str] = None
    actorId: Optional[uuid.UUID] = None
    severityId: int
    motivation: Optional[str] = None
    properties: list[PropertyDocument] = Field(default_factory=list)


class ThreatEventDocument(BaseModel):
    id: uuid.UUID
    name: str = ''
    description: Optional[str] = None
    threatTypeId: uuid.UUID
    severityId: int
    properties: list[PropertyDocument] = Field(default_factory=list)
    scenarios: list[ScenarioDocument] = Field(default_factory=list)
    mitigations: list[MitigationLinkDocument] = Field(default_factory=list)


class EntityDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    type: EntityType
    parentId: Optional[uuid.UUID] = None
    templateId: Optional[uuid.UUID] = None
    properties: list[PropertyDocument] = Field(default_factory=list)
    threatEvents: list[ThreatEventDocument] = Field(default_factory=list)


class DataFlowDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    sourceId: uuid.UUID
    targetId: uuid.UUID
    flowType: FlowType = FlowType.READ_WRITE_COMMAND
    properties: list[PropertyDocument] = Field(default_factory=list)
    threatEvents: list[ThreatEventDocument] = Field(default_factory=list)


class GroupDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    type: str = Field('trust_boundary', pattern=r'^trust_boundary$')
    properties: list[PropertyDocument] = Field(default_factory=list)


class EntityTemplateDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    entityType: EntityType
    properties: list[PropertyDocument] = Field(default_factory=list)


class ShapeDocument(BaseModel):
    """Placement of an entity, a group or a flow on a diagram."""
    associatedId: uuid.UUID
    position: Optional[tuple[float, float]] = None
    size: Optional[tuple[float, float]] = None
    properties: list[PropertyDocument] = Field(default_factory=list)


class DiagramDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    properties: list[PropertyDocument] = Field(default_factory=list)
    entityShapes: list[ShapeDocument] = Field(default_factory=list)
    groupShapes: list[ShapeDocument] = Field(default_factory=list)
    links: list[ShapeDocument] = Field(default_factory=list)


class ThreatTypeDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    severityId: int
    properties: list[PropertyDocument] = Field(default_factory=list)
    mitigations: list[MitigationLinkDocument] = Field(default_factory=list)


class MitigationDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    controlType: SecurityControlType = SecurityControlType.UNKNOWN
    properties: list[PropertyDocument] = Field(default_factory=list)


class SeverityDocument(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    textColor: Optional[str] = None
    backColor: Optional[str] = None
    visible: bool = True
    properties: list[PropertyDocument] = Field(default_factory=list)


class StrengthDocument(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    visible: bool = True
    properties: list[PropertyDocument] = Field(default_factory=list)


class ThreatActorDocument(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    actorType: ActorType = ActorType.UNKNOWN
    properties: list[PropertyDocument] = Field(default_factory=list)


class ThreatModelDocument(BaseModel):
    """Complete threat model document."""
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    owner: Optional[str] = None
    contributors: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    schemas: list[SchemaDocument] = Field(default_factory=list)
    properties: list[PropertyDocument] = Field(default_factory=list)
    threatEvents: list[ThreatEventDocument] = Field(default_factory=list)
    entities: list[EntityDocument] = Field(default_factory=list)
    dataFlows: list[DataFlowDocument] = Field(default_factory=list)
    groups: list[GroupDocument] = Field(default_factory=list)
    entityTemplates: list[EntityTemplateDocument] = Field(default_factory=list)
    diagrams: list[DiagramDocument] = Field(default_factory=list)
    threatTypes: list[ThreatTypeDocument] = Field(default_factory=list)
    mitigations: list[MitigationDocument] = Field(default_factory=list)
    severities: list[SeverityDocument] = Field(default_factory=list)
    strengths: list[StrengthDocument] = Field(default_factory=list)
    actors: list[ThreatActorDocument] = Field(default_factory=list)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Threat model name cannot be empty')
        return v.strip()
