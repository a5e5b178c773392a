"""Merge of a selection of catalogs and schemas from another threat model."""

import logging
from typing import TYPE_CHECKING, Iterable, Optional, TypeVar

from .duplication import DuplicationDefinition, select, validate_definition
from .identity import Identity
from .properties import PropertySchema
from .threats import ThreatType

if TYPE_CHECKING:
    from .model import ThreatModel

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=Identity)


def _by_name(items: Iterable[T], name: str) -> Optional[T]:
    return next((x for x in items if x.name == name), None)


class ModelMerger:
    """Imports the selected objects of source into target, reconciling the ones already there."""

    def __init__(self, target: 'ThreatModel', source: 'ThreatModel', definition: DuplicationDefinition):
        self.target = target
        self.source = source
        self.definition = definition
        self.cloned = 0
        self.merged = 0

    def merge_schema(self, schema: PropertySchema) -> None:
        existing = self.target.get_schema(schema.name, schema.namespace) or self.target.get_schema(schema.id)
        if existing is None:
            existing = schema.clone(self.target)
            if existing is None:
                logger.warning("Schema %s could not be added to %s", schema, self.target.name)
                return
            self.cloned += 1
        else:
            existing.merge_property_types(schema)
            self.merged += 1
        if existing.auto_apply or schema.auto_apply:
            self.target.apply_schema(existing.id)

    def merge_named(self, item, existing) -> None:
        if existing is None:
            item.clone(self.target)
            self.cloned += 1
        else:
            existing.merge_properties(item)
            self.merged += 1

    def merge_threat_type(self, threat_type: ThreatType) -> None:
        existing = _by_name(self.target.threat_types, threat_type.name) or self.target.get_threat_type(threat_type.id)
        if existing is None:
            existing = threat_type.clone(self.target)
            for link in existing.mitigations:
                if link.mitigation is None:
                    existing.remove_mitigation(link.mitigation_id)
            self.cloned += 1
        else:
            existing.merge_properties(threat_type)
            self.merged += 1
        for link in threat_type.mitigations:
            source_mitigation = link.mitigation
            mitigation = self.target.get_mitigation(link.mitigation_id)
            if mitigation is None and source_mitigation is not None:
                mitigation = _by_name(self.target.mitigations, source_mitigation.name)
            strength = self.target.get_strength(link.strength_id)
            if mitigation is not None and strength is not None:
                existing.add_mitigation(mitigation, strength)

    def run(self) -> None:
        target = self.target
        source = self.source
        d = self.definition

        for schema in select(source.schemas, d.all_property_schemas, d.property_schemas):
            self.merge_schema(schema)
        for template in select(source.entity_templates, d.all_entity_templates, d.entity_templates):
            self.merge_named(template, _by_name(target.entity_templates, template.name)
                             or target.get_entity_template(template.id))
        for severity in select(source.severities, d.all_severities, d.severities):
            self.merge_named(severity, target.get_severity(severity.id))
        for strength in select(source.strengths, d.all_strengths, d.strengths):
            self.merge_named(strength, target.get_strength(strength.id))
        for actor in select(source.threat_actors, d.all_threat_actors, d.threat_actors):
            self.merge_named(actor, _by_name(target.threat_actors, actor.name) or target.get_threat_actor(actor.id))
        for mitigation in select(source.mitigations, d.all_mitigations, d.mitigations):
            self.merge_named(mitigation, _by_name(target.mitigations, mitigation.name)
                             or target.get_mitigation(mitigation.id))
        for threat_type in select(source.threat_types, d.all_threat_types, d.threat_types):
            self.merge_threat_type(threat_type)


def merge_models(target: 'ThreatModel', source: 'ThreatModel', definition: DuplicationDefinition) -> bool:
    """Merge the selection of source into target. Returns False, changing nothing, if the selection is invalid."""
    reasons = validate_definition(source, definition)
    if reasons:
        logger.warning("Merge of %s into %s rejected:\n%s", source.name, target.name,
                       '\n'.join(f'  - {reason}' for reason in reasons))
        return False

    merger = ModelMerger(target, source, definition)
    merger.run()
    logger.info("Merged %s into %s: %d objects added, %d reconciled",
                source.name, target.name, merger.cloned, merger.merged)
    return True
