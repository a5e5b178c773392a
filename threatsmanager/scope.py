"""Scopes identify the object kinds a schema applies to."""

from enum import IntFlag


class Scope(IntFlag):
    """Bit flags naming the kinds of object in a threat model."""
    UNDEFINED = 0
    EXTERNAL_INTERACTOR = 1
    PROCESS = 2
    DATA_STORE = 4
    ENTITY = EXTERNAL_INTERACTOR | PROCESS | DATA_STORE
    ENTITY_TEMPLATE = 8
    DATA_FLOW = 16
    TRUST_BOUNDARY = 32
    # Reserved: logical groups are not implemented.
    LOGICAL_GROUP = 64
    GROUP = LOGICAL_GROUP | TRUST_BOUNDARY
    THREAT_TYPE = 128
    THREAT_EVENT = 256
    THREAT_EVENT_SCENARIO = 512
    THREAT_EVENT_MITIGATION = 1024
    THREATS = THREAT_TYPE | THREAT_EVENT | THREAT_EVENT_SCENARIO
    MITIGATION = 2048
    THREAT_TYPE_MITIGATION = 4096
    THREAT_ACTOR = 8192
    SEVERITY = 16384
    PROPERTY_TYPE = 32768
    PROPERTY_SCHEMA = 65536
    DIAGRAM = 262144
    ENTITY_SHAPE = 524288
    GROUP_SHAPE = 1048576
    LINK = 2097152
    THREAT_MODEL = 16777216
    ALL = (ENTITY | ENTITY_TEMPLATE | DATA_FLOW | GROUP | THREATS | THREAT_EVENT_MITIGATION |
           MITIGATION | THREAT_TYPE_MITIGATION | THREAT_ACTOR | SEVERITY | PROPERTY_TYPE |
           PROPERTY_SCHEMA | DIAGRAM | ENTITY_SHAPE | GROUP_SHAPE | LINK | THREAT_MODEL)

    @property
    def label(self) -> str:
        return SCOPE_LABELS.get(self, (self.name or '').replace('_', ' ').title())


SCOPE_LABELS = {
    Scope.EXTERNAL_INTERACTOR: 'External Interactor',
    Scope.DATA_STORE: 'Data Store',
    Scope.ENTITY_TEMPLATE: 'Entity Template',
    Scope.DATA_FLOW: 'Flow',
    Scope.TRUST_BOUNDARY: 'Trust Boundary',
    Scope.LOGICAL_GROUP: 'Logical Group',
    Scope.THREAT_TYPE: 'Threat Type',
    Scope.THREAT_EVENT: 'Threat Event',
    Scope.THREAT_EVENT_SCENARIO: 'Threat Event Scenario',
    Scope.THREAT_EVENT_MITIGATION: 'Threat Event Mitigation',
    Scope.MITIGATION: 'Standard Mitigation',
    Scope.THREAT_TYPE_MITIGATION: 'Threat Type Mitigation',
    Scope.THREAT_ACTOR: 'Threat Actor',
    Scope.ENTITY_SHAPE: 'Entity Shape',
    Scope.GROUP_SHAPE: 'Group Shape',
    Scope.THREAT_MODEL: 'Threat Model',
}


def parse_scope(value: str) -> Scope:
    """Parse a '|' or ',' separated list of scope names (e.g. 'PROCESS|DATA_STORE')."""
    result = Scope.UNDEFINED
    for token in value.replace(',', '|').split('|'):
        token = token.strip().upper().replace(' ', '_').replace('-', '_')
        if not token:
            continue
        try:
            result |= Scope[token]
        except KeyError:
            raise ValueError(f"Unknown scope: {token}")
    return result


def scope_flags(mask: int) -> list[Scope]:
    """Single-bit scopes set in mask, in declaration order."""
    scope = Scope(mask)
    return [x for x in Scope if x.value and (x.value & (x.value - 1)) == 0 and x in scope]


def scope_names(mask: int) -> str:
    """Inverse of parse_scope: the single-bit names set in mask, e.g. 'PROCESS|DATA_STORE'."""
    names = [x.name for x in scope_flags(mask)]
    return '|'.join(names) if names else Scope.UNDEFINED.name
