"""Threat catalogs and the threat events attached to entities, flows and the model."""

import logging
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .identity import Identity, ModelChild, Reference
from .observable import Event, Observable
from .properties import PropertiesContainer
from .scope import Scope

if TYPE_CHECKING:
    from .model import ThreatModel

logger = logging.getLogger(__name__)


class SecurityControlType(str, Enum):
    UNKNOWN = 'unknown'
    PREVENTIVE = 'preventive'
    DETECTIVE = 'detective'
    CORRECTIVE = 'corrective'
    COMPENSATING = 'compensating'


class MitigationStatus(str, Enum):
    UNDEFINED = 'undefined'
    EXISTING = 'existing'
    PROPOSED = 'proposed'
    APPROVED = 'approved'
    PLANNED = 'planned'
    IMPLEMENTED = 'implemented'
    REJECTED = 'rejected'


class ActorType(str, Enum):
    UNKNOWN = 'unknown'
    INSIDER = 'insider'
    EXTERNAL = 'external'
    AUTHORIZED_EXTERNAL = 'authorized_external'
    ORGANIZED_CRIME = 'organized_crime'
    NATION_STATE = 'nation_state'
    HACKTIVIST = 'hacktivist'


class Severity(ModelChild, PropertiesContainer, Identity):
    """Integer-identified severity level; higher ids are more severe."""

    type_label = 'Severity'
    scope = Scope.SEVERITY

    def __init__(self, model: 'ThreatModel', id: int, name: str):
        super().__init__()
        self._bind_model(model)
        self._id = id
        self._name = name
        self.text_color = 'Black'
        self.back_color = 'White'
        self.visible = True

    def clone(self, model: 'ThreatModel') -> 'Severity':
        result = Severity(model, self._id, self._name)
        result._description = self._description
        result.text_color = self.text_color
        result.back_color = self.back_color
        result.visible = self.visible
        model.attach_severity(result)
        self.clone_properties(result)
        return result


class Strength(ModelChild, PropertiesContainer, Identity):
    """Integer-identified mitigation strength; ids are summed to assess coverage."""

    type_label = 'Strength'

    def __init__(self, model: 'ThreatModel', id: int, name: str):
        super().__init__()
        self._bind_model(model)
        self._id = id
        self._name = name
        self.visible = True

    def clone(self, model: 'ThreatModel') -> 'Strength':
        result = Strength(model, self._id, self._name)
        result._description = self._description
        result.visible = self.visible
        model.attach_strength(result)
        self.clone_properties(result)
        return result


class Mitigation(ModelChild, PropertiesContainer, Identity):
    """Standard mitigation of the catalog."""

    type_label = 'Mitigation'
    scope = Scope.MITIGATION

    def __init__(self, model: 'ThreatModel', name: str,
                 control_type: SecurityControlType = SecurityControlType.UNKNOWN,
                 *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._control_type = SecurityControlType(control_type)

    @property
    def control_type(self) -> SecurityControlType:
        return self._control_type

    @control_type.setter
    def control_type(self, value: SecurityControlType) -> None:
        value = SecurityControlType(value)
        if value != self._control_type:
            self._control_type = value
            self._notify_changed('control_type')

    def clone(self, model: 'ThreatModel') -> 'Mitigation':
        result = Mitigation(model, self._name, self._control_type, id=self._id)
        result._description = self._description
        model.attach_mitigation(result)
        self.clone_properties(result)
        return result


class ThreatActor(ModelChild, PropertiesContainer, Identity):
    type_label = 'Threat Actor'
    scope = Scope.THREAT_ACTOR

    def __init__(self, model: 'ThreatModel', name: str, actor_type: ActorType = ActorType.UNKNOWN,
                 *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._actor_type = ActorType(actor_type)

    @property
    def actor_type(self) -> ActorType:
        return self._actor_type

    @actor_type.setter
    def actor_type(self, value: ActorType) -> None:
        value = ActorType(value)
        if value != self._actor_type:
            self._actor_type = value
            self._notify_changed('actor_type')

    def clone(self, model: 'ThreatModel') -> 'ThreatActor':
        result = ThreatActor(model, self._name, self._actor_type, id=self._id)
        result._description = self._description
        model.attach_threat_actor(result)
        self.clone_properties(result)
        return result


class MitigationLink(ModelChild, PropertiesContainer, Observable):
    """Association between a mitigation and its owner, qualified by a strength."""

    def __init__(self, model: 'ThreatModel', mitigation_id: uuid.UUID, strength_id: int):
        super().__init__()
        self._bind_model(model)
        self._mitigation_id = mitigation_id
        self._strength_id = strength_id

    @property
    def mitigation_id(self) -> uuid.UUID:
        return self._mitigation_id

    @property
    def mitigation(self) -> Optional[Mitigation]:
        model = self.model
        return model.get_mitigation(self._mitigation_id) if model else None

    @property
    def strength_id(self) -> int:
        return self._strength_id

    @strength_id.setter
    def strength_id(self, value: int) -> None:
        if value != self._strength_id:
            self._strength_id = value
            self._notify_changed('strength_id')

    @property
    def strength(self) -> Optional[Strength]:
        model = self.model
        return model.get_strength(self._strength_id) if model else None

    def references(self) -> list[Reference]:
        return [Reference('mitigation', 'identity', self._mitigation_id),
                Reference('strength', 'strength', self._strength_id)]

    def __str__(self) -> str:
        mitigation = self.mitigation
        return mitigation.name if mitigation else str(self._mitigation_id)


class ThreatTypeMitigation(MitigationLink):
    """Standard mitigation suggested for a threat type."""

    scope = Scope.THREAT_TYPE_MITIGATION

    def __init__(self, model: 'ThreatModel', threat_type_id: uuid.UUID, mitigation_id: uuid.UUID, strength_id: int):
        super().__init__(model, mitigation_id, strength_id)
        self._threat_type_id = threat_type_id

    @property
    def threat_type_id(self) -> uuid.UUID:
        return self._threat_type_id

    @property
    def threat_type(self) -> Optional['ThreatType']:
        model = self.model
        return model.get_threat_type(self._threat_type_id) if model else None

    def clone(self, container: 'ThreatTypeMitigationsContainer') -> 'ThreatTypeMitigation':
        result = ThreatTypeMitigation(container.model, container.id, self._mitigation_id, self._strength_id)
        container.attach_mitigation(result)
        self.clone_properties(result)
        return result


class ThreatEventMitigation(MitigationLink):
    """Mitigation applied to a threat event, with its implementation status."""

    scope = Scope.THREAT_EVENT_MITIGATION

    def __init__(self, model: 'ThreatModel', threat_event_id: uuid.UUID, mitigation_id: uuid.UUID,
                 strength_id: int, status: MitigationStatus = MitigationStatus.UNDEFINED):
        super().__init__(model, mitigation_id, strength_id)
        self._threat_event_id = threat_event_id
        self._status = MitigationStatus(status)
        self._directives: Optional[str] = None

    @property
    def threat_event_id(self) -> uuid.UUID:
        return self._threat_event_id

    @property
    def status(self) -> MitigationStatus:
        return self._status

    @status.setter
    def status(self, value: MitigationStatus) -> None:
        value = MitigationStatus(value)
        if value != self._status:
            self._status = value
            self._notify_changed('status')

    @property
    def directives(self) -> Optional[str]:
        return self._directives

    @directives.setter
    def directives(self, value: Optional[str]) -> None:
        if value != self._directives:
            self._directives = value
            self._notify_changed('directives')

    def clone(self, container: 'ThreatEventMitigationsContainer') -> 'ThreatEventMitigation':
        result = ThreatEventMitigation(container.model, container.id, self._mitigation_id,
                                       self._strength_id, self._status)
        result._directives = self._directives
        container.attach_mitigation(result)
        self.clone_properties(result)
        return result


class MitigationLinksContainer(ABC):
    """Capability of holding at most one link per mitigation."""

    def __init__(self):
        super().__init__()
        self._mitigations: list[MitigationLink] = []
        self.mitigation_added = Event('mitigation_added')
        self.mitigation_removed = Event('mitigation_removed')

    @property
    def mitigations(self) -> list:
        return list(self._mitigations)

    def get_mitigation(self, mitigation_id: uuid.UUID) -> Optional[MitigationLink]:
        return next((x for x in self._mitigations if x.mitigation_id == mitigation_id), None)

    @abstractmethod
    def _create_link(self, mitigation: Mitigation, strength: Strength) -> MitigationLink:
        """Build an unattached link of the concrete kind."""

    def add_mitigation(self, mitigation: Mitigation, strength: Strength) -> Optional[MitigationLink]:
        if self.get_mitigation(mitigation.id) is not None:
            return None
        result = self._create_link(mitigation, strength)
        self.attach_mitigation(result)
        model = self.model
        if model is not None:
            model.auto_apply_schemas(result)
        return result

    def attach_mitigation(self, link: MitigationLink) -> bool:
        if self.get_mitigation(link.mitigation_id) is not None:
            return False
        self._mitigations.append(link)
        self._mark_dirty()
        self.mitigation_added.fire(self, link)
        return True

    def remove_mitigation(self, mitigation_id: uuid.UUID) -> bool:
        link = self.get_mitigation(mitigation_id)
        if link is None:
            return False
        self._mitigations.remove(link)
        self._mark_dirty()
        self.mitigation_removed.fire(self, link)
        return True


class ThreatTypeMitigationsContainer(MitigationLinksContainer):
    def _create_link(self, mitigation: Mitigation, strength: Strength) -> ThreatTypeMitigation:
        return ThreatTypeMitigation(self.model, self.id, mitigation.id, strength.id)


class ThreatEventMitigationsContainer(MitigationLinksContainer):
    def _create_link(self, mitigation: Mitigation, strength: Strength) -> ThreatEventMitigation:
        return ThreatEventMitigation(self.model, self.id, mitigation.id, strength.id)


class ThreatType(ModelChild, PropertiesContainer, ThreatTypeMitigationsContainer, Identity):
    """Catalog entry describing a kind of threat."""

    type_label = 'Threat Type'
    scope = Scope.THREAT_TYPE

    def __init__(self, model: 'ThreatModel', name: str, severity_id: int, *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._severity_id = severity_id

    @property
    def severity_id(self) -> int:
        return self._severity_id

    @property
    def severity(self) -> Optional[Severity]:
        model = self.model
        return model.get_severity(self._severity_id) if model else None

    @severity.setter
    def severity(self, value: Severity) -> None:
        if value.id != self._severity_id:
            self._severity_id = value.id
            self._notify_changed('severity')

    def get_top_severity(self) -> Optional[Severity]:
        """Most severe level among this type and the threat events created from it."""
        model = self.model
        if model is None:
            return None
        severities = [x.severity for x in model.get_threat_events(self)]
        severities.append(self.severity)
        severities = [x for x in severities if x is not None]
        return max(severities, key=lambda x: x.id) if severities else None

    def references(self) -> list[Reference]:
        return [Reference('severity', 'severity', self._severity_id)]

    def clone(self, model: 'ThreatModel') -> 'ThreatType':
        result = ThreatType(model, self._name, self._severity_id, id=self._id)
        result._description = self._description
        model.attach_threat_type(result)
        self.clone_properties(result)
        for link in self._mitigations:
            link.clone(result)
        return result


class ThreatEventScenario(ModelChild, PropertiesContainer, Identity):
    """A concrete way a threat actor could realise a threat event."""

    type_label = 'Scenario'
    scope = Scope.THREAT_EVENT_SCENARIO

    def __init__(self, model: 'ThreatModel', threat_event_id: uuid.UUID, actor_id: Optional[uuid.UUID],
                 severity_id: int, name: str = '', *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._threat_event_id = threat_event_id
        self._actor_id = actor_id
        self._severity_id = severity_id
        self._motivation: Optional[str] = None

    @property
    def threat_event_id(self) -> uuid.UUID:
        return self._threat_event_id

    @property
    def actor_id(self) -> Optional[uuid.UUID]:
        return self._actor_id

    @property
    def actor(self) -> Optional[ThreatActor]:
        model = self.model
        return model.get_threat_actor(self._actor_id) if model and self._actor_id else None

    @property
    def severity_id(self) -> int:
        return self._severity_id

    @property
    def severity(self) -> Optional[Severity]:
        model = self.model
        return model.get_severity(self._severity_id) if model else None

    @property
    def motivation(self) -> Optional[str]:
        return self._motivation

    @motivation.setter
    def motivation(self, value: Optional[str]) -> None:
        if value != self._motivation:
            self._motivation = value
            self._notify_changed('motivation')

    def references(self) -> list[Reference]:
        result = [Reference('severity', 'severity', self._severity_id)]
        if self._actor_id is not None:
            result.insert(0, Reference('actor', 'identity', self._actor_id))
        return result

    def clone(self, threat_event: 'ThreatEvent') -> 'ThreatEventScenario':
        result = ThreatEventScenario(threat_event.model, threat_event.id, self._actor_id,
                                     self._severity_id, self._name, id=self._id)
        result._description = self._description
        result._motivation = self._motivation
        threat_event.attach_scenario(result)
        self.clone_properties(result)
        return result


class ThreatEvent(ModelChild, PropertiesContainer, ThreatEventMitigationsContainer, Identity):
    """Occurrence of a threat type on an entity, a flow or the model itself."""

    type_label = 'Threat Event'
    scope = Scope.THREAT_EVENT

    def __init__(self, model: 'ThreatModel', threat_type_id: uuid.UUID, parent_id: uuid.UUID,
                 severity_id: int, name: str = '', *, id: Optional[uuid.UUID] = None):
        super().__init__()
        self._bind_model(model)
        self._id = id or uuid.uuid4()
        self._name = name
        self._threat_type_id = threat_type_id
        self._parent_id = parent_id
        self._severity_id = severity_id
        self._scenarios: list[ThreatEventScenario] = []
        self.scenario_added = Event('scenario_added')
        self.scenario_removed = Event('scenario_removed')

    @property
    def threat_type_id(self) -> uuid.UUID:
        return self._threat_type_id

    @property
    def threat_type(self) -> Optional[ThreatType]:
        model = self.model
        return model.get_threat_type(self._threat_type_id) if model else None

    @property
    def parent_id(self) -> uuid.UUID:
        return self._parent_id

    @property
    def parent(self):
        model = self.model
        return model.get_identity(self._parent_id) if model else None

    @property
    def severity_id(self) -> int:
        return self._severity_id

    @property
    def severity(self) -> Optional[Severity]:
        model = self.model
        return model.get_severity(self._severity_id) if model else None

    @severity.setter
    def severity(self, value: Severity) -> None:
        if value.id != self._severity_id:
            self._severity_id = value.id
            self._notify_changed('severity')

    def references(self) -> list[Reference]:
        return [Reference('threat type', 'identity', self._threat_type_id),
                Reference('severity', 'severity', self._severity_id)]

    @property
    def scenarios(self) -> list[ThreatEventScenario]:
        return list(self._scenarios)

    def get_scenario(self, scenario_id: uuid.UUID) -> Optional[ThreatEventScenario]:
        return next((x for x in self._scenarios if x.id == scenario_id), None)

    def add_scenario(self, actor: ThreatActor, severity: Severity, name: Optional[str] = None) -> ThreatEventScenario:
        result = ThreatEventScenario(self.model, self._id, actor.id, severity.id, name or actor.name)
        self.attach_scenario(result)
        model = self.model
        if model is not None:
            model.auto_apply_schemas(result)
        return result

    def attach_scenario(self, scenario: ThreatEventScenario) -> bool:
        if self.get_scenario(scenario.id) is not None:
            return False
        self._scenarios.append(scenario)
        self._mark_dirty()
        self.scenario_added.fire(self, scenario)
        return True

    def remove_scenario(self, scenario_id: uuid.UUID) -> bool:
        scenario = self.get_scenario(scenario_id)
        if scenario is None:
            return False
        self._scenarios.remove(scenario)
        self._mark_dirty()
        self.scenario_removed.fire(self, scenario)
        return True

    def clone(self, container: 'ThreatEventsContainer') -> 'ThreatEvent':
        result = ThreatEvent(container._owner_model(), self._threat_type_id, container.id,
                             self._severity_id, self._name, id=self._id)
        result._description = self._description
        container.attach_threat_event(result)
        self.clone_properties(result)
        for scenario in self._scenarios:
            scenario.clone(result)
        for link in self._mitigations:
            link.clone(result)
        return result


class ThreatEventsContainer:
    """Capability of holding at most one threat event per threat type."""

    def __init__(self):
        super().__init__()
        self._threat_events: list[ThreatEvent] = []
        self.threat_event_added = Event('threat_event_added')
        self.threat_event_removed = Event('threat_event_removed')

    @property
    def threat_events(self) -> list[ThreatEvent]:
        return list(self._threat_events)

    def get_threat_event(self, threat_event_id: uuid.UUID) -> Optional[ThreatEvent]:
        return next((x for x in self._threat_events if x.id == threat_event_id), None)

    def get_threat_event_by_type(self, threat_type_id: uuid.UUID) -> Optional[ThreatEvent]:
        return next((x for x in self._threat_events if x.threat_type_id == threat_type_id), None)

    def add_threat_event(self, threat_type: ThreatType) -> Optional[ThreatEvent]:
        if self.get_threat_event_by_type(threat_type.id) is not None:
            return None
        model = self._owner_model()
        result = ThreatEvent(model, threat_type.id, self.id, threat_type.severity_id, threat_type.name)
        result._description = threat_type.description
        self.attach_threat_event(result)
        model.auto_apply_schemas(result)
        return result

    def attach_threat_event(self, threat_event: ThreatEvent) -> bool:
        if self.get_threat_event_by_type(threat_event.threat_type_id) is not None:
            logger.debug("%s already has a threat event for type %s", self, threat_event.threat_type_id)
            return False
        self._threat_events.append(threat_event)
        self._mark_dirty()
        self.threat_event_added.fire(self, threat_event)
        return True

    def remove_threat_event(self, threat_event_id: uuid.UUID) -> bool:
        threat_event = self.get_threat_event(threat_event_id)
        if threat_event is None:
            return False
        self._threat_events.remove(threat_event)
        self._mark_dirty()
        self.threat_event_removed.fire(self, threat_event)
        return True

    def clone_threat_events(self, dest: 'ThreatEventsContainer') -> None:
        for threat_event in self._threat_events:
            threat_event.clone(dest)
