"""Pytest configuration and shared fixtures."""

from types import SimpleNamespace

import pytest

from threatsmanager.catalogs import initialize_standard_catalogs
from threatsmanager.config import get_settings
from threatsmanager.entities import EntityType
from threatsmanager.model import ThreatModel
from threatsmanager.properties import PropertyKind
from threatsmanager.scope import Scope
from threatsmanager.threats import ActorType, MitigationStatus, SecurityControlType

NAMESPACE = "https://example.com/threatsmanager/test"


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate tests from THREATSMANAGER_* variables of the environment."""
    for name in ("LOG_LEVEL", "LOG_FORMAT", "MODEL_FILE_NAME", "DEFAULT_OWNER", "STANDARD_CATALOGS"):
        monkeypatch.delenv(f"THREATSMANAGER_{name}", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def model():
    """Empty model seeded with the standard severities and strengths."""
    result = ThreatModel("Test Model")
    initialize_standard_catalogs(result)
    result.reset_dirty()
    yield result
    result.dispose()


@pytest.fixture
def security_schema(model):
    """Auto-applied schema for processes and data stores."""
    schema = model.add_schema("Security", NAMESPACE)
    schema.applies_to = Scope.PROCESS | Scope.DATA_STORE
    schema.auto_apply = True
    criticality = schema.add_property_type("Criticality", PropertyKind.LIST)
    criticality.values = ["Low", "High"]
    schema.add_property_type("Owner")
    model.reset_dirty()
    return schema


@pytest.fixture
def graph(model, security_schema):
    """A small but complete model: entities, flows, boundary, catalogs, threat events and a diagram."""
    boundary = model.add_trust_boundary("Internet Boundary")
    template = model.add_entity_template("Web Server", EntityType.PROCESS)
    user = model.add_entity(EntityType.EXTERNAL_INTERACTOR, "User")
    web = model.add_entity(EntityType.PROCESS, "Web App", template=template)
    web.set_parent(boundary)
    database = model.add_entity(EntityType.DATA_STORE, "Database")
    request = model.add_data_flow("Request", user.id, web.id)
    query = model.add_data_flow("Query", web.id, database.id)

    high = model.get_severity(75)
    average = model.get_strength(50)
    strong = model.get_strength(75)
    maximum = model.get_strength(100)

    spoofing = model.add_threat_type("Spoofing", high)
    tampering = model.add_threat_type("Tampering", model.get_severity(50))
    mfa = model.add_mitigation("Multi-factor Authentication", SecurityControlType.PREVENTIVE)
    logging_mitigation = model.add_mitigation("Audit Logging", SecurityControlType.DETECTIVE)
    spoofing.add_mitigation(mfa, maximum)
    actor = model.add_threat_actor("Script Kiddie", ActorType.EXTERNAL)

    web_spoofing = web.add_threat_event(spoofing)
    link = web_spoofing.add_mitigation(mfa, maximum)
    link.status = MitigationStatus.IMPLEMENTED
    scenario = web_spoofing.add_scenario(actor, high)
    query_tampering = query.add_threat_event(tampering)
    query_tampering.add_mitigation(logging_mitigation, average)
    database_tampering = database.add_threat_event(tampering)

    diagram = model.add_diagram("Main")
    diagram.add_entity_shape(user, (10, 10))
    diagram.add_entity_shape(web, (100, 10))
    diagram.add_entity_shape(database, (200, 10))
    diagram.add_group_shape(boundary, (80, 0), (60, 60))
    diagram.add_link(request)
    diagram.add_link(query)

    web.get_property(security_schema.get_property_type_by_name("Criticality")).value = "High"
    model.add_contributor("Alice")
    model.add_assumption("The network is hostile")
    model.reset_dirty()

    return SimpleNamespace(
        model=model, schema=security_schema, boundary=boundary, template=template,
        user=user, web=web, database=database, request=request, query=query,
        spoofing=spoofing, tampering=tampering, mfa=mfa, logging_mitigation=logging_mitigation,
        actor=actor, web_spoofing=web_spoofing, link=link, scenario=scenario,
        query_tampering=query_tampering, database_tampering=database_tampering,
        diagram=diagram, high=high, average=average, strong=strong, maximum=maximum,
    )
