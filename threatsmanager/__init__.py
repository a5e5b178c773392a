"""
ThreatsManager - threat model engine.

Holds a threat model as a graph of entities, flows, trust boundaries and
threat catalogs; extends any object with properties defined by schemas;
duplicates and merges models selectively; stores models as YAML.
"""

__version__ = "1.0.0"

from .duplication import DuplicationDefinition
from .exceptions import DuplicationValidationError, ReadOnlyPropertyError, ThreatsManagerError
from .model import ThreatModel
from .parser import ThreatModelParseError, load_threat_model, save_threat_model
from .scope import Scope

__all__ = [
    "DuplicationDefinition",
    "DuplicationValidationError",
    "ReadOnlyPropertyError",
    "Scope",
    "ThreatModel",
    "ThreatModelParseError",
    "ThreatsManagerError",
    "load_threat_model",
    "save_threat_model",
]
