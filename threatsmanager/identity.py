"""Identity of model objects and weak, identifier-based back-references to their model."""

import logging
import uuid
import weakref
from typing import TYPE_CHECKING, NamedTuple, Optional, Union
from weakref import WeakValueDictionary

from .observable import Observable

if TYPE_CHECKING:
    from .model import ThreatModel

logger = logging.getLogger(__name__)


class Reference(NamedTuple):
    """Cross-reference held by a model object."""
    role: str
    kind: str  # 'identity', 'severity' or 'strength'
    target: Union[uuid.UUID, int]


class ThreatModelManager:
    """Registry of the live threat models, keyed by identifier."""

    _models: 'WeakValueDictionary[uuid.UUID, ThreatModel]' = WeakValueDictionary()

    @classmethod
    def register(cls, model: 'ThreatModel') -> None:
        current = cls._models.get(model.id)
        if current is not None and current is not model:
            logger.warning("Model %s is already registered; replacing it", model.id)
        cls._models[model.id] = model

    @classmethod
    def unregister(cls, model: 'ThreatModel') -> bool:
        if cls._models.get(model.id) is model:
            del cls._models[model.id]
            return True
        return False

    @classmethod
    def get(cls, model_id: Optional[uuid.UUID]) -> Optional['ThreatModel']:
        if model_id is None:
            return None
        return cls._models.get(model_id)

    @classmethod
    def models(cls) -> list['ThreatModel']:
        return list(cls._models.values())


class Identity(Observable):
    """An object with a stable identifier, a name and a description."""

    type_label = 'Object'
    type_initial: Optional[str] = None

    def __init__(self):
        super().__init__()
        self._id: Optional[uuid.UUID] = None
        self._name = ''
        self._description: Optional[str] = None

    @property
    def id(self) -> uuid.UUID:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        if value != self._name:
            self._name = value
            self._notify_changed('name')

    @property
    def description(self) -> Optional[str]:
        return self._description

    @description.setter
    def description(self, value: Optional[str]) -> None:
        if value != self._description:
            self._description = value
            self._notify_changed('description')

    def __str__(self) -> str:
        return self._name or '<undefined>'

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self._name!r} {self._id}>'


class ModelChild:
    """
    Mixin for objects owned by a threat model.

    The owner is held as an identifier; the model object itself is cached
    through a weak reference and resolved again through ThreatModelManager
    when the cache is empty.
    """

    def __init__(self):
        super().__init__()
        self._model_id: Optional[uuid.UUID] = None
        self._model_ref: Optional[weakref.ref] = None

    def _bind_model(self, model: 'ThreatModel') -> None:
        self._model_id = model.id
        self._model_ref = weakref.ref(model)

    @property
    def model_id(self) -> Optional[uuid.UUID]:
        return self._model_id

    @property
    def model(self) -> Optional['ThreatModel']:
        model = self._model_ref() if self._model_ref is not None else None
        if model is None:
            model = ThreatModelManager.get(self._model_id)
            if model is not None:
                self._model_ref = weakref.ref(model)
        return model

    def _owner_model(self) -> Optional['ThreatModel']:
        return self.model
