"""Change notification and dirty tracking shared by every model object."""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)


class Event:
    """An ordered list of handlers invoked with the same arguments."""

    def __init__(self, name: str = ''):
        self.name = name
        self._handlers: list[Callable] = []

    def subscribe(self, handler: Callable) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: Callable) -> bool:
        try:
            self._handlers.remove(handler)
            return True
        except ValueError:
            return False

    def fire(self, *args) -> None:
        for handler in list(self._handlers):
            handler(*args)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f'<Event {self.name or "?"} handlers={len(self._handlers)}>'


class DirtyTracker:
    """
    Nestable suspension of dirty marking.

    Every suspend() must be paired with a resume(); marking is enabled again
    only when the outermost suspension is resumed.
    """

    def __init__(self):
        self._depth = 0

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def suspended(self) -> bool:
        return self._depth > 0

    def suspend(self) -> None:
        self._depth += 1

    def resume(self) -> None:
        if self._depth == 0:
            logger.warning("Dirty tracking resumed without a matching suspend")
            return
        self._depth -= 1

    @contextmanager
    def paused(self) -> Iterator['DirtyTracker']:
        self.suspend()
        try:
            yield self
        finally:
            self.resume()


dirty_tracking = DirtyTracker()


class Observable:
    """Base for objects that announce field changes and dirty their model."""

    def __init__(self):
        self.changed = Event('changed')

    def _owner_model(self) -> Optional['Observable']:
        return None

    def _notify_changed(self, field: str) -> None:
        self.changed.fire(self, field)
        self._mark_dirty()

    def _mark_dirty(self) -> None:
        model = self._owner_model()
        if model is not None:
            model.mark_dirty()
