"""Exceptions raised by the threat model engine."""

from typing import Iterable


class ThreatsManagerError(Exception):
    """Base class for all engine errors."""
    pass


class DuplicationValidationError(ThreatsManagerError):
    """Raised when a duplication definition is not closed over its dependencies."""

    def __init__(self, reasons: Iterable[str]):
        self.reasons = list(reasons)
        details = '\n'.join(f'  - {reason}' for reason in self.reasons)
        super().__init__(f"Invalid duplication definition:\n{details}")


class ReadOnlyPropertyError(ThreatsManagerError):
    """Raised when a value is written to a read-only property."""

    def __init__(self, property_name: str):
        self.property_name = property_name
        super().__init__(f"Property '{property_name}' is read-only")
