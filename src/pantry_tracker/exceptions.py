"""Exceptions raised by the inventory engine."""

from dataclasses import dataclass
from uuid import UUID


class PantryError(Exception):
    """Base class for all inventory engine errors."""


class ValidationError(PantryError):
    """Raised for malformed input such as a non-positive quantity or empty unit."""


class NotFoundError(PantryError):
    """Raised when an item, food, recipe or list is unknown or not owned by the caller."""

    def __init__(self, kind: str, identifier: UUID | str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


@dataclass(frozen=True)
class Shortage:
    """Missing stock for one food."""

    food_id: str
    required: float
    available: float

    @property
    def missing(self) -> float:
        return round(self.required - self.available, 6)


class InsufficientStockError(PantryError):
    """Raised when requested usage exceeds available stock.

    Carries one ``Shortage`` per food that could not be covered. Operations
    raising this error leave inventory untouched.
    """

    def __init__(self, shortages: list[Shortage]):
        self.shortages = shortages
        details = ", ".join(
            f"{s.food_id} (required {s.required:g}, available {s.available:g})"
            for s in shortages
        )
        super().__init__(f"Insufficient stock: {details}")


class ConflictError(PantryError):
    """Raised when a concurrent mutation invalidated an in-flight update."""


class PersistenceError(PantryError):
    """Raised when the underlying store fails."""
