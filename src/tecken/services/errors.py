"""Errors and typed failure outcomes."""
from dataclasses import dataclass
from datetime import UTC, datetime


class TeckenError(Exception):
    """Base class for engine errors."""


class PersistenceError(TeckenError):
    """A progress backend failed to load or save."""


@dataclass(frozen=True)
class InsufficientItems:
    """A practice mode needs more items than the user has marked."""
    mode: str
    required: int
    available: int
    degradable: bool = False  # True if a smaller session may be offered instead

    @property
    def message(self) -> str:
        return (
            f"This exercise needs at least {self.required} words marked as "
            f"'learning' or 'learned', but only {self.available} are available."
        )


@dataclass(frozen=True)
class PersistenceWarning:
    """A write failed; in-memory progress stays authoritative."""
    operation: str
    error: str
    occurred_at: datetime

    @classmethod
    def from_exception(cls, operation: str, exc: Exception) -> "PersistenceWarning":
        return cls(operation=operation, error=str(exc), occurred_at=datetime.now(UTC))
