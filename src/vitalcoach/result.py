"""Result type for operations that degrade instead of raising."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    """Result of an operation that never raises to its caller.

    Attributes:
        value: The computed value, or the fallback default when degraded.
        degraded: True when an error was swallowed and the value is a default.
        error: Description of the swallowed error, if any.
        metadata: Optional extra details (timings, status tags).
    """

    value: T
    degraded: bool = False
    error: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        """True when the value was computed without falling back."""
        return not self.degraded

    @classmethod
    def success(cls, value: T, **metadata: Any) -> "Outcome[T]":
        return cls(value=value, metadata=metadata or None)

    @classmethod
    def fallback(cls, value: T, error: BaseException | str, **metadata: Any) -> "Outcome[T]":
        return cls(value=value, degraded=True, error=str(error), metadata=metadata or None)
