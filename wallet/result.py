from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class AdapterResult(Generic[T]):
    """
    Outcome of a call to an external collaborator.

    Adapters never raise into chat handlers; they hand back either a value or
    an error string and the caller decides what to fall back to.
    """

    ok: bool
    value: T | None = None
    error: str | None = None
    source: str | None = None

    @classmethod
    def success(cls, value: T, *, source: str | None = None) -> "AdapterResult[T]":
        return cls(ok=True, value=value, source=source)

    @classmethod
    def failure(cls, error: str, *, source: str | None = None) -> "AdapterResult[Any]":
        return cls(ok=False, error=error, source=source)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok and self.value is not None else default
