"""Error taxonomy raised by the attribution engine."""

from __future__ import annotations

from collections import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .data import AttributionResult

__all__ = [
    "AttributionError",
    "CalculationError",
    "ConfigurationError",
    "FieldError",
    "NoValidResultsError",
    "ValidationError",
]


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single configuration problem, addressed by dotted field name."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class AttributionError(Exception):
    """Base class for every failure surfaced by the engine."""


class ConfigurationError(AttributionError):
    """The model configuration violates one of its invariants."""

    def __init__(self, message: str, *, errors: abc.Iterable[FieldError] = ()) -> None:
        super().__init__(message)
        self.errors: tuple[FieldError, ...] = tuple(errors)

    @classmethod
    def from_errors(cls, errors: abc.Iterable[FieldError]) -> ConfigurationError:
        collected = tuple(errors)
        summary = "; ".join(str(error) for error in collected)
        return cls(f"Invalid model configuration: {summary}", errors=collected)


class ValidationError(AttributionError):
    """Journey or touchpoint data is structurally invalid."""

    def __init__(self, message: str, *, problems: abc.Iterable[str] = ()) -> None:
        super().__init__(message)
        self.problems: tuple[str, ...] = tuple(problems)


class CalculationError(AttributionError):
    """A valid journey and configuration produced a degenerate distribution."""


class NoValidResultsError(AttributionError):
    """Calculation succeeded but nothing met the confidence floor."""

    def __init__(
        self,
        message: str,
        *,
        results: abc.Sequence[AttributionResult] = (),
        confidence_floor: float,
    ) -> None:
        super().__init__(message)
        self.results = tuple(results)
        self.confidence_floor = confidence_floor
