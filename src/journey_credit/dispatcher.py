"""Model dispatch: validate, calculate, filter."""

from __future__ import annotations

import logging
from collections import abc
from dataclasses import dataclass, field

from .algorithms import ALGORITHMS, calculate
from .context import CalculationContext
from .data import AttributionResult, Journey, ModelConfiguration
from .errors import AttributionError, NoValidResultsError
from .validation import coerce_model_type, validate_configuration

logger = logging.getLogger(__name__)

__all__ = ["BatchOutcome", "run", "run_batch"]


def run(
    journey: Journey,
    config: ModelConfiguration,
    context: CalculationContext | None = None,
    *,
    confidence_floor: float | None = None,
) -> list[AttributionResult]:
    """Attribute a single journey and keep the results meeting the floor.

    Parameters
    ----------
    journey:
        The touchpoints leading to one conversion.
    config:
        Model configuration; it is validated before anything is computed.
    context:
        Settings, evaluation clock and event sink. A fresh context with the
        current time is used when omitted.
    confidence_floor:
        Minimum ``confidence_score`` a result needs to be returned. Defaults
        to ``settings.confidence_floor``; pass ``0.0`` to keep every result.

    Raises
    ------
    ConfigurationError
        When ``config`` is invalid; no calculation is attempted.
    ValidationError, CalculationError
        Propagated unchanged from the algorithm.
    NoValidResultsError
        When no result meets ``confidence_floor``.
    """
    context = context or CalculationContext()
    validate_configuration(config, context.settings).raise_for_errors()

    model = coerce_model_type(config.model_type)
    if model is None or model not in ALGORITHMS:
        msg = f"No algorithm registered for validated model type {config.model_type!r}."
        raise RuntimeError(msg)

    results = calculate(journey, config, context)

    floor = context.settings.confidence_floor if confidence_floor is None else confidence_floor
    kept = [result for result in results if result.confidence_score >= floor]
    if not kept:
        msg = (
            f"None of the {len(results)} result(s) for journey {journey.conversion_id!r} "
            f"reached the confidence floor of {floor:.2f}."
        )
        raise NoValidResultsError(msg, results=results, confidence_floor=floor)
    if len(kept) < len(results):
        logger.debug(
            "Dropped %d low-confidence result(s) for %s",
            len(results) - len(kept),
            journey.conversion_id,
        )
    return kept


@dataclass(slots=True)
class BatchOutcome:
    """Per-journey results and failures of :func:`run_batch`."""

    results: dict[str, list[AttributionResult]] = field(default_factory=dict)
    failures: dict[str, AttributionError] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def all_results(self) -> list[AttributionResult]:
        return [result for results in self.results.values() for result in results]


def run_batch(
    journeys: abc.Iterable[Journey],
    config: ModelConfiguration,
    context: CalculationContext | None = None,
    *,
    confidence_floor: float | None = None,
) -> BatchOutcome:
    """Run :func:`run` for each journey independently.

    A journey that fails is recorded in ``failures`` and the batch moves on.
    An invalid configuration fails every journey the same way, so it is
    raised once up front instead.
    """
    context = context or CalculationContext()
    validate_configuration(config, context.settings).raise_for_errors()

    outcome = BatchOutcome()
    for journey in journeys:
        try:
            outcome.results[journey.conversion_id] = run(
                journey, config, context, confidence_floor=confidence_floor
            )
        except AttributionError as exc:
            outcome.failures[journey.conversion_id] = exc
            context.emit(
                "attribution.batch_failure",
                conversion_id=journey.conversion_id,
                error=type(exc).__name__,
                detail=str(exc),
            )
    logger.info("Batch finished: %d succeeded, %d failed", outcome.succeeded, outcome.failed)
    return outcome
