"""Rule-based attribution algorithms.

Each model is a plain weighting function registered in :data:`ALGORITHMS`
under its :class:`~journey_credit.data.ModelType`. The shared pipeline in
:func:`calculate` takes care of what every model has in common: journey
validation, chronological ordering, window eligibility, normalisation,
confidence scoring and timing.

Ordering is a stable sort on timestamp, so touchpoints sharing a timestamp
keep their input order; for last-touch the later input of a tie wins.
"""

from __future__ import annotations

import logging
import math
import time
from collections import abc
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from . import confidence
from .context import CalculationContext
from .data import (
    AttributionResult,
    Journey,
    ModelConfiguration,
    ModelType,
    Touchpoint,
    ensure_utc,
)
from .errors import CalculationError
from .rules import parse_condition
from .validation import coerce_model_type, validate_journey

logger = logging.getLogger(__name__)

__all__ = [
    "ALGORITHMS",
    "Algorithm",
    "Allocation",
    "calculate",
    "custom_rules",
    "first_touch",
    "last_touch",
    "linear",
    "position_based",
    "time_decay",
]

FIRST_TOUCH_SHARE = 0.4
LAST_TOUCH_SHARE = 0.4
MIDDLE_TOUCH_SHARE = 0.2
SECONDS_PER_DAY = 86_400.0


@dataclass(slots=True)
class Allocation:
    """Raw (unnormalised) credit for the eligible touchpoints of a journey."""

    raw: np.ndarray
    parameters: dict[str, Any] = field(default_factory=dict)
    notes: list[dict[str, Any]] | None = None


Weigher = abc.Callable[[abc.Sequence[Touchpoint], ModelConfiguration, Journey], Allocation]
PositionScorer = abc.Callable[[int, int], float]


def _uniform_position(_index: int, _count: int) -> float:
    return confidence.CREDITED_POSITION_SCORE


def _first_position(index: int, _count: int) -> float:
    if index == 0:
        return confidence.CREDITED_POSITION_SCORE
    return confidence.UNCREDITED_POSITION_SCORE


def _last_position(index: int, count: int) -> float:
    if index == count - 1:
        return confidence.CREDITED_POSITION_SCORE
    return confidence.UNCREDITED_POSITION_SCORE


def first_touch(
    touchpoints: abc.Sequence[Touchpoint],
    _config: ModelConfiguration,
    _journey: Journey,
) -> Allocation:
    raw = np.zeros(len(touchpoints), dtype=float)
    raw[0] = 1.0
    return Allocation(raw=raw)


def last_touch(
    touchpoints: abc.Sequence[Touchpoint],
    _config: ModelConfiguration,
    _journey: Journey,
) -> Allocation:
    raw = np.zeros(len(touchpoints), dtype=float)
    raw[-1] = 1.0
    return Allocation(raw=raw)


def linear(
    touchpoints: abc.Sequence[Touchpoint],
    _config: ModelConfiguration,
    _journey: Journey,
) -> Allocation:
    count = len(touchpoints)
    return Allocation(raw=np.full(count, 1.0 / count), parameters={"equal_weight": 1.0 / count})


def time_decay(
    touchpoints: abc.Sequence[Touchpoint],
    config: ModelConfiguration,
    journey: Journey,
) -> Allocation:
    """Weight each touchpoint by ``2 ** (-days_before_conversion / half_life)``.

    The exponent is shifted by the smallest gap before exponentiating; the
    ratio between weights is unchanged and long journeys cannot underflow.
    """
    half_life = float(config.decay_half_life_days or 0)
    if not half_life > 0.0:
        msg = f"Time-decay needs a positive half-life, got {config.decay_half_life_days!r}."
        raise CalculationError(msg)
    conversion = journey.conversion_time
    days_before = np.array(
        [
            (conversion - ensure_utc(touchpoint.timestamp)).total_seconds() / SECONDS_PER_DAY
            for touchpoint in touchpoints
        ],
        dtype=float,
    )
    raw = np.exp2(-(days_before - days_before.min()) / half_life)
    return Allocation(
        raw=raw,
        parameters={"half_life_days": int(half_life), "decay_rate": math.log(2) / half_life},
        notes=[{"days_before_conversion": float(days)} for days in days_before],
    )


def _position_shares(count: int) -> np.ndarray:
    if count == 1:
        return np.ones(1)
    if count == 2:
        edge_total = FIRST_TOUCH_SHARE + LAST_TOUCH_SHARE
        return np.array([FIRST_TOUCH_SHARE / edge_total, LAST_TOUCH_SHARE / edge_total])
    shares = np.full(count, MIDDLE_TOUCH_SHARE / (count - 2))
    shares[0] = FIRST_TOUCH_SHARE
    shares[-1] = LAST_TOUCH_SHARE
    return shares


def _channel_multipliers(
    touchpoints: abc.Sequence[Touchpoint],
    config: ModelConfiguration,
) -> np.ndarray:
    return np.array([config.channel_weight(touchpoint.channel) for touchpoint in touchpoints])


def position_based(
    touchpoints: abc.Sequence[Touchpoint],
    config: ModelConfiguration,
    _journey: Journey,
) -> Allocation:
    """40/40/20 positional split scaled by the configured channel weights."""
    shares = _position_shares(len(touchpoints))
    multipliers = _channel_multipliers(touchpoints, config)
    return Allocation(
        raw=shares * multipliers,
        parameters={
            "first_share": FIRST_TOUCH_SHARE,
            "last_share": LAST_TOUCH_SHARE,
            "middle_share": MIDDLE_TOUCH_SHARE,
        },
        notes=[
            {"position_share": float(share), "channel_weight": float(multiplier)}
            for share, multiplier in zip(shares, multipliers, strict=True)
        ],
    )


def custom_rules(
    touchpoints: abc.Sequence[Touchpoint],
    config: ModelConfiguration,
    _journey: Journey,
) -> Allocation:
    """First matching rule sets the base weight; unmatched touchpoints get 1/N.

    The base weight is then scaled by the touchpoint's channel weight.
    """
    count = len(touchpoints)
    fallback = 1.0 / count
    rules = [
        (name, parse_condition(rule.condition), float(rule.weight))
        for name, rule in (config.custom_rules or {}).items()
    ]

    base = np.full(count, fallback)
    notes: list[dict[str, Any]] = []
    for index, touchpoint in enumerate(touchpoints):
        matched: str | None = None
        for name, condition, weight in rules:
            if condition.matches(touchpoint, index, count):
                base[index] = weight
                matched = name
                break
        notes.append({"matched_rule": matched})

    multipliers = _channel_multipliers(touchpoints, config)
    for note, multiplier in zip(notes, multipliers, strict=True):
        note["channel_weight"] = float(multiplier)
    return Allocation(
        raw=base * multipliers,
        parameters={"rule_count": len(rules), "fallback_weight": fallback},
        notes=notes,
    )


@dataclass(frozen=True, slots=True)
class Algorithm:
    weigh: Weigher
    position_score: PositionScorer = _uniform_position


ALGORITHMS: abc.Mapping[ModelType, Algorithm] = {
    ModelType.FIRST_TOUCH: Algorithm(first_touch, _first_position),
    ModelType.LAST_TOUCH: Algorithm(last_touch, _last_position),
    ModelType.LINEAR: Algorithm(linear),
    ModelType.TIME_DECAY: Algorithm(time_decay),
    ModelType.POSITION_BASED: Algorithm(position_based),
    ModelType.CUSTOM: Algorithm(custom_rules),
}


def _normalise(raw: np.ndarray, model: ModelType, tolerance: float) -> np.ndarray:
    total = float(raw.sum())
    if not math.isfinite(total) or total <= 0.0:
        msg = (
            f"The {model.value} model produced no creditable weight; every eligible "
            "touchpoint weighs 0 (check the configured channel weights and rules)."
        )
        raise CalculationError(msg)
    weights = raw / total
    drift = abs(float(weights.sum()) - 1.0)
    if drift > tolerance:
        msg = f"The {model.value} model drifted {drift:.2e} from a total weight of 1.0."
        raise CalculationError(msg)
    return weights


def calculate(
    journey: Journey,
    config: ModelConfiguration,
    context: CalculationContext,
) -> list[AttributionResult]:
    """Attribute ``journey`` under an already validated ``config``.

    Returns one result per input touchpoint, in chronological order, with
    weights summing to 1.0.

    Raises
    ------
    ValidationError
        When the journey itself is malformed.
    CalculationError
        When no touchpoint is eligible or every eligible weight is 0.
    """
    started = time.perf_counter()
    settings = context.settings
    model = coerce_model_type(config.model_type)
    if model is None:
        msg = f"Cannot calculate with unvalidated model type {config.model_type!r}."
        raise CalculationError(msg)
    algorithm = ALGORITHMS[model]

    chronological = validate_journey(journey, context.now)
    if not chronological:
        context.emit(
            "attribution.non_chronological",
            conversion_id=journey.conversion_id,
            model=model.value,
        )

    ordered = sorted(
        enumerate(journey.touchpoints),
        key=lambda pair: ensure_utc(pair[1].timestamp),
    )
    window = config.attribution_window
    eligible = [
        touchpoint
        for _, touchpoint in ordered
        if window is None or window.contains(touchpoint.timestamp)
    ]
    if not eligible:
        msg = (
            f"No touchpoint of journey {journey.conversion_id!r} falls inside the "
            "attribution window."
        )
        raise CalculationError(msg)

    if len(eligible) == 1:
        allocation = Allocation(raw=np.ones(1))
    else:
        allocation = algorithm.weigh(eligible, config, journey)
    weights = _normalise(allocation.raw, model, settings.weight_tolerance)
    logger.debug(
        "Allocated %s credit across %d of %d touchpoints for %s",
        model.value,
        len(eligible),
        len(ordered),
        journey.conversion_id,
    )

    eligible_rank = {touchpoint.id: rank for rank, touchpoint in enumerate(eligible)}
    scored: list[tuple[int, Touchpoint, float, float, dict[str, Any]]] = []
    for input_index, touchpoint in ordered:
        rank = eligible_rank.get(touchpoint.id)
        if rank is None:
            weight = 0.0
            position_score = confidence.UNCREDITED_POSITION_SCORE
            note: dict[str, Any] = {}
        else:
            weight = float(weights[rank])
            position_score = algorithm.position_score(rank, len(eligible))
            note = dict(allocation.notes[rank]) if allocation.notes and len(eligible) > 1 else {}
        confidence_score = confidence.score(
            touchpoint, position_score, now=context.now, settings=settings
        )
        note.update(input_index=input_index, in_window=rank is not None)
        scored.append((input_index, touchpoint, weight, confidence_score, note))

    elapsed = time.perf_counter() - started
    processing_ms = elapsed * 1000.0
    parameters = {
        "total_touchpoints": len(ordered),
        "eligible_touchpoints": len(eligible),
        **allocation.parameters,
    }
    results = [
        AttributionResult(
            touchpoint_id=touchpoint.id,
            conversion_id=journey.conversion_id,
            weight=weight,
            model=model,
            confidence_score=confidence_score,
            validation_status=confidence.validation_status(confidence_score, settings),
            calculated_at=context.now,
            attributed_value=weight * journey.conversion_value,
            metadata={
                "version": settings.model_version,
                "parameters": parameters,
                "chronological_index": chronological_index,
                "processing_time_ms": processing_ms,
                **note,
            },
        )
        for chronological_index, (_, touchpoint, weight, confidence_score, note) in enumerate(scored)
    ]

    context.emit(
        "attribution.calculated",
        conversion_id=journey.conversion_id,
        model=model.value,
        touchpoints=len(results),
        processing_ms=processing_ms,
    )
    if elapsed > settings.sla_seconds:
        context.emit(
            "attribution.sla_exceeded",
            conversion_id=journey.conversion_id,
            model=model.value,
            processing_ms=processing_ms,
            sla_seconds=settings.sla_seconds,
        )
    return results
