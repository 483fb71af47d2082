"""Configuration and journey validation.

Both checks are pass/fail: nothing here rewrites or normalises its input.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from numbers import Real

from .data import Channel, Journey, ModelConfiguration, ModelType, ensure_utc
from .errors import ConfigurationError, FieldError, ValidationError
from .rules import ConditionSyntaxError, parse_condition
from .settings import EngineSettings, get_settings

logger = logging.getLogger(__name__)

__all__ = [
    "ValidationOutcome",
    "coerce_model_type",
    "validate_configuration",
    "validate_journey",
]

_WEIGHTED_MODELS = frozenset({ModelType.POSITION_BASED, ModelType.CUSTOM})


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Result of :func:`validate_configuration`; valid when ``errors`` is empty."""

    errors: tuple[FieldError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ConfigurationError.from_errors(self.errors)


def coerce_model_type(raw: ModelType | str) -> ModelType | None:
    if isinstance(raw, ModelType):
        return raw
    try:
        return ModelType(raw)
    except ValueError:
        return None


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _is_integer(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_configuration(
    config: ModelConfiguration,
    settings: EngineSettings | None = None,
) -> ValidationOutcome:
    """Check every invariant of ``config`` and collect all violations."""
    settings = settings or get_settings()
    errors: list[FieldError] = []

    model_type = coerce_model_type(config.model_type)
    if model_type is None:
        known = ", ".join(model.value for model in ModelType)
        errors.append(
            FieldError("model_type", f"Unknown model type {config.model_type!r}; expected one of {known}.")
        )

    errors.extend(_check_window(config, settings))
    errors.extend(_check_channel_weights(config, model_type, settings))
    errors.extend(_check_half_life(config, model_type, settings))
    errors.extend(_check_custom_rules(config))

    if errors:
        logger.debug("Rejected model configuration with %d error(s)", len(errors))
    return ValidationOutcome(errors=tuple(errors))


def _check_window(config: ModelConfiguration, settings: EngineSettings) -> list[FieldError]:
    window = config.attribution_window
    if window is None:
        return [FieldError("attribution_window", "Attribution window with start and end is required.")]
    if window.span < timedelta(0):
        return [FieldError("attribution_window.end", "Window end must not be before its start.")]
    limit = timedelta(days=settings.max_window_days)
    if window.span > limit:
        return [
            FieldError(
                "attribution_window",
                f"Attribution window cannot exceed {settings.max_window_days} days "
                f"(got {window.span.total_seconds() / 86400:.2f}).",
            )
        ]
    return []


def _check_channel_weights(
    config: ModelConfiguration,
    model_type: ModelType | None,
    settings: EngineSettings,
) -> list[FieldError]:
    weights = config.channel_weights
    if model_type is not None and model_type not in _WEIGHTED_MODELS:
        if weights is not None:
            return [
                FieldError(
                    "channel_weights",
                    f"Channel weights are not accepted by the {model_type.value} model.",
                )
            ]
        return []
    if weights is None:
        if model_type is None:
            return []
        return [FieldError("channel_weights", f"The {model_type.value} model requires channel weights.")]
    if not weights:
        return [FieldError("channel_weights", "At least one channel weight is required.")]

    errors: list[FieldError] = []
    for channel, weight in weights.items():
        label = channel.value if isinstance(channel, Channel) else str(channel)
        if not isinstance(channel, Channel):
            errors.append(FieldError(f"channel_weights.{label}", f"Unknown channel {label!r}."))
        if not _is_number(weight):
            errors.append(FieldError(f"channel_weights.{label}", f"Weight {weight!r} is not a number."))
        elif not 0.0 <= weight <= 1.0:
            errors.append(
                FieldError(f"channel_weights.{label}", f"Weight {weight} is outside [0, 1].")
            )
    if errors:
        return errors

    total = math.fsum(weights.values())
    if abs(total - 1.0) > settings.weight_tolerance:
        return [
            FieldError(
                "channel_weights",
                f"Channel weights must sum to 1.0 within {settings.weight_tolerance:g}; got {total:.6f}.",
            )
        ]
    return []


def _check_half_life(
    config: ModelConfiguration,
    model_type: ModelType | None,
    settings: EngineSettings,
) -> list[FieldError]:
    half_life = config.decay_half_life_days
    if model_type is None:
        return []
    if model_type is not ModelType.TIME_DECAY:
        if half_life is not None:
            return [
                FieldError(
                    "decay_half_life_days",
                    f"Decay half-life is only accepted by the time-decay model, not {model_type.value}.",
                )
            ]
        return []
    if half_life is None:
        return [FieldError("decay_half_life_days", "Decay half-life is required for the time-decay model.")]
    if not _is_integer(half_life):
        return [FieldError("decay_half_life_days", f"Decay half-life must be an integer, got {half_life!r}.")]
    low, high = settings.min_half_life_days, settings.max_half_life_days
    if not low <= half_life <= high:
        return [
            FieldError(
                "decay_half_life_days",
                f"Decay half-life must be between {low} and {high} days, got {half_life}.",
            )
        ]
    return []


def _check_custom_rules(config: ModelConfiguration) -> list[FieldError]:
    if not config.custom_rules:
        return []
    errors: list[FieldError] = []
    for name, rule in config.custom_rules.items():
        try:
            parse_condition(rule.condition)
        except ConditionSyntaxError as exc:
            errors.append(FieldError(f"custom_rules.{name}.condition", str(exc)))
        field = f"custom_rules.{name}.weight"
        if not _is_number(rule.weight):
            errors.append(FieldError(field, f"Weight {rule.weight!r} is not a number."))
        elif not 0.0 <= rule.weight <= 1.0:
            errors.append(FieldError(field, f"Weight {rule.weight} is outside [0, 1]."))
    return errors


def validate_journey(journey: Journey, now: datetime) -> bool:
    """Reject structurally invalid journeys.

    Returns whether the touchpoints arrived in chronological order; that is
    only a warning, algorithms sort their own copy anyway.

    Raises
    ------
    ValidationError
        On an empty journey, a touchpoint without id, timestamp or a known
        channel, a timestamp after ``now`` or after the conversion, or
        duplicated touchpoint ids.
    """
    if not journey.touchpoints:
        msg = f"Journey {journey.conversion_id!r} has no touchpoints."
        raise ValidationError(msg, problems=(msg,))

    now = ensure_utc(now)
    problems: list[str] = []
    complete = True
    for index, touchpoint in enumerate(journey.touchpoints):
        if not touchpoint.id:
            problems.append(f"Touchpoint at index {index} is missing an id.")
        if not isinstance(touchpoint.channel, Channel):
            problems.append(f"Touchpoint at index {index} has no known channel ({touchpoint.channel!r}).")
        if not isinstance(touchpoint.timestamp, datetime):
            problems.append(f"Touchpoint at index {index} is missing a timestamp.")
            complete = False
        elif ensure_utc(touchpoint.timestamp) > now:
            problems.append(f"Touchpoint {touchpoint.id!r} is timestamped in the future.")
        if touchpoint.value is not None and (not _is_number(touchpoint.value) or touchpoint.value < 0):
            problems.append(f"Touchpoint {touchpoint.id!r} has a negative or non-numeric value.")

    duplicates = sorted(
        touchpoint_id
        for touchpoint_id, count in Counter(tp.id for tp in journey.touchpoints if tp.id).items()
        if count > 1
    )
    if duplicates:
        problems.append(f"Duplicate touchpoint ids: {', '.join(duplicates)}.")

    if complete and journey.converted_at is not None:
        conversion = ensure_utc(journey.converted_at)
        late = [tp.id for tp in journey.touchpoints if ensure_utc(tp.timestamp) > conversion]
        if late:
            problems.append(f"Touchpoints after the conversion: {', '.join(late)}.")

    if problems:
        msg = f"Journey {journey.conversion_id!r} failed validation: {' '.join(problems)}"
        raise ValidationError(msg, problems=problems)

    return journey.is_chronological()
