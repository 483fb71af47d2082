"""Shared data structures for journey attribution."""

from __future__ import annotations

from collections import abc
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from itertools import pairwise
from types import MappingProxyType
from typing import Any

from .errors import ConfigurationError, FieldError

__all__ = [
    "AttributionResult",
    "AttributionWindow",
    "Channel",
    "CustomRule",
    "Journey",
    "JourneyMetrics",
    "ModelConfiguration",
    "ModelType",
    "Touchpoint",
    "ValidationStatus",
    "ensure_utc",
]


class Channel(str, Enum):
    SOCIAL_ORGANIC = "social-organic"
    SOCIAL_PAID = "social-paid"
    EMAIL_MARKETING = "email-marketing"
    PAID_SEARCH = "paid-search"
    ORGANIC_SEARCH = "organic-search"
    DIRECT = "direct"
    REFERRAL = "referral"
    DISPLAY = "display"
    VIDEO = "video"
    AFFILIATE = "affiliate"
    CONTENT_SYNDICATION = "content-syndication"


class ModelType(str, Enum):
    FIRST_TOUCH = "first-touch"
    LAST_TOUCH = "last-touch"
    LINEAR = "linear"
    TIME_DECAY = "time-decay"
    POSITION_BASED = "position-based"
    CUSTOM = "custom"


class ValidationStatus(str, Enum):
    VALID = "valid"
    PARTIAL = "partial"
    INVALID = "invalid"


def ensure_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime (naive values are read as UTC)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class Touchpoint:
    """A single marketing exposure within a journey."""

    id: str
    channel: Channel
    timestamp: datetime
    value: float | None = None
    metadata: abc.Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def source(self) -> Any:
        return self.metadata.get("source")

    @property
    def position(self) -> Any:
        return self.metadata.get("position")


@dataclass(frozen=True, slots=True)
class JourneyMetrics:
    touchpoint_count: int
    average_time_gap: timedelta
    total_duration: timedelta
    channel_diversity: int


@dataclass(frozen=True, slots=True)
class Journey:
    """Touchpoints leading to one conversion.

    ``touchpoints`` keeps the order the collaborator supplied; algorithms sort
    their own copy. ``converted_at`` defaults to the latest touchpoint.
    """

    conversion_id: str
    touchpoints: tuple[Touchpoint, ...]
    converted_at: datetime | None = None
    conversion_value: float = 0.0

    def __len__(self) -> int:
        return len(self.touchpoints)

    @property
    def conversion_time(self) -> datetime:
        if self.converted_at is not None:
            return ensure_utc(self.converted_at)
        if not self.touchpoints:
            msg = "An empty journey has no conversion time."
            raise ValueError(msg)
        return max(ensure_utc(touchpoint.timestamp) for touchpoint in self.touchpoints)

    def is_chronological(self) -> bool:
        stamps = [ensure_utc(touchpoint.timestamp) for touchpoint in self.touchpoints]
        return all(earlier <= later for earlier, later in pairwise(stamps))

    def metrics(self) -> JourneyMetrics:
        stamps = sorted(
            ensure_utc(touchpoint.timestamp)
            for touchpoint in self.touchpoints
            if isinstance(touchpoint.timestamp, datetime)
        )
        if len(stamps) < 2:
            duration = timedelta(0)
            average_gap = timedelta(0)
        else:
            duration = stamps[-1] - stamps[0]
            average_gap = duration / (len(stamps) - 1)
        return JourneyMetrics(
            touchpoint_count=len(self.touchpoints),
            average_time_gap=average_gap,
            total_duration=duration,
            channel_diversity=len({touchpoint.channel for touchpoint in self.touchpoints}),
        )


@dataclass(frozen=True, slots=True)
class AttributionWindow:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return ensure_utc(self.start) <= ensure_utc(moment) <= ensure_utc(self.end)

    @property
    def span(self) -> timedelta:
        return ensure_utc(self.end) - ensure_utc(self.start)


@dataclass(frozen=True, slots=True)
class CustomRule:
    condition: str
    weight: float


@dataclass(frozen=True, slots=True)
class ModelConfiguration:
    """How credit should be computed for a journey.

    Instances are plain carriers: nothing here is checked until the
    configuration passes through :func:`journey_credit.validation.validate_configuration`.
    ``model_type`` may hold an unrecognised string so that the validator can
    report it.
    """

    model_type: ModelType | str
    attribution_window: AttributionWindow | None
    channel_weights: abc.Mapping[Channel | str, float] | None = None
    decay_half_life_days: int | None = None
    custom_rules: abc.Mapping[str, CustomRule] | None = None

    def __post_init__(self) -> None:
        # Known channel names given as plain strings become Channel keys;
        # unknown names stay strings for the validator to report.
        if isinstance(self.channel_weights, abc.Mapping):
            coerced = {_coerce_channel(name): weight for name, weight in self.channel_weights.items()}
            object.__setattr__(self, "channel_weights", coerced)

    @classmethod
    def from_mapping(cls, raw: abc.Mapping[str, Any]) -> ModelConfiguration:
        """Build a configuration from a JSON-like mapping.

        Accepts both ``snake_case`` and ``camelCase`` keys. Values are carried
        over as-is so the validator sees exactly what the caller sent.
        """

        def pick(*names: str) -> Any:
            for name in names:
                if name in raw:
                    return raw[name]
            return None

        model_raw = pick("model_type", "modelType", "model")
        try:
            model_type: ModelType | str = ModelType(model_raw)
        except ValueError:
            model_type = str(model_raw)

        window_raw = pick("attribution_window", "attributionWindow") or {}
        start = _parse_datetime(window_raw.get("start") or window_raw.get("startDate"), "start")
        end = _parse_datetime(window_raw.get("end") or window_raw.get("endDate"), "end")
        window = None if start is None or end is None else AttributionWindow(start=start, end=end)

        weights_raw = pick("channel_weights", "channelWeights")
        channel_weights = None if weights_raw is None else dict(weights_raw)

        rules_raw = pick("custom_rules", "customRules")
        custom_rules = None
        if rules_raw is not None:
            custom_rules = {
                name: CustomRule(condition=rule.get("condition", ""), weight=rule.get("weight"))
                for name, rule in rules_raw.items()
            }

        return cls(
            model_type=model_type,
            attribution_window=window,
            channel_weights=channel_weights,
            decay_half_life_days=pick("decay_half_life_days", "decayHalfLifeDays"),
            custom_rules=custom_rules,
        )

    def channel_weight(self, channel: Channel) -> float:
        """Configured weight for ``channel``; channels left out weigh 0."""
        if not self.channel_weights:
            return 0.0
        return float(self.channel_weights.get(channel, 0.0))


@dataclass(frozen=True, slots=True)
class AttributionResult:
    touchpoint_id: str
    conversion_id: str
    weight: float
    model: ModelType
    confidence_score: float
    validation_status: ValidationStatus
    calculated_at: datetime
    attributed_value: float = 0.0
    metadata: abc.Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


def _coerce_channel(raw: Channel | str) -> Channel | str:
    try:
        return Channel(raw)
    except ValueError:
        return raw


def _parse_datetime(raw: datetime | str | None, bound: str) -> datetime | None:
    if raw is None or isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError as exc:
        msg = f"Attribution window {bound} is not an ISO-8601 timestamp: {raw!r}"
        raise ConfigurationError(
            msg, errors=(FieldError(f"attribution_window.{bound}", msg),)
        ) from exc
