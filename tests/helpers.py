"""Builders for journeys, touchpoints and configurations used across tests."""

from __future__ import annotations

from collections import abc
from datetime import UTC, datetime, timedelta
from typing import Any

from journey_credit import (
    AttributionWindow,
    Channel,
    CustomRule,
    Journey,
    ModelConfiguration,
    ModelType,
    Touchpoint,
)

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


def make_touchpoint(
    touchpoint_id: str,
    days_ago: float,
    channel: Channel = Channel.PAID_SEARCH,
    *,
    position: Any = 0,
    source: Any = "google",
    value: float | None = None,
    **metadata: Any,
) -> Touchpoint:
    meta: dict[str, Any] = dict(metadata)
    if source is not None:
        meta["source"] = source
    if position is not None:
        meta["position"] = position
    return Touchpoint(
        id=touchpoint_id,
        channel=channel,
        timestamp=NOW - timedelta(days=days_ago),
        value=value,
        metadata=meta,
    )


def make_journey(
    *touchpoints: Touchpoint,
    conversion_id: str = "conv-1",
    converted_at: datetime | None = None,
    conversion_value: float = 0.0,
) -> Journey:
    return Journey(
        conversion_id=conversion_id,
        touchpoints=tuple(touchpoints),
        converted_at=converted_at,
        conversion_value=conversion_value,
    )


def make_config(
    model_type: ModelType | str,
    *,
    window_days: float = 30,
    channel_weights: abc.Mapping[Channel | str, float] | None = None,
    decay_half_life_days: Any = None,
    custom_rules: abc.Mapping[str, CustomRule] | None = None,
) -> ModelConfiguration:
    return ModelConfiguration(
        model_type=model_type,
        attribution_window=AttributionWindow(start=NOW - timedelta(days=window_days), end=NOW),
        channel_weights=channel_weights,
        decay_half_life_days=decay_half_life_days,
        custom_rules=custom_rules,
    )


def three_step_journey(**kwargs: Any) -> Journey:
    """T1(t=0), T2(t=1), T3(t=2) measured in days from the first touch."""
    return make_journey(
        make_touchpoint("t1", 3, Channel.DISPLAY, position=0),
        make_touchpoint("t2", 2, Channel.EMAIL_MARKETING, position=1),
        make_touchpoint("t3", 1, Channel.PAID_SEARCH, position=2),
        **kwargs,
    )


def weights_by_id(results: abc.Iterable[Any]) -> dict[str, float]:
    return {result.touchpoint_id: result.weight for result in results}


