"""DataFrame views over attribution results."""

from __future__ import annotations

from collections import abc

import pandas as pd

from .data import AttributionResult, Channel, Journey

__all__ = ["channel_credit", "results_frame"]

RESULT_COLUMNS = [
    "conversion_id",
    "touchpoint_id",
    "channel",
    "model",
    "weight",
    "attributed_value",
    "confidence_score",
    "validation_status",
    "calculated_at",
]


def _channel_label(channel: Channel | str) -> str:
    # Unknown channels stay plain strings until journey validation rejects them.
    return channel.value if isinstance(channel, Channel) else str(channel)


def results_frame(
    results: abc.Iterable[AttributionResult],
    journeys: abc.Iterable[Journey] = (),
) -> pd.DataFrame:
    """One row per result; ``channel`` is filled in from ``journeys`` when given."""
    channels = {
        (journey.conversion_id, touchpoint.id): _channel_label(touchpoint.channel)
        for journey in journeys
        for touchpoint in journey.touchpoints
    }
    rows = [
        {
            "conversion_id": result.conversion_id,
            "touchpoint_id": result.touchpoint_id,
            "channel": channels.get((result.conversion_id, result.touchpoint_id)),
            "model": result.model.value,
            "weight": result.weight,
            "attributed_value": result.attributed_value,
            "confidence_score": result.confidence_score,
            "validation_status": result.validation_status.value,
            "calculated_at": result.calculated_at,
        }
        for result in results
    ]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def channel_credit(frame: pd.DataFrame) -> pd.DataFrame:
    """Aggregate a :func:`results_frame` into credit per channel.

    ``attributed_conversions`` is the sum of weights, so each fully credited
    journey contributes exactly one conversion across its channels.
    """
    if frame.empty:
        return pd.DataFrame(
            columns=["channel", "attributed_conversions", "attributed_value", "share", "touchpoints"]
        )
    grouped = (
        frame.groupby("channel", dropna=False)
        .agg(
            attributed_conversions=("weight", "sum"),
            attributed_value=("attributed_value", "sum"),
            touchpoints=("touchpoint_id", "count"),
        )
        .reset_index()
    )
    total = grouped["attributed_conversions"].sum()
    grouped["share"] = grouped["attributed_conversions"] / total if total > 0 else 0.0
    grouped = grouped.sort_values("attributed_conversions", ascending=False, kind="stable")
    return grouped[
        ["channel", "attributed_conversions", "attributed_value", "share", "touchpoints"]
    ].reset_index(drop=True)
