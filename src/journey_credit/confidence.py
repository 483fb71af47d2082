"""Per-result confidence scoring."""

from __future__ import annotations

from datetime import datetime, timedelta

from .data import Touchpoint, ValidationStatus, ensure_utc
from .settings import EngineSettings

__all__ = [
    "CREDITED_POSITION_SCORE",
    "UNCREDITED_POSITION_SCORE",
    "metadata_completeness",
    "score",
    "timeliness",
    "validation_status",
]

METADATA_FACTOR = 0.4
TIMELINESS_FACTOR = 0.3
POSITION_FACTOR = 0.3

CREDITED_POSITION_SCORE = 1.0
UNCREDITED_POSITION_SCORE = 0.5


def metadata_completeness(touchpoint: Touchpoint) -> float:
    """1.0 when ``source`` is a non-empty string and ``position`` an integer."""
    source = touchpoint.source
    position = touchpoint.position
    has_source = isinstance(source, str) and bool(source)
    has_position = isinstance(position, int) and not isinstance(position, bool)
    return 1.0 if has_source and has_position else 0.0


def timeliness(timestamp: datetime, now: datetime, horizon_days: int) -> float:
    """Linear decay from 1.0 (now) to 0.0 at ``horizon_days`` of age."""
    age = ensure_utc(now) - ensure_utc(timestamp)
    return max(0.0, 1.0 - age / timedelta(days=horizon_days))


def score(
    touchpoint: Touchpoint,
    position_score: float,
    *,
    now: datetime,
    settings: EngineSettings,
) -> float:
    """Composite confidence in [0, 1].

    Parameters
    ----------
    touchpoint:
        The touchpoint the result belongs to.
    position_score:
        The model's positional confidence for this touchpoint, see
        :data:`CREDITED_POSITION_SCORE` and :data:`UNCREDITED_POSITION_SCORE`.
    now:
        Evaluation instant used for timeliness.
    settings:
        Supplies the timeliness horizon.
    """
    composite = (
        METADATA_FACTOR * metadata_completeness(touchpoint)
        + TIMELINESS_FACTOR * timeliness(touchpoint.timestamp, now, settings.timeliness_horizon_days)
        + POSITION_FACTOR * position_score
    )
    return min(max(composite, 0.0), 1.0)


def validation_status(confidence_score: float, settings: EngineSettings) -> ValidationStatus:
    if confidence_score >= settings.confidence_floor:
        return ValidationStatus.VALID
    if confidence_score >= settings.partial_floor:
        return ValidationStatus.PARTIAL
    return ValidationStatus.INVALID
