"""Per-call calculation context."""

from __future__ import annotations

import logging
from collections import abc
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .data import ensure_utc
from .settings import EngineSettings, get_settings

logger = logging.getLogger(__name__)

EventSink = abc.Callable[[str, abc.Mapping[str, Any]], None]

_WARNING_EVENTS = frozenset({"attribution.sla_exceeded", "attribution.batch_failure"})


@dataclass(frozen=True, slots=True)
class CalculationContext:
    """Everything a calculation needs besides the journey and configuration.

    ``now`` is the evaluation instant: future-timestamp checks, timeliness
    scoring and ``calculated_at`` all read it, so pinning it makes results
    reproducible.
    """

    settings: EngineSettings = field(default_factory=get_settings)
    now: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_sink: EventSink | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "now", ensure_utc(self.now))

    def emit(self, event: str, **fields: Any) -> None:
        """Record a structured observability event."""
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        logger.log(level, event, extra={"event": event, **fields})
        if self.event_sink is not None:
            self.event_sink(event, fields)
