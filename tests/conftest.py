"""Shared fixtures for the attribution engine tests."""

from __future__ import annotations

from typing import Any

import pytest
from helpers import NOW

from journey_credit import CalculationContext, EngineSettings


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(_env_file=None)


@pytest.fixture
def events() -> list[tuple[str, dict[str, Any]]]:
    return []


@pytest.fixture
def context(
    settings: EngineSettings, events: list[tuple[str, dict[str, Any]]]
) -> CalculationContext:
    return CalculationContext(
        settings=settings,
        now=NOW,
        event_sink=lambda event, fields: events.append((event, dict(fields))),
    )
