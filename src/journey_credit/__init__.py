"""Rule-based multi-touch attribution engine."""

from .algorithms import ALGORITHMS, calculate
from .context import CalculationContext
from .data import (
    AttributionResult,
    AttributionWindow,
    Channel,
    CustomRule,
    Journey,
    JourneyMetrics,
    ModelConfiguration,
    ModelType,
    Touchpoint,
    ValidationStatus,
)
from .dispatcher import BatchOutcome, run, run_batch
from .errors import (
    AttributionError,
    CalculationError,
    ConfigurationError,
    FieldError,
    NoValidResultsError,
    ValidationError,
)
from .loading import load_journeys
from .settings import EngineSettings, get_settings
from .validation import ValidationOutcome, validate_configuration, validate_journey

__all__ = [
    "ALGORITHMS",
    "AttributionError",
    "AttributionResult",
    "AttributionWindow",
    "BatchOutcome",
    "CalculationContext",
    "CalculationError",
    "Channel",
    "ConfigurationError",
    "CustomRule",
    "EngineSettings",
    "FieldError",
    "Journey",
    "JourneyMetrics",
    "ModelConfiguration",
    "ModelType",
    "NoValidResultsError",
    "Touchpoint",
    "ValidationError",
    "ValidationOutcome",
    "ValidationStatus",
    "calculate",
    "get_settings",
    "load_journeys",
    "run",
    "run_batch",
    "validate_configuration",
    "validate_journey",
]
