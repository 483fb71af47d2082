"""Command line interface for the attribution credit report."""

from __future__ import annotations

import argparse
import json
import logging
from collections import abc
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from journey_credit import (
    AttributionWindow,
    CalculationContext,
    Channel,
    CustomRule,
    ModelConfiguration,
    ModelType,
    get_settings,
    load_journeys,
    run_batch,
)

from .report import CreditReport

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CLIArgs:
    """Typed container for parsed CLI arguments."""

    input_csv: Path
    output: Path
    model: ModelType
    half_life: int | None
    channel_weights: dict[Channel | str, float] | None
    rules: Path | None
    window_days: int
    confidence_floor: float | None
    top_channels: int
    log_level: str


def _channel_weight(raw: str) -> tuple[str, float]:
    name, separator, weight = raw.partition("=")
    if not separator:
        msg = f"Expected CHANNEL=WEIGHT, got {raw!r}."
        raise argparse.ArgumentTypeError(msg)
    try:
        return name.strip(), float(weight)
    except ValueError as exc:
        msg = f"Weight for {name!r} is not a number: {weight!r}."
        raise argparse.ArgumentTypeError(msg) from exc


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate an attribution credit report.")
    _ = parser.add_argument(
        "input_csv",
        type=Path,
        help="Path to the CSV file with one row per touchpoint.",
    )
    _ = parser.add_argument(
        "--output",
        type=Path,
        default=Path("reports/credit_report.md"),
        help="Output path for the generated Markdown report.",
    )
    _ = parser.add_argument(
        "--model",
        choices=[model.value for model in ModelType],
        default=ModelType.LINEAR.value,
        help="Attribution model to apply.",
    )
    _ = parser.add_argument(
        "--half-life",
        type=int,
        default=None,
        help="Decay half-life in days (time-decay model only).",
    )
    _ = parser.add_argument(
        "--channel-weight",
        type=_channel_weight,
        action="append",
        default=None,
        metavar="CHANNEL=WEIGHT",
        help="Channel weight for position-based and custom models; repeat per channel.",
    )
    _ = parser.add_argument(
        "--rules",
        type=Path,
        default=None,
        help="JSON file mapping rule names to {condition, weight} (custom model only).",
    )
    _ = parser.add_argument(
        "--window-days",
        type=int,
        default=get_settings().max_window_days,
        help="Attribution window length, ending now.",
    )
    _ = parser.add_argument(
        "--confidence-floor",
        type=float,
        default=None,
        help="Minimum confidence a result needs to be counted.",
    )
    _ = parser.add_argument(
        "--top-channels",
        type=int,
        default=25,
        help="Number of channels to display in the summary table.",
    )
    _ = parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser


def parse_arguments(argv: abc.Sequence[str] | None = None) -> CLIArgs:
    parser = build_argument_parser()
    if argv is not None and not isinstance(argv, abc.Sequence):
        msg = "argv must be a sequence of strings."
        raise TypeError(msg)
    namespace = parser.parse_args(argv)
    channel_weights = None
    if namespace.channel_weight:
        channel_weights = {}
        for name, weight in namespace.channel_weight:
            try:
                channel_weights[Channel(name)] = weight
            except ValueError:
                channel_weights[name] = weight
    return CLIArgs(
        input_csv=Path(namespace.input_csv),
        output=Path(namespace.output),
        model=ModelType(namespace.model),
        half_life=namespace.half_life,
        channel_weights=channel_weights,
        rules=namespace.rules,
        window_days=int(namespace.window_days),
        confidence_floor=namespace.confidence_floor,
        top_channels=int(namespace.top_channels),
        log_level=str(namespace.log_level),
    )


def load_rules(path: Path) -> dict[str, CustomRule]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        msg = f"{path} must contain a JSON object of rules."
        raise TypeError(msg)
    return {
        name: CustomRule(condition=rule.get("condition", ""), weight=rule.get("weight"))
        for name, rule in raw.items()
    }


def build_configuration(args: CLIArgs, now: datetime) -> ModelConfiguration:
    return ModelConfiguration(
        model_type=args.model,
        attribution_window=AttributionWindow(start=now - timedelta(days=args.window_days), end=now),
        channel_weights=args.channel_weights,
        decay_half_life_days=args.half_life,
        custom_rules=load_rules(args.rules) if args.rules is not None else None,
    )


def main(argv: abc.Sequence[str] | None = None) -> None:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    context = CalculationContext(now=datetime.now(UTC))
    config = build_configuration(args, context.now)
    journeys = load_journeys(args.input_csv)
    logger.info("Loaded %d journeys from %s", len(journeys), args.input_csv)

    outcome = run_batch(journeys, config, context, confidence_floor=args.confidence_floor)
    report = CreditReport(journeys=journeys, outcome=outcome, config=config)
    report.write_markdown(args.output, top_n=args.top_channels)


if __name__ == "__main__":
    main()
