"""Markdown report for a batch of attributed journeys."""

from __future__ import annotations

from collections import abc
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd

if TYPE_CHECKING:
    from pandas import DataFrame
else:
    DataFrame = Any

from journey_credit import BatchOutcome, Journey, ModelConfiguration, ModelType
from journey_credit.frames import channel_credit, results_frame


@dataclass(slots=True)
class KPIBundle:
    total_journeys: int
    attributed_journeys: int
    failed_journeys: int
    total_touchpoints: int
    average_touches: float
    average_channel_diversity: float
    average_journey_days: float
    average_confidence: float
    total_conversion_value: float


@dataclass(slots=True)
class ChannelCreditRow:
    channel: str
    attributed_conversions: float
    attributed_value: float
    share: float
    touchpoints: int


class CreditReport:
    """Build and render a Markdown report for one model over many journeys."""

    def __init__(
        self,
        journeys: abc.Sequence[Journey],
        outcome: BatchOutcome,
        config: ModelConfiguration,
    ) -> None:
        if not isinstance(outcome, BatchOutcome):
            msg = "outcome must be a BatchOutcome."
            raise TypeError(msg)
        self._journeys = tuple(journeys)
        self._outcome = outcome
        self._config = config
        self._frame = results_frame(outcome.all_results(), self._journeys)

    @property
    def frame(self) -> DataFrame:
        return self._frame

    def build_kpis(self) -> KPIBundle:
        metrics = [journey.metrics() for journey in self._journeys]
        count = len(metrics)
        by_id = {journey.conversion_id: journey for journey in self._journeys}
        confidence = self._frame["confidence_score"]
        return KPIBundle(
            total_journeys=count,
            attributed_journeys=self._outcome.succeeded,
            failed_journeys=self._outcome.failed,
            total_touchpoints=sum(item.touchpoint_count for item in metrics),
            average_touches=(
                sum(item.touchpoint_count for item in metrics) / count if count else 0.0
            ),
            average_channel_diversity=(
                sum(item.channel_diversity for item in metrics) / count if count else 0.0
            ),
            average_journey_days=(
                sum(item.total_duration.total_seconds() for item in metrics) / 86400 / count
                if count
                else 0.0
            ),
            average_confidence=float(confidence.mean()) if not confidence.empty else 0.0,
            total_conversion_value=sum(
                by_id[conversion_id].conversion_value for conversion_id in self._outcome.results
            ),
        )

    def build_channel_rows(self) -> list[ChannelCreditRow]:
        credit = channel_credit(self._frame)
        return [
            ChannelCreditRow(
                channel=str(row["channel"]),
                attributed_conversions=float(row["attributed_conversions"]),
                attributed_value=float(row["attributed_value"]),
                share=float(row["share"]),
                touchpoints=int(row["touchpoints"]),
            )
            for row in credit.to_dict(orient="records")
        ]

    def build_failure_dataframe(self) -> DataFrame:
        return pd.DataFrame(
            {
                "Conversion": list(self._outcome.failures),
                "Error": [type(exc).__name__ for exc in self._outcome.failures.values()],
                "Detail": [str(exc) for exc in self._outcome.failures.values()],
            }
        )

    def _model_label(self) -> str:
        model = self._config.model_type
        label = model.value if isinstance(model, ModelType) else str(model)
        if self._config.decay_half_life_days is not None:
            label += f" (half-life {self._config.decay_half_life_days} days)"
        return label

    def to_markdown(self, top_n: int = 25) -> str:
        kpis = self.build_kpis()
        channel_rows = self.build_channel_rows()[:top_n]

        kpi_section = "\n".join(
            [
                "## Overview",
                f"- Model: **{self._model_label()}**",
                f"- Journeys analysed: **{kpis.total_journeys:,}**",
                f"- Journeys attributed: **{kpis.attributed_journeys:,}**",
                f"- Journeys rejected: **{kpis.failed_journeys:,}**",
                f"- Touchpoints: **{kpis.total_touchpoints:,}**",
                f"- Average touches per journey: **{kpis.average_touches:.2f}**",
                f"- Average distinct channels per journey: **{kpis.average_channel_diversity:.2f}**",
                f"- Average journey length: **{kpis.average_journey_days:.1f} days**",
                f"- Average confidence of kept results: **{kpis.average_confidence:.3f}**",
                f"- Conversion value attributed: **{kpis.total_conversion_value:,.2f}**",
            ]
        )

        attribution_header = (
            "| Channel | Attributed Conversions | Attributed Value | Share | Touchpoints |\n"
            "| --- | ---: | ---: | ---: | ---: |"
        )
        attribution_lines = [
            f"| `{row.channel}` | {row.attributed_conversions:.2f} | "
            f"{row.attributed_value:,.2f} | {row.share:.1%} | {row.touchpoints} |"
            for row in channel_rows
        ]
        attribution_section = "\n".join(
            ["## Credit by Channel (Top N)", attribution_header, *attribution_lines]
        )

        sections = ["# Attribution Credit Report", kpi_section, attribution_section]

        if self._outcome.failures:
            failure_markdown = self.build_failure_dataframe().to_markdown(index=False) or ""
            sections.append(f"## Rejected Journeys\n{failure_markdown}")

        sections.append(
            "## Methodology\n"
            "1. Each journey's configuration is validated before any credit is computed.\n"
            "2. Touchpoints are ordered by timestamp; ties keep their input order.\n"
            "3. Touchpoints outside the attribution window receive no credit.\n"
            "4. The selected model splits one conversion across the eligible touchpoints.\n"
            "5. Results below the confidence floor are dropped before aggregation."
        )
        return "\n\n".join(sections)

    def write_markdown(self, output_path: Path | str, *, top_n: int = 25) -> None:
        destination = Path(output_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(self.to_markdown(top_n=top_n), encoding="utf-8")
