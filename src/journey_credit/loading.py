"""Load journeys from touchpoint-level CSV exports."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from .data import Channel, Journey, Touchpoint

__all__ = ["OPTIONAL_COLUMNS", "REQUIRED_COLUMNS", "journeys_from_frame", "load_journeys"]

REQUIRED_COLUMNS = ("conversion_id", "touchpoint_id", "channel", "timestamp")
OPTIONAL_COLUMNS = ("value", "source", "campaign", "medium", "converted_at", "conversion_value")
_METADATA_COLUMNS = ("source", "campaign", "medium")


def _present(value: Any) -> bool:
    return value is not None and not pd.isna(value)


def _to_datetime(value: Any) -> datetime | None:
    if not _present(value):
        return None
    return pd.Timestamp(value).to_pydatetime()


def _to_channel(value: Any) -> Channel | str:
    text = str(value).strip().lower()
    try:
        return Channel(text)
    except ValueError:
        # Left as-is so journey validation reports it.
        return text


def journeys_from_frame(frame: pd.DataFrame) -> list[Journey]:
    """Group touchpoint rows by ``conversion_id`` into journeys.

    Row order inside each group is kept and becomes ``metadata.position``.
    """
    missing_columns = set(REQUIRED_COLUMNS).difference(frame.columns)
    if missing_columns:
        missing = ", ".join(sorted(missing_columns))
        msg = f"CSV missing required columns: {missing}"
        raise ValueError(msg)

    journeys: list[Journey] = []
    for conversion_id, group in frame.groupby("conversion_id", sort=False):
        touchpoints: list[Touchpoint] = []
        converted_at: datetime | None = None
        conversion_value = 0.0
        for position, row in enumerate(group.to_dict(orient="records")):
            metadata: dict[str, Any] = {"position": position}
            for column in _METADATA_COLUMNS:
                if _present(row.get(column)):
                    metadata[column] = str(row[column])
            value = row.get("value")
            touchpoints.append(
                Touchpoint(
                    id=str(row["touchpoint_id"]),
                    channel=_to_channel(row["channel"]),  # type: ignore[arg-type]
                    timestamp=_to_datetime(row["timestamp"]),  # type: ignore[arg-type]
                    value=float(value) if _present(value) else None,
                    metadata=metadata,
                )
            )
            converted_at = converted_at or _to_datetime(row.get("converted_at"))
            if _present(row.get("conversion_value")):
                conversion_value = float(row["conversion_value"])
        journeys.append(
            Journey(
                conversion_id=str(conversion_id),
                touchpoints=tuple(touchpoints),
                converted_at=converted_at,
                conversion_value=conversion_value,
            )
        )
    return journeys


def load_journeys(csv_path: Path | str) -> list[Journey]:
    """Load the CSV export and convert rows into journeys.

    Parameters
    ----------
    csv_path:
        Path to a CSV with at least ``conversion_id``, ``touchpoint_id``,
        ``channel`` and ``timestamp`` columns.
    """
    csv_path = Path(csv_path)
    dataframe = pd.read_csv(csv_path, dtype={"conversion_id": str, "touchpoint_id": str})
    return journeys_from_frame(dataframe)
