from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from ..models import DailySnapshot
from ..processing import labels

HISTORY_COLUMNS = [
    "date",
    "weather_condition",
    "label",
    "threat_level",
    "total",
    "analyzed_items_count",
    "top_items",
    "mode",
    "generated_at",
]


def _row_payload(snapshot: DailySnapshot) -> dict:
    return {
        "date": snapshot.date,
        "weather_condition": snapshot.weather_condition.value,
        "label": labels.to_japanese(snapshot.weather_condition),
        "threat_level": snapshot.threat_level,
        "total": round(snapshot.total, 4) if snapshot.total is not None else None,
        "analyzed_items_count": snapshot.analyzed_items_count,
        "top_items": " | ".join(item.title for item in snapshot.top_items),
        "mode": snapshot.mode,
        "generated_at": snapshot.generated_at.isoformat(),
    }


def history_frame(history: Sequence[DailySnapshot]) -> pd.DataFrame:
    df = pd.DataFrame([_row_payload(snap) for snap in history], columns=HISTORY_COLUMNS)
    return df.sort_values("date").reset_index(drop=True)


def write_history_csv(history: Sequence[DailySnapshot], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    history_frame(history).to_csv(path, index=False, encoding="utf-8")
    return path
