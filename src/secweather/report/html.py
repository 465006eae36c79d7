from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..models import DailySnapshot, WeatherCondition, WeatherReport
from ..processing import labels

TEMPLATE_DIR = Path(__file__).parent / "templates"

CONDITION_COLORS = {
    WeatherCondition.SUNNY: "#f5b700",
    WeatherCondition.CLOUDY: "#8a99a6",
    WeatherCondition.RAINY: "#3d7dd8",
    WeatherCondition.STORMY: "#7b2cbf",
}


def _gauge_style(threat_level: int) -> str:
    pct = max(0.0, min(1.0, (threat_level - 1) / 4))
    return f"width: {pct * 100:.0f}%;"


def _format_score(value: float | None) -> str:
    return f"{value:.2f}" if value is not None else "—"


def _history_strip(history: Sequence[DailySnapshot]) -> List[dict]:
    # oldest first so the strip reads left to right
    return [
        {
            "date": snap.date[5:],
            "emoji": labels.to_emoji(snap.weather_condition),
            "label": labels.to_japanese(snap.weather_condition),
            "threat_level": snap.threat_level,
            "color": CONDITION_COLORS[snap.weather_condition],
        }
        for snap in reversed(list(history))
    ]


def _env() -> Environment:
    loader = FileSystemLoader(TEMPLATE_DIR)
    return Environment(loader=loader, autoescape=select_autoescape(["html", "xml", "j2"]))


def render_report(report: WeatherReport, history: Sequence[DailySnapshot]) -> str:
    template = _env().get_template("report.html.j2")
    condition = report.weather_condition
    context = {
        "report": report,
        "weather": {
            "emoji": labels.to_emoji(condition),
            "label": labels.to_japanese(condition),
            "status": labels.to_status(condition),
            "color": CONDITION_COLORS[condition],
        },
        "history": _history_strip(history),
        "format_score": _format_score,
        "gauge_style": _gauge_style,
    }
    return template.render(**context)
