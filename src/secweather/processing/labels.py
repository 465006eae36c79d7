from __future__ import annotations

from typing import Dict

from ..models import WeatherCondition

JAPANESE_LABELS: Dict[WeatherCondition, str] = {
    WeatherCondition.SUNNY: "晴れ",
    WeatherCondition.CLOUDY: "曇り",
    WeatherCondition.RAINY: "雨",
    WeatherCondition.STORMY: "嵐",
}

EMOJI: Dict[WeatherCondition, str] = {
    WeatherCondition.SUNNY: "☀️",
    WeatherCondition.CLOUDY: "☁️",
    WeatherCondition.RAINY: "🌧️",
    WeatherCondition.STORMY: "⛈️",
}

STATUS_MESSAGES: Dict[WeatherCondition, str] = {
    WeatherCondition.SUNNY: "Clear skies ahead",
    WeatherCondition.CLOUDY: "Slightly overcast",
    WeatherCondition.RAINY: "Caution advised",
    WeatherCondition.STORMY: "Storm warning!",
}


def to_japanese(condition: WeatherCondition) -> str:
    return JAPANESE_LABELS[WeatherCondition(condition)]


def to_emoji(condition: WeatherCondition) -> str:
    return EMOJI[WeatherCondition(condition)]


def to_status(condition: WeatherCondition) -> str:
    return STATUS_MESSAGES[WeatherCondition(condition)]


def headline(condition: WeatherCondition) -> str:
    return f"{to_emoji(condition)} 今日のインターネットは{to_japanese(condition)}"
