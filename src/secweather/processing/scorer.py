from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ..models import ItemAssessment, RawSignals, WeatherCondition, WeatherScores

VOLUME_SATURATION = 10
MAX_SEVERITY = 5
NEUTRAL_TREND = 0.5
DIMENSIONS = ("volume", "severity", "relevance", "trend")


class InvalidSignal(ValueError):
    """Raised when a score is non-finite or outside [0, 1]."""


@dataclass(frozen=True)
class ScoringPolicy:
    # relevance dominates: the station is tuned for one person's stack
    weights: Dict[str, float] = field(
        default_factory=lambda: {
            "volume": 0.20,
            "severity": 0.30,
            "relevance": 0.35,
            "trend": 0.15,
        }
    )
    # lower bounds of cloudy, rainy and stormy
    thresholds: Tuple[float, float, float] = (0.25, 0.50, 0.75)

    def __post_init__(self) -> None:
        if set(self.weights) != set(DIMENSIONS):
            raise ValueError(f"weights must cover exactly {DIMENSIONS}, got {sorted(self.weights)}")
        if any(w < 0 for w in self.weights.values()):
            raise ValueError("weights must be non-negative")
        if not math.isclose(sum(self.weights.values()), 1.0, abs_tol=1e-9):
            raise ValueError(f"weights must sum to 1.0, got {sum(self.weights.values()):.4f}")
        if len(self.thresholds) != 3:
            raise ValueError("exactly three thresholds are required")
        lo, mid, hi = self.thresholds
        if not (0.0 < lo < mid < hi <= 1.0):
            raise ValueError(f"thresholds must be strictly ascending within (0, 1], got {self.thresholds}")


DEFAULT_POLICY = ScoringPolicy()


def clamp01(value: float) -> float:
    if math.isnan(value):
        raise InvalidSignal("cannot clamp NaN")
    return max(0.0, min(1.0, float(value)))


def _check_unit(name: str, value: float) -> float:
    if value is None or not math.isfinite(value):
        raise InvalidSignal(f"{name} must be finite, got {value!r}")
    if not 0.0 <= value <= 1.0:
        raise InvalidSignal(f"{name} must be within [0, 1], got {value!r}")
    return float(value)


def volume(item_count: int) -> float:
    if item_count < 0:
        raise InvalidSignal(f"item_count must be >= 0, got {item_count}")
    return min(item_count / VOLUME_SATURATION, 1.0)


def severity(assessments: Sequence[ItemAssessment]) -> float:
    """Worst case wins: one critical item is not diluted by quiet ones."""
    if not assessments:
        return 0.0
    levels = [item.severity for item in assessments]
    for level in levels:
        if not 1 <= level <= MAX_SEVERITY:
            raise InvalidSignal(f"severity must be within 1..{MAX_SEVERITY}, got {level!r}")
    return max(levels) / MAX_SEVERITY


def relevance(assessments: Sequence[ItemAssessment]) -> float:
    if not assessments:
        return 0.0
    values = [_check_unit("relevance", item.relevance) for item in assessments]
    return sum(values) / len(values)


def trend(previous_total: Optional[float], current_total: float) -> float:
    """Map the day-over-day change onto [0, 1] with 0.5 meaning flat.

    Both arguments must be baseline totals (see :func:`baseline_total`):
    yesterday's stored baseline and today's. Without a previous total the
    neutral placeholder is returned.
    """
    if previous_total is None:
        return NEUTRAL_TREND
    previous_total = _check_unit("previous_total", previous_total)
    current_total = _check_unit("current_total", current_total)
    return clamp01((1.0 + current_total - previous_total) / 2.0)


def composite_total(scores: WeatherScores, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    total = 0.0
    for name in DIMENSIONS:
        total += _check_unit(name, getattr(scores, name)) * policy.weights[name]
    # float rounding of the weight sum can overshoot by an ulp
    return min(total, 1.0)


def baseline_total(scores: WeatherScores, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Composite with the trend pinned at neutral, comparable across days."""
    neutral = WeatherScores(scores.volume, scores.severity, scores.relevance, NEUTRAL_TREND)
    return composite_total(neutral, policy)


def classify_total(total: float, policy: ScoringPolicy = DEFAULT_POLICY) -> WeatherCondition:
    total = _check_unit("total", total)
    cloudy, rainy, stormy = policy.thresholds
    if total < cloudy:
        return WeatherCondition.SUNNY
    if total < rainy:
        return WeatherCondition.CLOUDY
    if total < stormy:
        return WeatherCondition.RAINY
    return WeatherCondition.STORMY


def classify_weather(scores: WeatherScores, policy: ScoringPolicy = DEFAULT_POLICY) -> WeatherCondition:
    return classify_total(composite_total(scores, policy), policy)


def build_scores(
    item_count: int,
    assessments: Iterable[ItemAssessment],
    previous_total: Optional[float] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> WeatherScores:
    items = list(assessments)
    base = WeatherScores(
        volume=volume(item_count),
        severity=severity(items),
        relevance=relevance(items),
        trend=NEUTRAL_TREND,
    )
    if previous_total is None:
        return base
    neutral_total = baseline_total(base, policy)
    return WeatherScores(
        volume=base.volume,
        severity=base.severity,
        relevance=base.relevance,
        trend=trend(previous_total, neutral_total),
    )


def score_signals(signals: RawSignals, policy: ScoringPolicy = DEFAULT_POLICY) -> Tuple[WeatherScores, float, WeatherCondition]:
    scores = build_scores(signals.item_count, signals.assessments, signals.previous_total, policy)
    total = composite_total(scores, policy)
    return scores, total, classify_total(total, policy)
