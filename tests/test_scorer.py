import math

import pytest

from secweather.models import ItemAssessment, RawSignals, WeatherCondition, WeatherScores
from secweather.processing import scorer
from secweather.processing.scorer import InvalidSignal, ScoringPolicy


def items(*pairs):
    return [ItemAssessment(severity=s, relevance=r) for s, r in pairs]


def test_volume_scales_linearly_and_saturates():
    assert scorer.volume(0) == 0
    assert scorer.volume(5) == 0.5
    assert scorer.volume(10) == 1
    assert scorer.volume(20) == 1


def test_volume_rejects_negative_counts():
    with pytest.raises(InvalidSignal):
        scorer.volume(-1)


def test_severity_takes_the_worst_item():
    assert scorer.severity([]) == 0
    assert scorer.severity(items((3, 0.1), (5, 0.1))) == 1.0
    assert scorer.severity(items((1, 0.5), (1, 0.5), (4, 0.5))) == pytest.approx(0.8)


@pytest.mark.parametrize("level", [0, 6, -2])
def test_severity_rejects_out_of_range_levels(level):
    with pytest.raises(InvalidSignal):
        scorer.severity(items((level, 0.5)))


def test_relevance_is_the_mean():
    assert scorer.relevance([]) == 0
    assert scorer.relevance(items((1, 0.2), (1, 0.8))) == pytest.approx(0.5)


@pytest.mark.parametrize("value", [-0.1, 1.2, math.nan, math.inf])
def test_relevance_rejects_out_of_domain_values(value):
    with pytest.raises(InvalidSignal):
        scorer.relevance(items((3, value)))


@pytest.mark.parametrize(
    "total, expected",
    [
        (0.0, WeatherCondition.SUNNY),
        (0.2499999, WeatherCondition.SUNNY),
        (0.25, WeatherCondition.CLOUDY),
        (0.4999999, WeatherCondition.CLOUDY),
        (0.5, WeatherCondition.RAINY),
        (0.7499999, WeatherCondition.RAINY),
        (0.75, WeatherCondition.STORMY),
        (1.0, WeatherCondition.STORMY),
    ],
)
def test_threshold_boundaries_are_half_open(total, expected):
    assert scorer.classify_total(total) is expected


@pytest.mark.parametrize(
    "scores, total, expected",
    [
        (WeatherScores(0, 0, 0, 0.5), 0.075, WeatherCondition.SUNNY),
        (WeatherScores(1, 1, 1, 0.5), 0.925, WeatherCondition.STORMY),
        (WeatherScores(0.5, 0.6, 0.3, 0.5), 0.46, WeatherCondition.CLOUDY),
    ],
)
def test_weighted_scenarios(scores, total, expected):
    assert scorer.composite_total(scores) == pytest.approx(total)
    assert scorer.classify_weather(scores) is expected


def test_build_scores_end_to_end_rainy_day():
    scores = scorer.build_scores(3, items((4, 0.8), (2, 0.4)))
    assert scores.volume == pytest.approx(0.3)
    assert scores.severity == pytest.approx(0.8)
    assert scores.relevance == pytest.approx(0.6)
    assert scores.trend == 0.5
    assert scorer.composite_total(scores) == pytest.approx(0.585)
    assert scorer.classify_weather(scores) is WeatherCondition.RAINY


def test_classify_weather_is_repeatable():
    scores = WeatherScores(0.4, 0.6, 0.5, 0.5)
    assert scorer.classify_weather(scores) is scorer.classify_weather(scores)


@pytest.mark.parametrize("field", ["volume", "severity", "relevance", "trend"])
def test_total_is_monotonic_in_each_dimension(field):
    base = {"volume": 0.3, "severity": 0.4, "relevance": 0.5, "trend": 0.5}
    previous = -1.0
    for step in range(11):
        values = dict(base, **{field: step / 10})
        total = scorer.composite_total(WeatherScores(**values))
        assert total >= previous
        previous = total


@pytest.mark.parametrize("bad", [math.nan, -0.01, 1.01, math.inf])
def test_aggregator_rejects_invalid_scores(bad):
    with pytest.raises(InvalidSignal):
        scorer.classify_weather(WeatherScores(bad, 0.5, 0.5, 0.5))
    with pytest.raises(InvalidSignal):
        scorer.classify_weather(WeatherScores(0.5, 0.5, 0.5, bad))


def test_trend_defaults_to_neutral_without_history():
    assert scorer.trend(None, 0.9) == 0.5


def test_trend_rises_when_today_is_worse():
    assert scorer.trend(0.4, 0.4) == pytest.approx(0.5)
    assert scorer.trend(0.2, 0.6) == pytest.approx(0.7)
    assert scorer.trend(0.6, 0.2) == pytest.approx(0.3)
    assert scorer.trend(0.0, 1.0) == 1.0
    assert scorer.trend(1.0, 0.0) == 0.0


def test_build_scores_uses_previous_total_for_trend():
    quiet = scorer.build_scores(3, items((4, 0.8), (2, 0.4)), previous_total=0.1)
    assert quiet.trend > 0.5
    same = scorer.build_scores(3, items((4, 0.8), (2, 0.4)), previous_total=0.585)
    assert same.trend == pytest.approx(0.5)
    with pytest.raises(InvalidSignal):
        scorer.build_scores(3, items((4, 0.8)), previous_total=1.5)


def test_baseline_total_ignores_the_trend():
    rising = WeatherScores(0.3, 0.8, 0.6, 0.9)
    assert scorer.baseline_total(rising) == pytest.approx(0.585)
    assert scorer.baseline_total(rising) == scorer.composite_total(WeatherScores(0.3, 0.8, 0.6))
    assert scorer.composite_total(rising) > scorer.baseline_total(rising)


def test_score_signals_returns_scores_total_and_condition():
    scores, total, condition = scorer.score_signals(RawSignals(item_count=3, assessments=items((4, 0.8), (2, 0.4))))
    assert scores.volume == pytest.approx(0.3)
    assert total == pytest.approx(0.585)
    assert condition is WeatherCondition.RAINY


def test_custom_policy_shifts_classification():
    severity_first = ScoringPolicy(
        weights={"volume": 0.1, "severity": 0.6, "relevance": 0.2, "trend": 0.1},
        thresholds=(0.2, 0.4, 0.6),
    )
    scores = WeatherScores(0.0, 1.0, 0.0, 0.5)
    assert scorer.classify_weather(scores) is WeatherCondition.CLOUDY
    assert scorer.classify_weather(scores, severity_first) is WeatherCondition.STORMY


@pytest.mark.parametrize(
    "kwargs",
    [
        {"weights": {"volume": 0.5, "severity": 0.5, "relevance": 0.5, "trend": 0.5}},
        {"weights": {"volume": 1.0}},
        {"thresholds": (0.5, 0.25, 0.75)},
        {"thresholds": (0.25, 0.5)},
    ],
)
def test_policy_validation(kwargs):
    with pytest.raises(ValueError):
        ScoringPolicy(**kwargs)


def test_conditions_are_ordered_by_risk():
    ordered = sorted([WeatherCondition.STORMY, WeatherCondition.SUNNY, WeatherCondition.RAINY, WeatherCondition.CLOUDY])
    assert ordered == [WeatherCondition.SUNNY, WeatherCondition.CLOUDY, WeatherCondition.RAINY, WeatherCondition.STORMY]
    assert WeatherCondition.RAINY > WeatherCondition.CLOUDY
