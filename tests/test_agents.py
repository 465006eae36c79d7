import pytest

from fakes import ScriptedClient, news
from secweather.analysis.agents import run_analyst, run_narrator, run_orchestrator
from secweather.analysis.gemini import AnalysisError
from secweather.models import AnalystOutput, OrchestratorOutput, WeatherCondition

PLAN = OrchestratorOutput(strategy="normal", tone="cautious", reason="mixed day", focus_items=["Docker escape"])
ITEMS = [news("Docker escape"), news("PostgreSQL injection"), news("Chrome zero-day")]


def analyst_payload(*rows):
    return {
        "summary": "今日は注意",
        "relevanceReason": "Docker を使っているため",
        "analyzedItems": [
            {"id": f"n{i}", "title": f"item {i}", "threatLevel": t, "summary": "s", "relevanceScore": r}
            for i, (t, r) in enumerate(rows)
        ],
    }


def test_orchestrator_without_news_is_calm():
    client = ScriptedClient()
    plan = run_orchestrator(client, [])
    assert (plan.strategy, plan.tone) == ("brief", "calm")
    assert client.prompts == []


def test_orchestrator_parses_model_output():
    client = ScriptedClient({"strategy": "deep", "tone": "alert", "reason": "r", "focusItems": ["a", "b", "c", "d"]})
    plan = run_orchestrator(client, ITEMS)
    assert plan.strategy == "deep" and plan.tone == "alert"
    assert plan.focus_items == ["a", "b", "c"]
    assert "Docker escape" in client.prompts[0]


def test_orchestrator_falls_back_on_failure():
    plan = run_orchestrator(ScriptedClient(AnalysisError("quota")), ITEMS)
    assert (plan.strategy, plan.tone) == ("normal", "cautious")
    assert plan.focus_items == [item.title for item in ITEMS]


def test_orchestrator_normalizes_unknown_values():
    plan = run_orchestrator(ScriptedClient({"strategy": "panic", "tone": "loud"}), ITEMS)
    assert (plan.strategy, plan.tone) == ("normal", "cautious")


def test_analyst_quiet_day_skips_the_engine():
    client = ScriptedClient()
    result = run_analyst(client, [], PLAN)
    assert result.weather_condition is WeatherCondition.SUNNY
    assert result.threat_level == 1
    assert result.scores is None
    assert client.prompts == []


def test_analyst_scores_with_engine():
    client = ScriptedClient(analyst_payload((4, 0.8), (2, 0.4)))
    result = run_analyst(client, ITEMS, PLAN)
    assert result.scores.volume == pytest.approx(0.3)
    assert result.scores.severity == pytest.approx(0.8)
    assert result.scores.relevance == pytest.approx(0.6)
    assert result.total == pytest.approx(0.585)
    assert result.weather_condition is WeatherCondition.RAINY
    assert result.threat_level == 4
    assert "(!) [jvn]" in client.prompts[0]


def test_analyst_clamps_model_ratings():
    client = ScriptedClient(analyst_payload((9, 1.7), (0, -0.5), ("high", 0.5)))
    result = run_analyst(client, ITEMS, PLAN)
    assert [item.threat_level for item in result.analyzed_items] == [5, 1]
    assert [item.relevance_score for item in result.analyzed_items] == [1.0, 0.0]
    assert result.scores.severity == 1.0


def test_analyst_trend_follows_previous_total():
    worse = run_analyst(ScriptedClient(analyst_payload((4, 0.8), (2, 0.4))), ITEMS, PLAN, previous_total=0.1)
    assert worse.scores.trend > 0.5
    better = run_analyst(ScriptedClient(analyst_payload((4, 0.8), (2, 0.4))), ITEMS, PLAN, previous_total=0.9)
    assert better.scores.trend < 0.5
    assert worse.baseline_total == better.baseline_total
    assert worse.total > worse.baseline_total > better.total


def test_analyst_failure_is_cloudy():
    result = run_analyst(ScriptedClient(AnalysisError("timeout")), ITEMS, PLAN)
    assert result.weather_condition is WeatherCondition.CLOUDY
    assert result.threat_level == 2
    assert result.analyzed_items == []


def test_analyst_without_assessments_is_sunny():
    result = run_analyst(ScriptedClient(analyst_payload()), ITEMS, PLAN)
    assert result.weather_condition is WeatherCondition.SUNNY
    assert result.threat_level == 1
    assert result.summary == "今日は注意"


def test_analyst_rejects_non_object_payload():
    result = run_analyst(ScriptedClient(["not", "an", "object"]), ITEMS, PLAN)
    assert result.weather_condition is WeatherCondition.CLOUDY


def test_narrator_canned_text_for_empty_analysis():
    client = ScriptedClient()
    quiet = AnalystOutput(WeatherCondition.SUNNY, 1, "静か", "なし")
    forecast = run_narrator(client, quiet, "forecast")
    assert forecast.headline == "☀️ 今日のインターネットは晴れ"
    review = run_narrator(client, quiet, "review")
    assert review.mode == "review"
    assert review.body != forecast.body
    assert client.prompts == []


def test_narrator_uses_model_text():
    analysis = run_analyst(ScriptedClient(analyst_payload((4, 0.8), (2, 0.4))), ITEMS, PLAN)
    client = ScriptedClient({"headline": "雨の一日", "body": "傘を", "closingRemark": "お気をつけて"})
    out = run_narrator(client, analysis, "review")
    assert (out.headline, out.body, out.closing_remark) == ("雨の一日", "傘を", "お気をつけて")
    assert "本日のインターネット" in client.prompts[0]


def test_narrator_falls_back_to_summary():
    analysis = run_analyst(ScriptedClient(analyst_payload((4, 0.8), (2, 0.4))), ITEMS, PLAN)
    out = run_narrator(ScriptedClient(AnalysisError("down")), analysis, "forecast")
    assert out.headline == "🌧️ 今日のインターネットは雨"
    assert out.body == "今日は注意"
