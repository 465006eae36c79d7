"""Prompt-driven agents around the scoring engine.

The orchestrator picks an analysis strategy, the analyst rates each item and
the narrator turns the verdict into prose. Every agent degrades to a canned
answer when the model call fails; the weather itself is always decided by
:mod:`secweather.processing.scorer`.
"""
from __future__ import annotations

import logging
import math
from typing import Any, List, Optional, Sequence

from ..config import UserProfile
from ..models import (
    AnalystOutput,
    AnalyzedItem,
    NarratorMode,
    NarratorOutput,
    NewsItem,
    OrchestratorOutput,
    WeatherCondition,
)
from ..processing import labels
from ..processing.scorer import DEFAULT_POLICY, ScoringPolicy, baseline_total, build_scores, classify_total, composite_total
from .gemini import Err, GeminiClient

LOGGER = logging.getLogger(__name__)

ORCHESTRATOR_MAX_ITEMS = 20
ANALYST_MAX_ITEMS = 15
MAX_FOCUS_ITEMS = 3

STRATEGY_GUIDE = {
    "brief": "Keep it short. Key points only.",
    "normal": "Standard analysis. Cover the important points.",
    "deep": "Detailed analysis. Dig into technical background and impact.",
}

TONE_GUIDE = {
    "calm": "Calm tone. No need for strong warnings.",
    "cautious": "Advise caution and suggest checks.",
    "alert": "Convey urgency and suggest concrete actions.",
}


def _news_lines(items: Sequence[NewsItem], limit: int) -> str:
    return "\n".join(f"{i}. [{item.source}] {item.title}" for i, item in enumerate(items[:limit], start=1))


def build_orchestrator_prompt(news_items: Sequence[NewsItem], profile: UserProfile) -> str:
    return f"""You are the dispatcher of a cyber weather forecast center.
Review today's security news and decide the analysis strategy.

## User tech stack
{", ".join(profile.tech_stack)}

## User interests
{", ".join(profile.interests)}

## Today's news ({len(news_items)} items)
{_news_lines(news_items, ORCHESTRATOR_MAX_ITEMS) or "(no news)"}

## Criteria
- strategy: "brief" when news is sparse or minor, "normal" on a typical day,
  "deep" when there are serious vulnerabilities or items that hit the user's stack
- tone: "calm", "cautious" or "alert"
- focusItems: titles of at most {MAX_FOCUS_ITEMS} items that deserve attention

## Output (JSON only)
{{"strategy": "brief" | "normal" | "deep", "tone": "calm" | "cautious" | "alert",
  "reason": "short justification", "focusItems": ["title", ...]}}"""


def _parse_orchestrator(payload: Any) -> OrchestratorOutput:
    if not isinstance(payload, dict):
        raise ValueError(f"expected an object, got {type(payload).__name__}")
    strategy = payload.get("strategy")
    tone = payload.get("tone")
    focus = payload.get("focusItems") or []
    return OrchestratorOutput(
        strategy=strategy if strategy in STRATEGY_GUIDE else "normal",
        tone=tone if tone in TONE_GUIDE else "cautious",
        reason=str(payload.get("reason") or ""),
        focus_items=[str(title) for title in focus][:MAX_FOCUS_ITEMS],
    )


def run_orchestrator(
    client: GeminiClient,
    news_items: Sequence[NewsItem],
    profile: UserProfile | None = None,
) -> OrchestratorOutput:
    profile = profile or UserProfile()
    if not news_items:
        return OrchestratorOutput(
            strategy="brief",
            tone="calm",
            reason="本日は関連するセキュリティニュースがありません",
        )

    result = client.try_generate_json(build_orchestrator_prompt(news_items, profile))
    if not isinstance(result, Err):
        try:
            return _parse_orchestrator(result.value)
        except ValueError as exc:
            LOGGER.warning("Orchestrator returned malformed output: %s", exc)
    return OrchestratorOutput(
        strategy="normal",
        tone="cautious",
        reason="AI分析に失敗しました。手動での確認を推奨します。",
        focus_items=[item.title for item in news_items[:MAX_FOCUS_ITEMS]],
    )


def build_analyst_prompt(
    news_items: Sequence[NewsItem],
    orchestrator: OrchestratorOutput,
    profile: UserProfile,
) -> str:
    blocks = []
    for i, item in enumerate(news_items[:ANALYST_MAX_ITEMS], start=1):
        marker = "(!) " if item.title in orchestrator.focus_items else ""
        blocks.append(f"{i}. {marker}[{item.source}] id={item.id} {item.title}\n   {item.raw_content[:200]}...")
    news_text = "\n\n".join(blocks) or "(no news)"
    return f"""You are a cybersecurity analyst.

## Strategy from the dispatcher
- strategy: {orchestrator.strategy} - {STRATEGY_GUIDE[orchestrator.strategy]}
- tone: {orchestrator.tone} - {TONE_GUIDE[orchestrator.tone]}
- reason: {orchestrator.reason}

## User tech stack
{", ".join(profile.tech_stack)}

## News to analyze
{news_text}

## Tasks
1. Rate each item's threat level from 1 to 5
2. Rate how relevant each item is to the user's stack from 0.0 to 1.0
3. Summarize the day in at most three lines
4. Explain why it matters to the user

## Output (JSON only, text fields in Japanese)
{{"summary": "...", "relevanceReason": "...",
  "analyzedItems": [{{"id": "news id", "title": "...", "threatLevel": 1-5,
                      "summary": "one line", "relevanceScore": 0.0-1.0}}]}}"""


def _coerce_item(raw: Any) -> Optional[AnalyzedItem]:
    """Clamp model ratings into the engine's domain; drop unusable rows."""
    if not isinstance(raw, dict):
        return None
    try:
        threat = float(raw.get("threatLevel"))
        relevance = float(raw.get("relevanceScore"))
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(threat) and math.isfinite(relevance)):
        return None
    return AnalyzedItem(
        id=str(raw.get("id") or ""),
        title=str(raw.get("title") or ""),
        threat_level=min(5, max(1, round(threat))),
        summary=str(raw.get("summary") or ""),
        relevance_score=min(1.0, max(0.0, relevance)),
    )


def quiet_day() -> AnalystOutput:
    return AnalystOutput(
        weather_condition=WeatherCondition.SUNNY,
        threat_level=1,
        summary="本日は関連するセキュリティニュースがありません。穏やかな一日です。",
        relevance_reason="特に対応が必要な項目はありません。",
    )


def analysis_failed() -> AnalystOutput:
    return AnalystOutput(
        weather_condition=WeatherCondition.CLOUDY,
        threat_level=2,
        summary="AI分析に失敗しました。手動での確認を推奨します。",
        relevance_reason="分析結果を取得できませんでした。",
    )


def run_analyst(
    client: GeminiClient,
    news_items: Sequence[NewsItem],
    orchestrator: OrchestratorOutput,
    profile: UserProfile | None = None,
    previous_total: float | None = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AnalystOutput:
    """Rate the news with the model and classify it with the engine.

    ``previous_total`` is yesterday's baseline total; it drives the trend.
    """
    profile = profile or UserProfile()
    if not news_items:
        return quiet_day()

    result = client.try_generate_json(build_analyst_prompt(news_items, orchestrator, profile))
    if isinstance(result, Err) or not isinstance(result.value, dict):
        if not isinstance(result, Err):
            LOGGER.warning("Analyst returned a %s instead of an object", type(result.value).__name__)
        return analysis_failed()

    payload = result.value
    items: List[AnalyzedItem] = []
    for raw in payload.get("analyzedItems") or []:
        item = _coerce_item(raw)
        if item is None:
            LOGGER.warning("Skipping malformed analyzed item: %r", raw)
            continue
        items.append(item)

    summary = str(payload.get("summary") or "")
    reason = str(payload.get("relevanceReason") or "")
    if not items:
        quiet = quiet_day()
        quiet.summary = summary or quiet.summary
        quiet.relevance_reason = reason or quiet.relevance_reason
        return quiet

    scores = build_scores(len(news_items), [item.assessment() for item in items], previous_total, policy)
    total = composite_total(scores, policy)
    condition = classify_total(total, policy)
    LOGGER.info(
        "Scores volume=%.2f severity=%.2f relevance=%.2f trend=%.2f total=%.3f -> %s",
        scores.volume,
        scores.severity,
        scores.relevance,
        scores.trend,
        total,
        condition.value,
    )
    return AnalystOutput(
        weather_condition=condition,
        threat_level=max(item.threat_level for item in items),
        summary=summary,
        relevance_reason=reason,
        analyzed_items=items,
        scores=scores,
        total=total,
        baseline_total=baseline_total(scores, policy),
    )


def build_narrator_prompt(analysis: AnalystOutput, mode: NarratorMode) -> str:
    condition = analysis.weather_condition
    if mode == "forecast":
        mode_text = (
            "Mode: morning forecast. You are a morning weather caster. Describe the outlook for today "
            "and what to prepare. Start with 「今日のインターネットは○○です」."
        )
    else:
        mode_text = (
            "Mode: evening review. You are an evening news caster. Look back on today and say how to "
            "prepare for tomorrow. Start with 「本日のインターネットは○○でした」."
        )
    highlights = "\n".join(f"- {item.title}: {item.summary}" for item in analysis.analyzed_items[:3])
    return f"""You are "Weather Caster AI", a cyber weather forecaster.

{mode_text}

## Analysis
- weather: {labels.to_emoji(condition)} {labels.to_japanese(condition)}
- threat level: {analysis.threat_level}/5
- summary: {analysis.summary}
- relevance: {analysis.relevance_reason}

## Highlights
{highlights}

## Output (JSON only, in Japanese)
{{"headline": "one punchy line", "body": "two or three sentences", "closingRemark": "a closing line"}}"""


def _canned_narration(analysis: AnalystOutput, mode: NarratorMode) -> NarratorOutput:
    if mode == "forecast":
        body = "本日は特に注目すべきセキュリティニュースはありません。穏やかな一日になりそうです。"
    else:
        body = "本日は特に大きな動きはありませんでした。静かな一日でした。"
    return NarratorOutput(
        mode=mode,
        headline=labels.headline(analysis.weather_condition),
        body=body,
        closing_remark="引き続き、安全なインターネットライフをお過ごしください。",
    )


def run_narrator(client: GeminiClient, analysis: AnalystOutput, mode: NarratorMode) -> NarratorOutput:
    if not analysis.analyzed_items:
        return _canned_narration(analysis, mode)

    result = client.try_generate_json(build_narrator_prompt(analysis, mode))
    if not isinstance(result, Err) and isinstance(result.value, dict):
        payload = result.value
        headline = str(payload.get("headline") or "")
        if headline:
            return NarratorOutput(
                mode=mode,
                headline=headline,
                body=str(payload.get("body") or analysis.summary),
                closing_remark=str(payload.get("closingRemark") or ""),
            )
        LOGGER.warning("Narrator returned no headline")
    return NarratorOutput(
        mode=mode,
        headline=labels.headline(analysis.weather_condition),
        body=analysis.summary,
        closing_remark="詳細は下記のニュースをご確認ください。",
    )
