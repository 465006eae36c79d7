from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .analysis.agents import run_analyst, run_narrator, run_orchestrator
from .analysis.gemini import GeminiClient
from .config import AppSettings
from .ingest.cache import CacheManager
from .ingest.rss import FeedCollector, filter_recent
from .models import TopItem, WeatherReport
from .report.csv import write_history_csv
from .report.html import render_report
from .storage.history import HistoryStore
from .util.http import create_session
from .util.logging import setup_logging
from .util.time import narrator_mode

LOGGER = logging.getLogger(__name__)


def run_pipeline(
    settings: AppSettings,
    client: Optional[GeminiClient] = None,
    collector: Optional[FeedCollector] = None,
    now: Optional[datetime] = None,
) -> WeatherReport:
    setup_logging(settings.logs_dir)
    now = now or datetime.now(settings.tzinfo)
    session = create_session(settings.user_agent)
    if collector is None:
        cache = CacheManager(settings.cache_dir, 0 if settings.no_cache else settings.cache_ttl_hours)
        collector = FeedCollector(settings, session, cache)
    if client is None:
        client = GeminiClient(settings.gemini, session)
    if not client.enabled:
        LOGGER.warning("GEMINI_API_KEY is not set; AI analysis will fall back to defaults")

    history = HistoryStore(settings.history_file, settings.history_days)
    mode = narrator_mode(now)

    recent = filter_recent(collector.collect(), settings.days, now)
    LOGGER.info("%d news items within the last %d days", len(recent), settings.days)

    previous_total = history.previous_baseline(now) if settings.trend_from_history else None
    orchestrator = run_orchestrator(client, recent, settings.profile)
    analysis = run_analyst(
        client,
        recent,
        orchestrator,
        settings.profile,
        previous_total=previous_total,
        policy=settings.scoring.policy,
    )
    narration = run_narrator(client, analysis, mode)

    report = WeatherReport(
        generated_at=now,
        mode=mode,
        weather_condition=analysis.weather_condition,
        threat_level=analysis.threat_level,
        headline=narration.headline,
        body=narration.body,
        closing_remark=narration.closing_remark,
        relevance_reason=analysis.relevance_reason,
        analyzed_items=analysis.analyzed_items,
        news_items=recent,
        orchestrator_output=orchestrator,
        scores=analysis.scores,
        total=analysis.total,
        baseline_total=analysis.baseline_total,
    )

    try:
        history.save_snapshot(
            report.weather_condition,
            report.threat_level,
            len(report.analyzed_items),
            [TopItem(title=item.title, source=item.id) for item in report.analyzed_items[:3]],
            mode,
            total=report.total,
            baseline_total=report.baseline_total,
            generated_at=now,
        )
    except OSError as exc:
        LOGGER.warning("Failed to save snapshot: %s", exc)
    snapshots = history.get_history(settings.history_days)

    stamp = now.strftime("%Y%m%d")
    settings.out_dir.mkdir(parents=True, exist_ok=True)
    html_path = settings.out_dir / f"weather_{stamp}.html"
    html_path.write_text(render_report(report, snapshots), encoding="utf-8")
    report.html_report = str(html_path)
    report.history_csv = str(write_history_csv(snapshots, settings.out_dir / "history.csv"))

    LOGGER.info(
        "Weather %s (threat %d/5) written to %s",
        report.weather_condition.value,
        report.threat_level,
        html_path,
    )
    return report
