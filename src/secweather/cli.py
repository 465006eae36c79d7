from __future__ import annotations

import json

import click

from .config import load_settings
from .pipeline import run_pipeline
from .processing import labels


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--days", type=int, help="How many days of news to consider")
@click.option("--out", "out_dir", type=click.Path(path_type=str), help="Artifact directory")
@click.option("--logs-dir", type=click.Path(path_type=str), help="Log directory")
@click.option("--history-file", type=click.Path(path_type=str), help="History JSON file")
@click.option("--model", type=str, help="Gemini model name")
@click.option("--tz", type=str, help="Time zone for day boundaries")
@click.option("--user-agent", type=str, help="Custom user agent")
@click.option("--no-cache", is_flag=True, help="Force re-download of feeds")
@click.option("--no-history-trend", is_flag=True, help="Keep trend at the neutral 0.5 placeholder")
def main(**kwargs):
    """Collect security feeds and print today's security weather."""
    settings = load_settings(kwargs)
    report = run_pipeline(settings)
    click.echo(
        json.dumps(
            {
                "weather": report.weather_condition.value,
                "label": labels.to_japanese(report.weather_condition),
                "emoji": labels.to_emoji(report.weather_condition),
                "threat_level": report.threat_level,
                "total": report.total,
                "headline": report.headline,
                "html_report": report.html_report,
                "history_csv": report.history_csv,
            },
            ensure_ascii=False,
            indent=2,
        )
    )


if __name__ == "__main__":  # pragma: no cover
    main()
