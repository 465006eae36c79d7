from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from zoneinfo import ZoneInfo

from .processing.scorer import ScoringPolicy

DEFAULT_USER_AGENT = "SecurityWeatherStation/1.0"
DEFAULT_MODEL = "gemini-2.0-flash"


class FeedSource(BaseModel):
    id: str
    name: str
    url: str
    type: Literal["nvd", "jpcert", "ipa", "jvn", "rss"] = "rss"
    language: str = "ja"
    description: str = ""
    enabled: bool = True


DEFAULT_FEEDS = [
    FeedSource(
        id="jvn",
        name="JVN iPedia",
        url="https://jvndb.jvn.jp/ja/rss/jvndb_new.rdf",
        type="jvn",
        description="Japan Vulnerability Notes, newly published entries",
    ),
    FeedSource(
        id="jpcert",
        name="JPCERT/CC",
        url="https://www.jpcert.or.jp/rss/jpcert.rdf",
        type="jpcert",
        description="JPCERT/CC alerts and advisories",
    ),
    FeedSource(
        id="ipa",
        name="IPA Security Center",
        url="https://www.ipa.go.jp/security/alert-rss.rdf",
        type="ipa",
        description="IPA important security alerts",
    ),
    FeedSource(
        id="nvd",
        name="NVD",
        url="https://nvd.nist.gov/feeds/xml/cve/misc/nvd-rss-analyzed.xml",
        type="nvd",
        language="en",
        description="NIST National Vulnerability Database, analyzed CVEs",
        enabled=False,
    ),
]


class UserProfile(BaseModel):
    tech_stack: List[str] = Field(default_factory=lambda: ["Linux", "Docker", "Next.js", "PostgreSQL", "Node.js"])
    interests: List[str] = Field(default_factory=lambda: ["OSS", "Web Security", "Cloud"])


class GeminiSettings(BaseModel):
    api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    model: str = Field(default=DEFAULT_MODEL, alias="GEMINI_MODEL")
    timeout: int = Field(default=60, alias="GEMINI_TIMEOUT")

    model_config = {
        "populate_by_name": True,
    }

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class ScoringSettings(BaseModel):
    weight_volume: float = 0.20
    weight_severity: float = 0.30
    weight_relevance: float = 0.35
    weight_trend: float = 0.15
    threshold_cloudy: float = 0.25
    threshold_rainy: float = 0.50
    threshold_stormy: float = 0.75

    @model_validator(mode="after")
    def _check_policy(self) -> "ScoringSettings":
        self.policy  # raises ValueError on an inconsistent policy
        return self

    @property
    def policy(self) -> ScoringPolicy:
        return ScoringPolicy(
            weights={
                "volume": self.weight_volume,
                "severity": self.weight_severity,
                "relevance": self.weight_relevance,
                "trend": self.weight_trend,
            },
            thresholds=(self.threshold_cloudy, self.threshold_rainy, self.threshold_stormy),
        )


class AppSettings(BaseModel):
    days: int = Field(default=3, ge=1)
    cache_ttl_hours: int = Field(default=1)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    tz: str = Field(default="Asia/Tokyo")
    out_dir: Path = Field(default=Path("out"))
    logs_dir: Path = Field(default=Path("logs"))
    cache_dir: Path = Field(default=Path(".cache"))
    history_file: Path = Field(default=Path("out/history.json"))
    history_days: int = Field(default=14, ge=1)
    no_cache: bool = Field(default=False)
    trend_from_history: bool = Field(default=True)
    feeds: List[FeedSource] = Field(default_factory=lambda: list(DEFAULT_FEEDS))
    profile: UserProfile = Field(default_factory=UserProfile)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)

    @property
    def tzinfo(self):  # pragma: no cover - thin helper
        return ZoneInfo(self.tz)

    @property
    def enabled_feeds(self) -> List[FeedSource]:
        return [feed for feed in self.feeds if feed.enabled]


def _env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_list(key: str, default: List[str], separator: str = ",") -> List[str]:
    value = os.getenv(key)
    if not value:
        return default
    return [item.strip() for item in value.split(separator) if item.strip()]


def _feeds_from_env() -> List[FeedSource]:
    enabled_ids = _env_list("FEEDS_ENABLED", [])
    extra_urls = _env_list("EXTRA_FEED_URLS", [])
    feeds = []
    for feed in DEFAULT_FEEDS:
        enabled = feed.id in enabled_ids if enabled_ids else feed.enabled
        feeds.append(feed.model_copy(update={"enabled": enabled}))
    for idx, url in enumerate(extra_urls, start=1):
        feeds.append(FeedSource(id=f"extra-{idx}", name=url, url=url, type="rss", language="en"))
    return feeds


def load_settings(cli_args: dict[str, Any] | None = None) -> AppSettings:
    load_dotenv()
    cli_args = cli_args or {}

    out_dir = Path(cli_args.get("out_dir") or os.getenv("OUT_DIR", "out")).expanduser()
    logs_dir = Path(cli_args.get("logs_dir") or os.getenv("LOGS_DIR", "logs")).expanduser()
    history_file = Path(
        cli_args.get("history_file") or os.getenv("HISTORY_FILE", str(out_dir / "history.json"))
    ).expanduser()

    trend_from_history = _env_bool("TREND_FROM_HISTORY", True)
    if cli_args.get("no_history_trend"):
        trend_from_history = False

    data: dict[str, Any] = {
        "days": int(cli_args.get("days") or _env_int("DAYS", 3)),
        "cache_ttl_hours": _env_int("CACHE_TTL_HOURS", 1),
        "user_agent": cli_args.get("user_agent") or os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
        "tz": cli_args.get("tz") or os.getenv("TZ", "Asia/Tokyo"),
        "out_dir": out_dir,
        "logs_dir": logs_dir,
        "cache_dir": Path(os.getenv("CACHE_DIR", ".cache")).expanduser(),
        "history_file": history_file,
        "history_days": _env_int("HISTORY_DAYS", 14),
        "no_cache": bool(cli_args.get("no_cache")),
        "trend_from_history": trend_from_history,
        "feeds": _feeds_from_env(),
        "profile": UserProfile(
            tech_stack=_env_list("TECH_STACK", UserProfile().tech_stack),
            interests=_env_list("INTERESTS", UserProfile().interests),
        ),
        "gemini": GeminiSettings(
            GEMINI_API_KEY=os.getenv("GEMINI_API_KEY"),
            GEMINI_MODEL=cli_args.get("model") or os.getenv("GEMINI_MODEL", DEFAULT_MODEL),
            GEMINI_TIMEOUT=_env_int("GEMINI_TIMEOUT", 60),
        ),
    }

    try:
        data["scoring"] = ScoringSettings(
            weight_volume=_env_float("SCORE_WEIGHT_VOLUME", 0.20),
            weight_severity=_env_float("SCORE_WEIGHT_SEVERITY", 0.30),
            weight_relevance=_env_float("SCORE_WEIGHT_RELEVANCE", 0.35),
            weight_trend=_env_float("SCORE_WEIGHT_TREND", 0.15),
            threshold_cloudy=_env_float("SCORE_THRESHOLD_CLOUDY", 0.25),
            threshold_rainy=_env_float("SCORE_THRESHOLD_RAINY", 0.50),
            threshold_stormy=_env_float("SCORE_THRESHOLD_STORMY", 0.75),
        )
        settings = AppSettings(**data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}")

    settings.out_dir.mkdir(parents=True, exist_ok=True)
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    return settings
