from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Sequence

NewsSource = Literal["nvd", "jpcert", "ipa", "jvn", "rss"]
NarratorMode = Literal["forecast", "review"]
Strategy = Literal["brief", "normal", "deep"]
Tone = Literal["calm", "cautious", "alert"]


class WeatherCondition(str, Enum):
    """Risk states ordered from calmest to most severe."""

    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"

    @property
    def rank(self) -> int:
        return _CONDITION_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, WeatherCondition):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, WeatherCondition):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, WeatherCondition):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, WeatherCondition):
            return NotImplemented
        return self.rank >= other.rank


_CONDITION_ORDER = (
    WeatherCondition.SUNNY,
    WeatherCondition.CLOUDY,
    WeatherCondition.RAINY,
    WeatherCondition.STORMY,
)


@dataclass(frozen=True, slots=True)
class ItemAssessment:
    severity: int
    relevance: float


@dataclass(frozen=True, slots=True)
class RawSignals:
    item_count: int
    assessments: Sequence[ItemAssessment] = ()
    previous_total: Optional[float] = None


@dataclass(frozen=True, slots=True)
class WeatherScores:
    volume: float
    severity: float
    relevance: float
    trend: float = 0.5


@dataclass(slots=True)
class NewsItem:
    id: str
    title: str
    source: NewsSource
    source_url: str
    published_at: datetime
    raw_content: str = ""
    cvss_score: Optional[float] = None
    affected_systems: List[str] = field(default_factory=list)


@dataclass(slots=True)
class OrchestratorOutput:
    strategy: Strategy
    tone: Tone
    reason: str
    focus_items: List[str] = field(default_factory=list)


@dataclass(slots=True)
class AnalyzedItem:
    id: str
    title: str
    threat_level: int
    summary: str
    relevance_score: float

    def assessment(self) -> ItemAssessment:
        return ItemAssessment(severity=self.threat_level, relevance=self.relevance_score)


@dataclass(slots=True)
class AnalystOutput:
    weather_condition: WeatherCondition
    threat_level: int
    summary: str
    relevance_reason: str
    analyzed_items: List[AnalyzedItem] = field(default_factory=list)
    scores: Optional[WeatherScores] = None
    total: Optional[float] = None
    baseline_total: Optional[float] = None


@dataclass(slots=True)
class NarratorOutput:
    mode: NarratorMode
    headline: str
    body: str
    closing_remark: str


@dataclass(slots=True)
class TopItem:
    title: str
    source: str


@dataclass(slots=True)
class DailySnapshot:
    date: str
    weather_condition: WeatherCondition
    threat_level: int
    analyzed_items_count: int
    top_items: List[TopItem]
    generated_at: datetime
    mode: NarratorMode
    total: Optional[float] = None
    baseline_total: Optional[float] = None


@dataclass(slots=True)
class WeatherReport:
    generated_at: datetime
    mode: NarratorMode
    weather_condition: WeatherCondition
    threat_level: int
    headline: str
    body: str
    closing_remark: str
    relevance_reason: str
    analyzed_items: List[AnalyzedItem]
    news_items: List[NewsItem]
    orchestrator_output: OrchestratorOutput
    scores: Optional[WeatherScores] = None
    total: Optional[float] = None
    baseline_total: Optional[float] = None
    html_report: Optional[str] = None
    history_csv: Optional[str] = None
