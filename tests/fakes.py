from datetime import datetime
from zoneinfo import ZoneInfo

from secweather.analysis.gemini import AnalysisError, GeminiClient
from secweather.config import GeminiSettings
from secweather.models import NewsItem

JST = ZoneInfo("Asia/Tokyo")


class ScriptedClient(GeminiClient):
    """Replays canned model responses in order; exceptions are raised."""

    def __init__(self, *responses):
        super().__init__(GeminiSettings(GEMINI_API_KEY="test-key"))
        self.responses = list(responses)
        self.prompts = []

    def generate_json(self, prompt, model=None):
        self.prompts.append(prompt)
        if not self.responses:
            raise AnalysisError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def news(title, source="jvn", day=18, hour=9):
    return NewsItem(
        id=f"{source}-{abs(hash(title)) % 10**8:08d}",
        title=title,
        source=source,
        source_url=f"https://example.test/{title}",
        published_at=datetime(2026, 10, day, hour, 0, tzinfo=JST),
        raw_content=f"{title} details",
    )


class StaticCollector:
    def __init__(self, items):
        self.items = items

    def collect(self):
        return list(self.items)
