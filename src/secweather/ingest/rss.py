from __future__ import annotations

import base64
import calendar
import logging
import re
from datetime import UTC, datetime
from typing import Iterable, List, Optional

import feedparser
from bs4 import BeautifulSoup
from dateutil import parser as dtparser

from ..config import AppSettings, FeedSource
from ..models import NewsItem
from ..util.time import local_midnight, now_utc, to_local
from .cache import CacheManager

LOGGER = logging.getLogger(__name__)
CVSS_RE = re.compile(r"CVSS(?:\s*v[234](?:\.\d)?)?[^0-9]{0,24}(\d{1,2}\.\d)", re.IGNORECASE)


def item_id(source: FeedSource, link: str) -> str:
    encoded = base64.b64encode(link.encode("utf-8")).decode("ascii")
    return f"{source.type}-{encoded[:16]}"


def _plain_text(markup: str) -> str:
    if not markup:
        return ""
    if "<" not in markup:
        return markup.strip()
    return BeautifulSoup(markup, "html.parser").get_text(" ", strip=True)


def _entry_timestamp(entry, fallback: datetime) -> datetime:
    for key in ("published", "updated", "date", "dc_date"):
        raw = entry.get(key)
        if not raw:
            continue
        try:
            ts = dtparser.parse(raw)
        except (ValueError, OverflowError):
            continue
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        return ts
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime.fromtimestamp(calendar.timegm(parsed), UTC)
    return fallback


def _cvss(text: str) -> Optional[float]:
    match = CVSS_RE.search(text)
    if not match:
        return None
    score = float(match.group(1))
    return score if 0.0 <= score <= 10.0 else None


def parse_feed(content: bytes | str, source: FeedSource, fetched_at: Optional[datetime] = None) -> List[NewsItem]:
    """Parse an RSS 2.0, RDF or Atom body into news items.

    Entries without a title or link are dropped. Entries without a usable
    date are stamped with ``fetched_at``.
    """
    fetched_at = fetched_at or now_utc()
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        LOGGER.warning("%s: unparseable feed (%s)", source.name, feed.get("bozo_exception"))
        return []

    items: List[NewsItem] = []
    for entry in feed.entries:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            continue
        description = _plain_text(entry.get("summary") or entry.get("description") or "")
        text = f"{title} {description}"
        items.append(
            NewsItem(
                id=item_id(source, link),
                title=title,
                source=source.type,
                source_url=link,
                published_at=_entry_timestamp(entry, fallback=fetched_at),
                raw_content=description,
                cvss_score=_cvss(text),
            )
        )
    return items


def filter_recent(items: Iterable[NewsItem], days: int, now: datetime) -> List[NewsItem]:
    """Keep items published since local midnight ``days`` days before ``now``."""
    cutoff = local_midnight(now, days)
    return [item for item in items if to_local(item.published_at, now.tzinfo) >= cutoff]


def filter_today(items: Iterable[NewsItem], now: datetime) -> List[NewsItem]:
    return filter_recent(items, 0, now)


class FeedCollector:
    def __init__(self, settings: AppSettings, session, cache: CacheManager) -> None:
        self.settings = settings
        self.session = session
        self.cache = cache

    def _http_get(self, source: FeedSource) -> bytes:
        resp = self.session.get(source.url, timeout=30)
        resp.raise_for_status()
        return resp.content

    def fetch(self, source: FeedSource) -> List[NewsItem]:
        cached = self.cache.fetch("feeds", f"{source.id}.xml", lambda: self._http_get(source))
        if cached.stale:
            LOGGER.warning("%s: using stale cached feed", source.name)
        return parse_feed(cached.path.read_bytes(), source)

    def collect(self) -> List[NewsItem]:
        items: List[NewsItem] = []
        for source in self.settings.enabled_feeds:
            try:
                fetched = self.fetch(source)
            except Exception:
                LOGGER.exception("Feed fetch failed for %s", source.name)
                continue
            LOGGER.info("%s: %d items", source.name, len(fetched))
            items.extend(fetched)
        items.sort(key=lambda item: item.published_at, reverse=True)
        return items
