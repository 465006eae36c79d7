from __future__ import annotations

import json
import logging
import threading
import weakref
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, MutableMapping, Optional

from ..models import DailySnapshot, NarratorMode, TopItem, WeatherCondition
from ..util.time import date_key, now_utc

LOGGER = logging.getLogger(__name__)
MAX_DAYS = 14
MAX_TOP_ITEMS = 3

# entries vanish once no store holds the lock
_PATH_LOCKS: MutableMapping[Path, threading.Lock] = weakref.WeakValueDictionary()
_REGISTRY_LOCK = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _REGISTRY_LOCK:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def _to_record(snapshot: DailySnapshot) -> dict:
    return {
        "date": snapshot.date,
        "weatherCondition": snapshot.weather_condition.value,
        "threatLevel": snapshot.threat_level,
        "analyzedItemsCount": snapshot.analyzed_items_count,
        "topItems": [{"title": item.title, "source": item.source} for item in snapshot.top_items],
        "generatedAt": snapshot.generated_at.isoformat(),
        "mode": snapshot.mode,
        "total": snapshot.total,
        "baselineTotal": snapshot.baseline_total,
    }


def _from_record(record: dict) -> DailySnapshot:
    return DailySnapshot(
        date=record["date"],
        weather_condition=WeatherCondition(record["weatherCondition"]),
        threat_level=int(record["threatLevel"]),
        analyzed_items_count=int(record.get("analyzedItemsCount", 0)),
        top_items=[TopItem(title=i["title"], source=i["source"]) for i in record.get("topItems", [])],
        generated_at=datetime.fromisoformat(record["generatedAt"]),
        mode=record.get("mode", "forecast"),
        total=record.get("total"),
        baseline_total=record.get("baselineTotal"),
    )


class HistoryStore:
    """Rolling window of daily snapshots kept in a JSON file, one per date."""

    def __init__(self, path: Path, max_days: int = MAX_DAYS) -> None:
        self.path = path
        self.max_days = max_days
        self._lock = _lock_for(path)

    def _read(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("History file %s is corrupt; starting fresh", self.path)
            return {}
        return {record["date"]: record for record in payload.get("snapshots", [])}

    def _write(self, records: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        ordered = sorted(records.values(), key=lambda r: r["date"], reverse=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps({"snapshots": ordered}, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def _prune(self, records: Dict[str, dict], today: date) -> Dict[str, dict]:
        """Keep today and the ``max_days`` days before it."""
        cutoff = date_key(today - timedelta(days=self.max_days))
        kept = {key: record for key, record in records.items() if key >= cutoff}
        dropped = len(records) - len(kept)
        if dropped:
            LOGGER.info("Pruned %d snapshots older than %s", dropped, cutoff)
        return kept

    def save_snapshot(
        self,
        weather_condition: WeatherCondition,
        threat_level: int,
        analyzed_items_count: int,
        top_items: Iterable[TopItem],
        mode: NarratorMode,
        total: Optional[float] = None,
        generated_at: Optional[datetime] = None,
        baseline_total: Optional[float] = None,
    ) -> DailySnapshot:
        """Insert or overwrite today's snapshot, then drop expired days."""
        generated_at = generated_at or now_utc()
        snapshot = DailySnapshot(
            date=date_key(generated_at),
            weather_condition=WeatherCondition(weather_condition),
            threat_level=threat_level,
            analyzed_items_count=analyzed_items_count,
            top_items=list(top_items)[:MAX_TOP_ITEMS],
            generated_at=generated_at,
            mode=mode,
            total=total,
            baseline_total=baseline_total,
        )
        with self._lock:
            records = self._read()
            records[snapshot.date] = _to_record(snapshot)
            self._write(self._prune(records, generated_at.date()))
        return snapshot

    def get_history(self, days: int = MAX_DAYS) -> List[DailySnapshot]:
        with self._lock:
            records = self._read()
        ordered = sorted(records.values(), key=lambda r: r["date"], reverse=True)
        return [_from_record(record) for record in ordered[:days]]

    def previous_baseline(self, today: date | datetime) -> Optional[float]:
        """Baseline total stored for the calendar day before ``today``.

        Returns None when yesterday has no snapshot, or one written before
        baselines were recorded.
        """
        day = today.date() if isinstance(today, datetime) else today
        key = date_key(day - timedelta(days=1))
        with self._lock:
            record = self._read().get(key)
        if record is None:
            return None
        return _from_record(record).baseline_total

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()
