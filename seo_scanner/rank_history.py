"""
Rank history: a flat, append-only log of rank checks with derived queries.

Persistence sits behind a small storage interface so the log can live in
memory (tests), in a JSON file (default) or in another backend.
"""
import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from seo_scanner.config import DATA_DIR, RANK_HISTORY_LIMIT
from seo_scanner.models import RankRecord, RankTrend

logger = logging.getLogger(__name__)


class HistoryStorage:
    """Storage interface for the rank log."""

    def read_all(self) -> List[RankRecord]:
        raise NotImplementedError

    def write_all(self, entries: List[RankRecord]) -> None:
        raise NotImplementedError


class MemoryHistoryStorage(HistoryStorage):
    def __init__(self, entries: Optional[List[RankRecord]] = None):
        self._entries = list(entries or [])

    def read_all(self) -> List[RankRecord]:
        return list(self._entries)

    def write_all(self, entries: List[RankRecord]) -> None:
        self._entries = list(entries)


class JsonFileHistoryStorage(HistoryStorage):
    """Keeps the whole log as one JSON array file."""

    def __init__(self, path: Union[str, Path] = DATA_DIR / "rank_history.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def read_all(self) -> List[RankRecord]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading rank history from {self.path}: {e}", exc_info=True)
            return []

        entries = []
        for item in raw if isinstance(raw, list) else []:
            try:
                entries.append(RankRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid rank history entry {item!r}: {e}")
        return entries

    def write_all(self, entries: List[RankRecord]) -> None:
        data = [entry.model_dump(mode='json', by_alias=True) for entry in entries]
        tmp_path = self.path.with_suffix('.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)


def _matches(entry: RankRecord, keyword: str, domain: str) -> bool:
    return entry.keyword.lower() == keyword.lower() and entry.domain.lower() == domain.lower()


class RankHistoryStore:
    """
    Append-only rank log capped at the most recent `limit` entries.

    Every write is a read-modify-write under one lock, so a single record()
    and its eviction are atomic with respect to other writers in the process.
    """

    def __init__(self, storage: Optional[HistoryStorage] = None, limit: int = RANK_HISTORY_LIMIT):
        self.storage = storage if storage is not None else JsonFileHistoryStorage()
        self.limit = limit
        self._lock = threading.Lock()

    def all(self) -> List[RankRecord]:
        return self.storage.read_all()

    def _evict(self, entries: List[RankRecord]) -> List[RankRecord]:
        if len(entries) > self.limit:
            return entries[-self.limit:]
        return entries

    def record(self, entry: RankRecord) -> RankRecord:
        """Append an entry, dropping the oldest ones beyond the limit."""
        with self._lock:
            entries = self.storage.read_all()
            entries.append(entry)
            self.storage.write_all(self._evict(entries))
        logger.info(f"Recorded rank check for '{entry.keyword}' on {entry.domain}: position={entry.position}")
        return entry

    def query(
        self,
        keyword: str,
        domain: str,
        window_days: int = 30,
        now: Optional[datetime] = None
    ) -> List[RankRecord]:
        """Entries for a keyword/domain pair (case-insensitive) within the window, oldest first."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=window_days)
        matching = [
            entry for entry in self.storage.read_all()
            if _matches(entry, keyword, domain) and entry.timestamp >= cutoff
        ]
        return sorted(matching, key=lambda entry: entry.timestamp)

    def latest_per_keyword_domain(self) -> List[RankRecord]:
        """Most recent entry per (keyword, domain) as stored, newest group first."""
        latest: Dict[Tuple[str, str], RankRecord] = {}
        for entry in self.storage.read_all():
            key = (entry.keyword, entry.domain)
            current = latest.get(key)
            if current is None or entry.timestamp > current.timestamp:
                latest[key] = entry
        return sorted(latest.values(), key=lambda entry: entry.timestamp, reverse=True)

    def trend(
        self,
        keyword: str,
        domain: str,
        window_days: int = 30,
        now: Optional[datetime] = None
    ) -> Optional[RankTrend]:
        """
        Movement between the two most recent checks in the window.

        A positive delta means the page moved up (to a lower position number).
        Returns None with fewer than two checks or when either was not found.
        """
        history = self.query(keyword, domain, window_days, now)
        if len(history) < 2:
            return None
        previous, current = history[-2], history[-1]
        if not previous.found or not current.found:
            return None

        delta = previous.position - current.position
        if delta > 0:
            direction = 'improved'
        elif delta < 0:
            direction = 'declined'
        else:
            direction = 'unchanged'
        return RankTrend(
            keyword=current.keyword,
            domain=current.domain,
            current=current,
            previous=previous,
            delta=delta,
            direction=direction
        )

    def purge(self, keyword: str, domain: str) -> int:
        """Remove every entry for the pair (case-insensitive). Returns how many were removed."""
        with self._lock:
            entries = self.storage.read_all()
            kept = [entry for entry in entries if not _matches(entry, keyword, domain)]
            removed = len(entries) - len(kept)
            if removed:
                self.storage.write_all(kept)
        logger.info(f"Purged {removed} rank history entries for '{keyword}' on {domain}")
        return removed

    def export_all(self) -> str:
        """The full log as a JSON array."""
        data = [entry.model_dump(mode='json', by_alias=True) for entry in self.storage.read_all()]
        return json.dumps(data, indent=2, ensure_ascii=False)

    def import_merge(self, data: Union[str, bytes, List[Any]]) -> int:
        """
        Merge an exported log into the local one.

        Entries equal on (keyword, domain, timestamp) to one already present are
        skipped. Returns the number of entries added.

        Raises:
            ValueError: If the payload is not a JSON array of valid rank records
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise ValueError(f"Rank history import is not valid JSON: {e}")
        if not isinstance(data, list):
            raise ValueError("Rank history import must be a JSON array")

        imported = [RankRecord.model_validate(item) for item in data]

        with self._lock:
            entries = self.storage.read_all()
            seen = {(e.keyword, e.domain, e.timestamp) for e in entries}
            added = 0
            for entry in imported:
                key = (entry.keyword, entry.domain, entry.timestamp)
                if key in seen:
                    continue
                seen.add(key)
                entries.append(entry)
                added += 1
            if added:
                self.storage.write_all(self._evict(entries))

        logger.info(f"Imported {added} of {len(imported)} rank history entries")
        return added
