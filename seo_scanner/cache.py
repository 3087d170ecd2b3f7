"""
File-backed JSON cache with expiry.
"""
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic_core import to_jsonable_python

from seo_scanner.config import CACHE_DIR, CACHE_DURATION

logger = logging.getLogger(__name__)


class Cache:
    def __init__(self, cache_dir: Union[str, Path] = CACHE_DIR, ttl: timedelta = CACHE_DURATION):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.ttl = ttl

    def _get_cache_key(self, namespace: str, key: str) -> str:
        """Generate a filesystem-safe cache key."""
        namespace_part = re.sub(r'[^\w]', '_', namespace)
        key_part = re.sub(r'[^\w]', '_', key.lower())
        return f"{namespace_part}_{key_part}"

    def _path(self, namespace: str, key: str) -> Path:
        return self.cache_dir / f"{self._get_cache_key(namespace, key)}.json"

    def get(self, namespace: str, key: str, now: Optional[datetime] = None) -> Optional[Any]:
        """
        Cached value for the key, or None when missing, unreadable or older than the TTL.
        """
        cache_file = self._path(namespace, key)
        if not cache_file.exists():
            return None

        try:
            with open(cache_file, 'r', encoding='utf-8') as f:
                cached = json.load(f)
            cached_at = datetime.fromisoformat(cached['cached_at'])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error reading cache file {cache_file}: {e}", exc_info=True)
            return None

        now = now or datetime.now(timezone.utc)
        if now - cached_at > self.ttl:
            logger.info(f"Cache expired for {namespace} | {key}")
            return None

        logger.info(f"Retrieved cached {namespace} for {key}")
        return cached.get('data')

    def set(self, namespace: str, key: str, data: Any, now: Optional[datetime] = None):
        """Store a value (pydantic models included) with the current timestamp."""
        cache_file = self._path(namespace, key)
        payload = {
            'cached_at': (now or datetime.now(timezone.utc)).isoformat(),
            'data': data
        }
        try:
            with open(cache_file, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False, default=to_jsonable_python)
            logger.info(f"Cached {namespace} for {key}")
        except (OSError, TypeError) as e:
            logger.error(f"Error writing cache file {cache_file}: {e}", exc_info=True)
